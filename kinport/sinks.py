"""
Table sinks - destination grids for exported records.

The exporter only talks to the TableSink protocol. The sink is duck-typed
(no base class required), mirroring how spreadsheet services are injected.

Implementations:
- InMemoryTableSink: keeps the grid in memory (tests, --dry-run)
- CsvTableSink: writes <directory>/<sheet_name>.csv
"""

import csv
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from kinport.formatter import cell_for_sink

logger = logging.getLogger(__name__)


@runtime_checkable
class TableSink(Protocol):
    """Write surface of a destination sheet."""

    def insert_if_absent(self, name: str) -> None:
        """Select the named sheet, creating it if needed."""
        ...

    def clear(self) -> None:
        """Remove all existing content from the selected sheet."""
        ...

    def write_grid(self, rows: Sequence[Sequence[Any]]) -> None:
        """Write header + data rows in one bulk call."""
        ...

    def style_header_row(self, column_count: int) -> None:
        """Apply header styling to the first row."""
        ...

    def autosize_columns(self, count: int) -> None:
        """Resize the first `count` columns to fit their content."""
        ...


class InMemoryTableSink:
    """TableSink that keeps sheets as lists of rows."""

    def __init__(self):
        self.sheets: dict[str, list[list[Any]]] = {}
        self.current: Optional[str] = None
        self.styled_columns = 0
        self.autosized_columns = 0
        self.write_calls = 0

    def insert_if_absent(self, name: str) -> None:
        self.sheets.setdefault(name, [])
        self.current = name

    def clear(self) -> None:
        self.sheets[self._require_sheet()] = []

    def write_grid(self, rows: Sequence[Sequence[Any]]) -> None:
        self.write_calls += 1
        self.sheets[self._require_sheet()] = [list(r) for r in rows]

    def style_header_row(self, column_count: int) -> None:
        self.styled_columns = column_count

    def autosize_columns(self, count: int) -> None:
        self.autosized_columns = count

    @property
    def rows(self) -> list[list[Any]]:
        """Rows of the selected sheet."""
        return self.sheets.get(self._require_sheet(), [])

    def _require_sheet(self) -> str:
        if self.current is None:
            raise RuntimeError("No sheet selected; call insert_if_absent() first")
        return self.current


class CsvTableSink:
    """
    TableSink writing one CSV file per sheet.

    Dates are rendered as ISO-8601 text. Styling and column sizing have no
    meaning for CSV and are ignored.
    """

    def __init__(self, directory: Path, encoding: str = "utf-8-sig"):
        self.directory = Path(directory)
        self.encoding = encoding
        self.path: Optional[Path] = None

    def insert_if_absent(self, name: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path = self.directory / f"{name}.csv"
        if not self.path.exists():
            self.path.touch()

    def clear(self) -> None:
        self._require_path().write_text("", encoding=self.encoding)

    def write_grid(self, rows: Sequence[Sequence[Any]]) -> None:
        path = self._require_path()
        with open(path, "w", newline="", encoding=self.encoding) as f:
            writer = csv.writer(f)
            for row in rows:
                writer.writerow([cell_for_sink(c) for c in row])
        logger.info(f"Wrote {len(rows)} rows to {path}")

    def style_header_row(self, column_count: int) -> None:
        pass

    def autosize_columns(self, count: int) -> None:
        pass

    def _require_path(self) -> Path:
        if self.path is None:
            raise RuntimeError("No sheet selected; call insert_if_absent() first")
        return self.path
