"""
Export orchestrator - app records to a destination sheet.

One run walks these stages, never revisiting one:

    IDLE -> COUNTING_TOTAL -> FETCHING -> INFERRING_SCHEMA
         -> SELECTING_COLUMNS -> FORMATTING -> WRITING -> DONE

Any failure moves the run to FAILED, is logged, and is re-raised. Domain
errors (ConfigError, RemoteQueryError, NoValidColumnsError) keep their type;
anything else is wrapped in ExportError with the stage as message prefix.
The sink is touched only in WRITING, after every cell is formatted, so a
failed run never leaves a partial sheet behind.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence, Union

from kinport.client import QueryClient, RequestsTransport, Transport
from kinport.config import ExportConfig
from kinport.context import ExportStage, RunContext
from kinport.errors import ConfigError, ExportError, KinportError
from kinport.fetcher import Record, RecordFetcher
from kinport.formatter import Cell, format_value
from kinport.query_builder import incremental_query
from kinport.schema import InferredSchemaSource, SchemaEntry, SchemaSource, select_columns
from kinport.sinks import TableSink

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExportResult:
    """Summary of one successful export run."""
    record_count: int
    field_count: int
    duration_seconds: float
    success: bool = True
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class Exporter:
    """
    Runs exports of one app into one sink.

    Args:
        config: Export settings; validated here, before any network activity
        sink: Destination TableSink
        transport: Request function for the query client (requests by default)
        sleep: Sleep function used between page requests
        schema_source: Column schema provider (inferred from records by default)

    Raises:
        ConfigError: If the configuration is incomplete or invalid
    """

    def __init__(
        self,
        config: ExportConfig,
        sink: TableSink,
        transport: Optional[Transport] = None,
        sleep: Callable[[float], None] = time.sleep,
        schema_source: Optional[SchemaSource] = None,
    ):
        try:
            config.validate()
        except ConfigError as e:
            logger.error(f"Invalid export configuration: {e}")
            raise
        self.config = config
        self.sink = sink
        self.client = QueryClient(
            base_url=config.origin,
            app_id=config.app_id,
            api_token=config.api_token,
            transport=transport or RequestsTransport(timeout_s=config.timeout_s),
        )
        self.fetcher = RecordFetcher(
            self.client,
            batch_size=config.batch_size,
            sleep_ms=config.sleep_ms,
            sleep=sleep,
        )
        self.schema_source = schema_source or InferredSchemaSource()
        self.context = RunContext()

    # =========================================================================
    # PUBLIC ENTRY POINTS
    # =========================================================================

    def export_all(self, field_codes: Optional[Sequence[str]] = None) -> ExportResult:
        """Export every record, optionally restricted to the given field codes."""
        return self._run(self._fetch_all, field_codes, label="full export")

    def export_selected(self, field_codes: Optional[Sequence[str]]) -> ExportResult:
        """Export every record restricted to the given field codes.

        Raises:
            ConfigError: If field_codes is empty or None
        """
        if not field_codes:
            error = ConfigError("export_selected requires at least one field code")
            logger.error(str(error))
            raise error
        return self._run(self._fetch_all, field_codes, label="selected export")

    def export_incremental(
        self,
        since: Union[datetime, str],
        field_codes: Optional[Sequence[str]] = None,
    ) -> ExportResult:
        """Export records updated after `since` (datetime or ISO-8601 string)."""
        try:
            base_query = incremental_query(since, field=self.config.updated_at_field)
        except ValueError as e:
            logger.error(f"Invalid incremental timestamp: {e}")
            raise ConfigError(str(e)) from e

        def fetch() -> list[Record]:
            self.context.advance(ExportStage.FETCHING)
            return self.fetcher.fetch_by_query(base_query)

        return self._run(fetch, field_codes, label=f"incremental export since {since}")

    def get_total_count(self) -> int:
        """Total record count of the app (cached for this exporter's run)."""
        try:
            return self.fetcher.get_total_count(self.context)
        except KinportError as e:
            logger.error(f"Total count lookup failed: {e}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Total count lookup failed: {e}", exc_info=True)
            raise ExportError(ExportStage.COUNTING_TOTAL.value, str(e)) from e

    def show_config(self) -> dict[str, Any]:
        """Diagnostic dump of the effective configuration (token masked)."""
        data = self.config.masked()
        data["cached_total_count"] = self.context.total_count
        data["cached_schema_fields"] = len(self.context.schema) if self.context.schema is not None else None
        for key, value in data.items():
            logger.info(f"{key}: {value}")
        return data

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def _fetch_all(self) -> list[Record]:
        self.context.advance(ExportStage.COUNTING_TOTAL)
        self.fetcher.get_total_count(self.context)
        self.context.advance(ExportStage.FETCHING)
        return self.fetcher.fetch_all(self.context)

    def _run(
        self,
        fetch: Callable[[], list[Record]],
        field_codes: Optional[Sequence[str]],
        label: str,
    ) -> ExportResult:
        # Fresh schema and stage per run; only the total count outlives a run.
        self.context = RunContext(total_count=self.context.total_count)
        start_time = time.time()
        logger.info(f"Starting {label}: app={self.config.app_id}, sheet={self.config.sheet_name}")

        try:
            records = fetch()
            logger.info(f"Fetched {len(records)} records")

            self.context.advance(ExportStage.INFERRING_SCHEMA)
            schema = self.schema_source.get_schema(records, self.context)

            self.context.advance(ExportStage.SELECTING_COLUMNS)
            columns = select_columns(schema, field_codes, exclude=self.config.exclude_fields)

            self.context.advance(ExportStage.FORMATTING)
            grid = build_grid(records, columns, schema)

            self.context.advance(ExportStage.WRITING)
            self._write(grid, len(columns))

            self.context.advance(ExportStage.DONE)

        except KinportError as e:
            stage = self.context.stage
            self.context.advance(ExportStage.FAILED)
            logger.error(f"{label} failed during {stage.value}: {e}", exc_info=True, extra={"stage": stage.value})
            raise
        except Exception as e:
            stage = self.context.stage
            self.context.advance(ExportStage.FAILED)
            logger.error(f"{label} failed during {stage.value}: {e}", exc_info=True, extra={"stage": stage.value})
            raise ExportError(stage.value, str(e)) from e

        duration_seconds = time.time() - start_time
        result = ExportResult(
            record_count=len(records),
            field_count=len(columns),
            duration_seconds=round(duration_seconds, 2),
        )
        logger.info(
            f"Export complete: {result.record_count} records, {result.field_count} fields, "
            f"duration={result.duration_seconds:.2f}s"
        )
        return result

    def _write(self, grid: list[list[Cell]], column_count: int) -> None:
        self.sink.insert_if_absent(self.config.sheet_name)
        self.sink.clear()
        self.sink.write_grid(grid)
        if self.config.enable_styling:
            self.sink.style_header_row(column_count)
        self.sink.autosize_columns(column_count)


def build_grid(
    records: Sequence[Record],
    columns: Sequence[str],
    schema: dict[str, SchemaEntry],
) -> list[list[Cell]]:
    """
    Header row of labels followed by one formatted row per record.

    Args:
        records: Raw records
        columns: Field codes in output order
        schema: Inferred schema (supplies labels and declared types)

    Returns:
        2-D grid ready for TableSink.write_grid()
    """
    header: list[Cell] = [schema[code].label for code in columns]
    rows: list[list[Cell]] = [header]
    for record in records:
        rows.append([format_value(record.get(code), schema[code].type) for code in columns])
    return rows
