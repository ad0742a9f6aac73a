"""
Run context - explicit per-run cache passed through the export pipeline.

A RunContext is owned by one Exporter instance. It memoizes the total record
count and the inferred schema so neither is rebuilt mid-run, and records the
stage the run is currently in. Nothing here is shared across instances.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from kinport.schema import SchemaEntry


class ExportStage(str, Enum):
    """Stages of one export run. No stage is revisited."""

    IDLE = "idle"
    COUNTING_TOTAL = "counting_total"
    FETCHING = "fetching"
    INFERRING_SCHEMA = "inferring_schema"
    SELECTING_COLUMNS = "selecting_columns"
    FORMATTING = "formatting"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunContext:
    """
    Mutable per-run state.

    Attributes:
        total_count: Cached record count (first lookup wins)
        schema: Cached inferred schema, keyed by field code in first-seen order
        stage: Current pipeline stage
    """
    total_count: Optional[int] = None
    schema: Optional[dict[str, "SchemaEntry"]] = None
    stage: ExportStage = ExportStage.IDLE

    def advance(self, stage: ExportStage) -> None:
        """Move to the given stage."""
        self.stage = stage
