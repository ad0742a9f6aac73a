"""
Field schema inference and column selection.

Field metadata is not readable under an API token limited to record reads,
so the column schema is inferred by folding over fetched records once:
the first record exposing a field code decides its type, and the label comes
from a fixed table of system fields (any other code labels itself).

InferredSchemaSource is kept behind the SchemaSource protocol so that an
authoritative metadata source could replace it without touching the
formatter or the fetcher.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from kinport.context import RunContext
from kinport.errors import NoValidColumnsError
from kinport.field_types import FieldType

logger = logging.getLogger(__name__)


ID_FIELD = "$id"
REVISION_FIELD = "$revision"

# Display labels for system fields. Japanese-locale apps expose the
# timestamps/users under their Japanese codes, English-locale apps under
# the English ones.
SYSTEM_FIELD_LABELS: dict[str, str] = {
    ID_FIELD: "レコードID",
    REVISION_FIELD: "リビジョン",
    "更新日時": "更新日時",
    "作成日時": "作成日時",
    "更新者": "更新者",
    "作成者": "作成者",
    "レコード番号": "レコード番号",
    "Updated_datetime": "更新日時",
    "Created_datetime": "作成日時",
    "Updated_by": "更新者",
    "Created_by": "作成者",
    "Record_number": "レコード番号",
}

# Update-timestamp codes, in lookup order
UPDATED_AT_FIELDS = ("更新日時", "Updated_datetime")

DEFAULT_EXCLUDE_FIELDS: tuple[str, ...] = (REVISION_FIELD,)


@dataclass(frozen=True)
class SchemaEntry:
    """One inferred column: field code, declared type and display label."""
    code: str
    type: FieldType
    label: str


def label_for(code: str) -> str:
    """Display label for a field code."""
    return SYSTEM_FIELD_LABELS.get(code, code)


def infer_schema(records: Iterable[Mapping[str, Mapping]]) -> dict[str, SchemaEntry]:
    """
    Build the column schema from fetched records.

    Scans records in order, then field codes in record order. The first
    sighting of a code fixes its type and label.

    Args:
        records: Raw records from the query API

    Returns:
        Ordered mapping of field code -> SchemaEntry (first-seen order)
    """
    schema: dict[str, SchemaEntry] = {}
    for record in records:
        for code, field_value in record.items():
            if code in schema:
                continue
            tag = field_value.get("type") if isinstance(field_value, Mapping) else None
            schema[code] = SchemaEntry(code=code, type=FieldType.parse(tag), label=label_for(code))
    return schema


@runtime_checkable
class SchemaSource(Protocol):
    """Provides the column schema for one export run."""

    def get_schema(self, records: Sequence[Mapping], context: RunContext) -> dict[str, SchemaEntry]:
        ...


class InferredSchemaSource:
    """SchemaSource that infers the schema from records, memoized on the run context."""

    def get_schema(self, records: Sequence[Mapping], context: RunContext) -> dict[str, SchemaEntry]:
        if context.schema is None:
            context.schema = infer_schema(records)
            logger.info(f"Inferred schema: {len(context.schema)} fields from {len(records)} records")
        return context.schema


def select_columns(
    schema: Mapping[str, SchemaEntry],
    explicit: Optional[Sequence[str]] = None,
    exclude: Iterable[str] = DEFAULT_EXCLUDE_FIELDS,
) -> list[str]:
    """
    Choose the ordered list of field codes to export.

    Args:
        schema: Inferred schema (first-seen order)
        explicit: Caller-requested codes; order is preserved
        exclude: Codes never exported

    Returns:
        Ordered field codes

    Raises:
        NoValidColumnsError: If explicit is given and none of its codes exist
    """
    excluded = set(exclude)
    candidates = [code for code in schema if code not in excluded]

    if explicit:
        available = set(candidates)
        selected: list[str] = []
        skipped: list[str] = []
        for code in explicit:
            if code not in available:
                skipped.append(code)
            elif code not in selected:
                selected.append(code)
        if skipped:
            logger.warning(f"Skipping unknown or excluded fields: {', '.join(skipped)}")
        if not selected:
            raise NoValidColumnsError(list(explicit))
        return selected

    priority = [ID_FIELD]
    for code in UPDATED_AT_FIELDS:
        if code in candidates:
            priority.append(code)
            break

    ordered = [code for code in priority if code in candidates]
    ordered.extend(code for code in candidates if code not in ordered)
    return ordered
