"""
Typed value formatter - flatten one field value into one sheet cell.

format_value() is pure and total over FieldType: every tag has a branch and
unrecognized tags fall through to a best-effort string. Absent values are
checked before dispatch and always yield "".

| Category                              | Output                               |
|---------------------------------------|--------------------------------------|
| text / number / calc / link / rec no. | value unchanged                      |
| date / datetime / created / updated   | date or datetime, "" if absent       |
| time / drop-down / radio              | value unchanged                      |
| check box / multi-select              | ", "-joined if a list                |
| user / org / group / creator / modif. | name (fallback code), ", "-joined    |
| file                                  | ", "-joined file names               |
| subtable                              | "[N rows]" placeholder               |
| $id / $revision                       | value unchanged                      |
"""

from datetime import date, datetime
from typing import Any, Mapping, Union

from kinport.field_types import (
    DATE_TYPES,
    ENTITY_TYPES,
    INTERNAL_TYPES,
    MULTI_CHOICE_TYPES,
    PLAIN_TYPES,
    SINGLE_CHOICE_TYPES,
    FieldType,
)

Cell = Union[str, int, float, bool, date, datetime]

JOIN_SEPARATOR = ", "


def format_value(field_value: Any, declared_type: Any = None) -> Cell:
    """
    Flatten a field value into a cell.

    Args:
        field_value: Either a {"type", "value"} mapping as returned by the
            query API, or the bare raw value.
        declared_type: Type tag (FieldType or raw string). Defaults to the
            mapping's own "type" when field_value is a mapping.

    Returns:
        A scalar cell value; "" for absent values.
    """
    if isinstance(field_value, Mapping) and "value" in field_value:
        if declared_type is None:
            declared_type = field_value.get("type")
        raw = field_value.get("value")
    elif isinstance(field_value, Mapping) and "type" in field_value:
        # {"type": ...} without a value key is an absent value
        raw = None
    else:
        raw = field_value

    if raw is None:
        return ""

    field_type = FieldType.parse(declared_type)

    if field_type in PLAIN_TYPES:
        return raw
    elif field_type in DATE_TYPES:
        return _parse_date(raw, field_type)
    elif field_type in SINGLE_CHOICE_TYPES:
        return raw
    elif field_type in MULTI_CHOICE_TYPES:
        if isinstance(raw, list):
            return JOIN_SEPARATOR.join(str(v) for v in raw)
        return raw
    elif field_type in ENTITY_TYPES:
        return _format_entities(raw)
    elif field_type == FieldType.FILE:
        if isinstance(raw, list):
            return JOIN_SEPARATOR.join(
                str(f.get("name", "")) for f in raw if isinstance(f, Mapping)
            )
        return ""
    elif field_type == FieldType.SUBTABLE:
        rows = len(raw) if isinstance(raw, list) else 0
        return f"[{rows} rows]"
    elif field_type in INTERNAL_TYPES:
        return raw

    return _stringify(raw)


def _entity_name(entity: Any) -> str:
    """Display name of a user/org/group entry, falling back to its code."""
    if isinstance(entity, Mapping):
        return str(entity.get("name") or entity.get("code") or "")
    return str(entity)


def _format_entities(raw: Any) -> str:
    if isinstance(raw, list):
        return JOIN_SEPARATOR.join(_entity_name(e) for e in raw)
    if isinstance(raw, Mapping):
        return _entity_name(raw)
    return ""


def _parse_date(raw: Any, field_type: FieldType) -> Cell:
    """Parse an ISO date/datetime string; unparseable input is returned unchanged."""
    if isinstance(raw, (date, datetime)):
        return raw
    text = str(raw).strip()
    if not text:
        return ""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        if field_type == FieldType.DATE:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text)
    except ValueError:
        return str(raw)


def _stringify(raw: Any) -> str:
    if isinstance(raw, (list, tuple)):
        return JOIN_SEPARATOR.join(_stringify(v) for v in raw)
    if isinstance(raw, Mapping):
        return str(raw.get("name") or raw.get("value") or raw)
    return str(raw)


def cell_for_sink(cell: Cell) -> Union[str, int, float, bool]:
    """Render date/datetime cells as ISO strings for text-only sinks."""
    if isinstance(cell, (date, datetime)):
        return cell.isoformat()
    return cell
