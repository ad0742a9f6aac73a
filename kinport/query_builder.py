"""
Query Builder - construct record query expressions for the paginated API.

The query API takes a single expression string combining a filter, an
ordering and a limit/offset clause, e.g.:

    $id > 1200 order by $id asc limit 500

Supports:
- Count probes (one-record page, total count requested separately)
- Offset pages over the whole app or a caller-supplied base expression
- Identifier-seek pages ($id greater than the last id seen)
- Time-windowed expressions for incremental exports
"""

from datetime import datetime, timezone
from typing import Union

from kinport.schema import ID_FIELD

# Service-side ceiling for limit+offset pagination
OFFSET_CEILING = 10000

# Service-side maximum page size
MAX_BATCH_SIZE = 500

INCREMENTAL_FIELD = "更新日時"


def count_query() -> str:
    """Expression for a one-record probe used with totalCount=true."""
    return "limit 1"


def offset_query(limit: int, offset: int, base: str = "") -> str:
    """Offset page over `base` (or all records, ordered by id, when base is empty)."""
    base = base.strip() or f"order by {ID_FIELD} asc"
    return f"{base} limit {int(limit)} offset {int(offset)}"


def seek_query(last_seen_id: int, limit: int) -> str:
    """Identifier-seek page: records strictly after last_seen_id."""
    return f"{ID_FIELD} > {int(last_seen_id)} order by {ID_FIELD} asc limit {int(limit)}"


def _format_timestamp(since: Union[datetime, str]) -> str:
    if isinstance(since, datetime):
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    text = str(since).strip()
    if not text:
        raise ValueError("since timestamp must not be empty")
    if '"' in text:
        raise ValueError(f"Invalid timestamp: {text}")
    return text


def incremental_query(since: Union[datetime, str], field: str = INCREMENTAL_FIELD) -> str:
    """
    Base expression for records updated after `since`.

    Args:
        since: datetime (naive values are taken as UTC) or ISO-8601 string
        field: Update-timestamp field code

    Returns:
        Filter + ordering expression, without limit/offset
    """
    ts = _format_timestamp(since)
    return f'{field} > "{ts}" order by {field} asc, {ID_FIELD} asc'
