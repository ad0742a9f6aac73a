"""
Record fetcher - pagination strategy selection over the query client.

Two strategies, chosen by the app's total record count:
- offset:  "order by $id asc limit B offset N" while N < 10000
           (the service rejects offsets past the ceiling)
- seek:    "$id > L order by $id asc limit B", L = max id of the last page
           (unbounded; needs the strictly increasing $id)

Between consecutive page requests the fetcher pauses sleep_ms. The pause
is an injected callable so tests can run with zero delay.

All state is local to one call or lives on the RunContext passed in.
"""

import logging
import time
from typing import Any, Callable, Optional, Sequence

from kinport.client import QueryClient
from kinport.context import RunContext
from kinport.query_builder import (
    MAX_BATCH_SIZE,
    OFFSET_CEILING,
    count_query,
    offset_query,
    seek_query,
)
from kinport.schema import ID_FIELD

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def record_id(record: Record) -> int:
    """Integer $id of a record."""
    value = record.get(ID_FIELD)
    if isinstance(value, dict):
        value = value.get("value")
    return int(value)


class RecordFetcher:
    """
    Materializes the full record set of an app.

    Args:
        client: QueryClient bound to the app
        batch_size: Page size (1..500)
        sleep_ms: Pause between consecutive page requests
        sleep: Sleep function taking seconds (time.sleep by default)
    """

    def __init__(
        self,
        client: QueryClient,
        batch_size: int = MAX_BATCH_SIZE,
        sleep_ms: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")
        self.client = client
        self.batch_size = batch_size
        self.sleep_ms = sleep_ms
        self._sleep = sleep

    def _pause(self) -> None:
        if self.sleep_ms > 0:
            self._sleep(self.sleep_ms / 1000.0)

    def get_total_count(self, context: RunContext) -> int:
        """Total record count, fetched once per run context."""
        if context.total_count is None:
            response = self.client.query(count_query(), total_count=True)
            context.total_count = response.total_count or 0
            logger.info(f"Total records: {context.total_count}")
        return context.total_count

    def fetch_all(self, context: RunContext, fields: Optional[Sequence[str]] = None) -> list[Record]:
        """
        Fetch every record of the app in ascending $id order.

        Args:
            context: Run context holding the cached total count
            fields: Optional field codes to restrict the response to

        Returns:
            All records, ascending by $id, no duplicates
        """
        total = self.get_total_count(context)
        if total <= OFFSET_CEILING:
            logger.info(f"Using offset pagination for {total} records")
            return self._fetch_offset("", fields)
        logger.info(f"Using id-seek pagination for {total} records")
        return self._fetch_seek(fields)

    def fetch_by_query(self, base_query: str, fields: Optional[Sequence[str]] = None) -> list[Record]:
        """
        Offset-paginate a caller-supplied filter/order expression.

        No total-count lookup is made. The base expression must carry its own
        ordering (e.g. '更新日時 > "..." order by 更新日時 asc, $id asc').
        """
        logger.info(f"Fetching by query: {base_query}")
        return self._fetch_offset(base_query, fields)

    def _fetch_offset(self, base: str, fields: Optional[Sequence[str]]) -> list[Record]:
        records: list[Record] = []
        offset = 0
        first = True

        while True:
            if offset >= OFFSET_CEILING:
                logger.warning(
                    f"Reached offset ceiling ({OFFSET_CEILING}); stopping with {len(records)} records. "
                    f"Records past the ceiling are not retrievable by offset."
                )
                break
            if not first:
                self._pause()
            first = False

            page = self.client.query(offset_query(self.batch_size, offset, base), fields=fields).records
            records.extend(page)
            logger.debug(f"Fetched {len(page)} records at offset {offset} (total {len(records)})")

            if len(page) < self.batch_size:
                break
            offset += self.batch_size

        return records

    def _fetch_seek(self, fields: Optional[Sequence[str]]) -> list[Record]:
        # $id must be in the response to advance the cursor
        if fields and ID_FIELD not in fields:
            fields = [ID_FIELD, *fields]

        records: list[Record] = []
        last_seen_id = 0
        first = True

        while True:
            if not first:
                self._pause()
            first = False

            page = self.client.query(seek_query(last_seen_id, self.batch_size), fields=fields).records
            if not page:
                break
            records.extend(page)
            last_seen_id = max(record_id(r) for r in page)
            logger.debug(f"Fetched {len(page)} records after $id {last_seen_id} (total {len(records)})")

            if len(page) < self.batch_size:
                break

        return records
