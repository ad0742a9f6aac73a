import json
import re

import pytest

from kinport.client import TransportResponse
from kinport.config import ExportConfig


def make_record(record_id: int, **fields) -> dict:
    """Record with $id plus SINGLE_LINE_TEXT fields (or explicit {"type", "value"} dicts)."""
    record = {"$id": {"type": "__ID__", "value": str(record_id)}}
    for code, value in fields.items():
        if isinstance(value, dict):
            record[code] = value
        else:
            record[code] = {"type": "SINGLE_LINE_TEXT", "value": value}
    return record


class FakeTransport:
    """In-memory record API.

    Understands the query expressions kinport emits:
    - "limit 1" (with totalCount=true)
    - "<base> limit B offset N"
    - "$id > L order by $id asc limit B"
    """

    LIMIT_OFFSET = re.compile(r"^(?P<base>.*?)\s*limit (?P<limit>\d+)(?: offset (?P<offset>\d+))?$")
    SEEK = re.compile(r"^\$id > (?P<last>\d+) order by \$id asc$")

    def __init__(self, records=None, status_code=200, error_body=None):
        self.records = list(records or [])
        self.status_code = status_code
        self.error_body = error_body
        self.calls: list[dict] = []

    def __call__(self, url, params, headers):
        query = dict(params)
        self.calls.append({"url": url, "params": query, "headers": headers})

        if self.status_code != 200:
            body = self.error_body if self.error_body is not None else {}
            text = body if isinstance(body, str) else json.dumps(body)
            return TransportResponse(status_code=self.status_code, text=text)

        match = self.LIMIT_OFFSET.match(query["query"])
        assert match, f"unexpected query: {query['query']}"
        base = match.group("base").strip()
        limit = int(match.group("limit"))
        offset = int(match.group("offset") or 0)

        rows = sorted(self.records, key=lambda r: int(r["$id"]["value"]))
        seek = self.SEEK.match(base)
        if seek:
            last = int(seek.group("last"))
            rows = [r for r in rows if int(r["$id"]["value"]) > last]

        body = {"records": rows[offset:offset + limit]}
        if query.get("totalCount") == "true":
            body["totalCount"] = str(len(rows))
        return TransportResponse(status_code=200, text=json.dumps(body))

    @property
    def queries(self) -> list[str]:
        return [c["params"]["query"] for c in self.calls]


@pytest.fixture
def export_config():
    return ExportConfig(
        subdomain="example",
        app_id="42",
        api_token="secret-token",
        sleep_ms=0,
    )


@pytest.fixture
def no_sleep():
    """Sleep stand-in recording requested delays."""
    delays: list[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def make_transport():
    """Build a FakeTransport over the given records."""
    return FakeTransport


@pytest.fixture
def dataset():
    """Build n records with ids 1..n and a title field."""
    def build(n: int) -> list[dict]:
        return [make_record(i, title=f"row {i}") for i in range(1, n + 1)]
    return build
