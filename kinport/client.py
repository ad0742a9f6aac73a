"""
Query client - IO boundary for the record query API.

This module is the single place kinport talks to the remote service.
QueryClient issues exactly one GET per query() call and normalizes error
responses into RemoteQueryError. It never sleeps and never retries: pacing
between pages belongs to the fetcher.

The transport is a collaborator: any callable
(url, params, headers) -> TransportResponse. RequestsTransport is the
default, backed by a requests.Session.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

import requests

from kinport.errors import RemoteQueryError

logger = logging.getLogger(__name__)


RECORDS_PATH = "/k/v1/records.json"
TOKEN_HEADER = "X-Cybozu-API-Token"
SUCCESS_STATUS = 200


@dataclass
class TransportResponse:
    """Raw HTTP response as seen by the client."""
    status_code: int
    text: str


class Transport(Protocol):
    """Blocking GET request function."""

    def __call__(self, url: str, params: list[tuple[str, str]], headers: dict[str, str]) -> TransportResponse:
        ...


class RequestsTransport:
    """Transport backed by a requests.Session.

    Network-level failures (connection refused, timeouts) propagate as
    requests exceptions.
    """

    def __init__(self, timeout_s: float = 30, session: Optional[requests.Session] = None):
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def __call__(self, url: str, params: list[tuple[str, str]], headers: dict[str, str]) -> TransportResponse:
        response = self.session.get(url, params=params, headers=headers, timeout=self.timeout_s)
        return TransportResponse(status_code=response.status_code, text=response.text)

    def close(self) -> None:
        self.session.close()


@dataclass
class QueryResponse:
    """Decoded query result: one page of records and, if requested, the total count."""
    records: list[dict[str, Any]] = field(default_factory=list)
    total_count: Optional[int] = None


def _decode_body(text: str) -> dict[str, Any]:
    """Decode a JSON body; anything unparseable is treated as an empty body."""
    try:
        body = json.loads(text) if text else {}
    except (json.JSONDecodeError, TypeError):
        return {}
    return body if isinstance(body, dict) else {}


class QueryClient:
    """
    Issues record queries against one app.

    Args:
        base_url: Service origin, e.g. "https://example.cybozu.com"
        app_id: App whose records are queried
        api_token: Static API token sent on every request
        transport: Request function; defaults to RequestsTransport
    """

    def __init__(self, base_url: str, app_id: str, api_token: str, transport: Optional[Transport] = None):
        self.base_url = base_url.rstrip("/")
        self.app_id = str(app_id)
        self._api_token = api_token
        self.transport = transport or RequestsTransport()
        self.calls = 0

    @property
    def url(self) -> str:
        return f"{self.base_url}{RECORDS_PATH}"

    def _build_params(self, query: str, fields: Optional[Sequence[str]], total_count: bool) -> list[tuple[str, str]]:
        params = [("app", self.app_id), ("query", query)]
        for i, code in enumerate(fields or []):
            params.append((f"fields[{i}]", code))
        if total_count:
            params.append(("totalCount", "true"))
        return params

    def query(self, query: str, fields: Optional[Sequence[str]] = None, total_count: bool = False) -> QueryResponse:
        """
        Run one query call.

        Args:
            query: Query expression (filter / order by / limit / offset)
            fields: Optional field codes to restrict the response to
            total_count: Ask the service for the total matching count

        Returns:
            QueryResponse with the page's records (possibly empty)

        Raises:
            RemoteQueryError: If the response status is not 200
        """
        params = self._build_params(query, fields, total_count)
        headers = {TOKEN_HEADER: self._api_token}

        self.calls += 1
        logger.debug(f"GET {RECORDS_PATH} #{self.calls} app={self.app_id} query={query!r}")
        response = self.transport(self.url, params, headers)
        body = _decode_body(response.text)

        if response.status_code != SUCCESS_STATUS:
            message = body.get("message") or body.get("code") or "Unknown error"
            raise RemoteQueryError(response.status_code, str(message), RECORDS_PATH)

        records = body.get("records") or []
        raw_total = body.get("totalCount")
        total = int(raw_total) if raw_total not in (None, "") else None
        return QueryResponse(records=list(records), total_count=total)
