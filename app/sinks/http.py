"""
message-ingest: HTTP collector sink
=====================================
Settings: sink_http_url / sink_http_token / sink_http_timeout_s

POST {"rows": [...]} as JSON to any collector that fronts a warehouse.
Any status >= 400 is a failure; 429 and 5xx are marked retryable.
"""
import logging
from typing import Any, Mapping, Optional, Sequence

import httpx

from ..config import settings
from ..ingest.errors import SinkError
from .base import BulkSink

logger = logging.getLogger(__name__)


class HttpCollectorSink(BulkSink):

    def __init__(self, url: Optional[str] = None, *, token: Optional[str] = None,
                 timeout_s: Optional[float] = None) -> None:
        self._url = url if url is not None else settings.sink_http_url
        self._token = token if token is not None else settings.sink_http_token
        self._timeout = timeout_s if timeout_s is not None else settings.sink_http_timeout_s

    def is_configured(self) -> bool:
        return bool(self._url)

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        if not self.is_configured():
            raise SinkError("SINK_HTTP_URL is not set", sink=self.name)

        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            resp = httpx.post(
                self._url,
                json={"rows": [dict(r) for r in rows]},
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise SinkError(f"collector timed out: {exc}", sink=self.name, retryable=True) from exc
        except httpx.HTTPError as exc:
            raise SinkError(f"collector unreachable: {exc}", sink=self.name, retryable=True) from exc

        if resp.status_code >= 400:
            logger.warning(f"[HttpCollectorSink] HTTP {resp.status_code}: {resp.text[:200]}")
            raise SinkError(
                f"collector returned HTTP {resp.status_code}: {resp.text[:200]}",
                sink=self.name,
                row_errors=_row_errors(resp),
                retryable=resp.status_code == 429 or resp.status_code >= 500,
            )


def _row_errors(resp: httpx.Response) -> list[dict]:
    try:
        body = resp.json()
    except ValueError:
        return []
    if isinstance(body, dict) and isinstance(body.get("row_errors"), list):
        return [e for e in body["row_errors"] if isinstance(e, dict)]
    return []
