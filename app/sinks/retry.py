from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Sequence

from ..ingest.errors import SinkError
from ..utils.logging_utils import structured_log
from ..utils.telemetry import telemetry
from .base import BulkSink

logger = logging.getLogger("message_ingest.sinks")


class RetryingSink(BulkSink):
    """
    Bounded exponential backoff around another sink.

    Only SinkError(retryable=True) is retried.  The delay before attempt n+1
    is ``min(base_s * 2**(n-1), max_s)``.  The last error is re-raised.
    """

    def __init__(
        self,
        inner: BulkSink,
        *,
        max_attempts: int = 3,
        base_s: float = 0.5,
        max_s: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._inner = inner
        self._max_attempts = max(1, int(max_attempts))
        self._base_s = max(0.0, float(base_s))
        self._max_s = max(0.0, float(max_s))
        self._sleep = sleep

    @property
    def inner(self) -> BulkSink:
        return self._inner

    @property
    def name(self) -> str:
        return self._inner.name

    def is_configured(self) -> bool:
        return self._inner.is_configured()

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        attempt = 1
        while True:
            try:
                self._inner.insert(rows)
                return
            except SinkError as exc:
                if not exc.retryable or attempt >= self._max_attempts:
                    raise
                delay = min(self._base_s * (2 ** (attempt - 1)), self._max_s)
                structured_log(
                    logger, logging.WARNING, "sink_retry",
                    sink=self.name, attempt=attempt, max_attempts=self._max_attempts,
                    delay_s=delay, reason=exc.message,
                )
                telemetry.incr("sink_retry_total")
                self._sleep(delay)
                attempt += 1
