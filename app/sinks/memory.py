from __future__ import annotations

import threading
from typing import Any, Mapping, Optional, Sequence

from ..ingest.errors import SinkError
from .base import BulkSink


class InMemorySink(BulkSink):
    """Keeps inserted rows in a list. Used for local development and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.rows: list[dict[str, Any]] = []
        self.calls: list[list[dict[str, Any]]] = []
        self.fail_with: Optional[SinkError] = None

    def is_configured(self) -> bool:
        return True

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        batch = [dict(r) for r in rows]
        with self._lock:
            self.calls.append(batch)
            if self.fail_with is not None:
                raise self.fail_with
            self.rows.extend(batch)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def reset(self) -> None:
        with self._lock:
            self.rows.clear()
            self.calls.clear()
            self.fail_with = None
