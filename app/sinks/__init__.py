"""
message-ingest: Sink factory
==============================
One sink per process, selected by SINK_BACKEND:

  bigquery  → BigQuerySink      (default; google-cloud-bigquery)
  sql       → SqlSink           (SQLAlchemy, DB_TYPE / DATABASE_URL)
  http      → HttpCollectorSink (SINK_HTTP_URL)
  memory    → InMemorySink      (development / tests)

SINK_MAX_ATTEMPTS > 1 wraps the sink in RetryingSink.
"""
from __future__ import annotations

from functools import lru_cache

from .base import BulkSink


def build_sink(settings) -> BulkSink:
    backend = settings.sink_backend
    if backend == "bigquery":
        from .bigquery import BigQuerySink
        sink: BulkSink = BigQuerySink()
    elif backend == "sql":
        from .sql import SqlSink
        sink = SqlSink()
    elif backend == "http":
        from .http import HttpCollectorSink
        sink = HttpCollectorSink()
    elif backend == "memory":
        from .memory import InMemorySink
        sink = InMemorySink()
    else:
        raise ValueError(f"unknown sink backend: {backend}")

    if settings.sink_max_attempts > 1:
        from .retry import RetryingSink
        sink = RetryingSink(
            sink,
            max_attempts=settings.sink_max_attempts,
            base_s=settings.sink_backoff_base_s,
            max_s=settings.sink_backoff_max_s,
        )
    return sink


@lru_cache()
def get_sink() -> BulkSink:
    """Process-wide sink, built once on first use."""
    from ..config import settings
    return build_sink(settings)
