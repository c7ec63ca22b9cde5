"""
message-ingest: Error taxonomy

IngestError      terminal result of one ingest request
  InvalidRequest   malformed / incomplete input, never reaches the sink (400)
  SinkFailure      the bulk write was rejected or could not complete (500)
SinkError        raised by sink adapters, wrapped into SinkFailure
"""
from __future__ import annotations

from typing import Any


class IngestError(Exception):
    code = "INGEST_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidRequest(IngestError):
    code = "INVALID_REQUEST"
    status_code = 400


class SinkFailure(IngestError):
    code = "SINK_FAILURE"
    status_code = 500

    def __init__(self, cause: "SinkError"):
        details: dict[str, Any] = {"sink": cause.sink}
        if cause.row_errors:
            details["rejected_rows"] = len(cause.row_errors)
        super().__init__(cause.message, details)
        self.__cause__ = cause

    @property
    def cause_message(self) -> str:
        return self.message


class SinkError(Exception):
    """
    A bulk write that failed.

    row_errors holds per-row rejections reported by the remote side
    (``[{"index": 3, "errors": [...]}, ...]``) and is empty when the
    whole call failed before any row was evaluated.
    """

    def __init__(
        self,
        message: str,
        *,
        sink: str = "unknown",
        row_errors: list[dict[str, Any]] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.sink = sink
        self.row_errors = list(row_errors or [])
        self.retryable = retryable
