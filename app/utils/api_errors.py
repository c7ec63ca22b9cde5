from __future__ import annotations

from fastapi import HTTPException


class AppHTTPError(HTTPException):
    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None):
        super().__init__(status_code=status_code, detail={
            "code": code,
            "message": message,
            "details": details or {},
        })


def service_unavailable(code: str, message: str, details: dict | None = None) -> AppHTTPError:
    return AppHTTPError(503, code, message, details)


def ingest_error_body(code: str, message: str, request_id: str | None = None) -> dict:
    """Boundary envelope for ingest failures: ``{"status": "error", "message": ...}``."""
    return {
        "status": "error",
        "code": code,
        "message": message,
        "request_id": request_id,
    }
