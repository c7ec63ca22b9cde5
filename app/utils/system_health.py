from __future__ import annotations

from typing import Any


def collect_readiness() -> dict[str, Any]:
    checks: dict[str, bool] = {"sink": False}
    details: dict[str, Any] = {}
    errors: list[str] = []

    try:
        from ..config import settings
        from ..sinks import get_sink
        sink = get_sink()
        checks["sink"] = bool(sink.is_configured())
        details["sink"] = {"backend": settings.sink_backend, "name": sink.name}
        if not checks["sink"]:
            errors.append(f"sink:{settings.sink_backend} not configured")
    except Exception as e:
        errors.append(f"sink:{e}")
        details["sink"] = {"error": str(e)}

    status = "ready" if all(checks.values()) else "degraded"
    return {"status": status, "checks": checks, "details": details, "errors": errors}
