"""
message-ingest: API Routes  /v1/*
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from ..config import settings
from ..ingest.errors import IngestError, InvalidRequest
from ..ingest.pipeline import IngestionOrchestrator, build_orchestrator
from ..sinks import get_sink
from ..utils.api_errors import ingest_error_body, service_unavailable
from ..utils.telemetry import telemetry

logger = logging.getLogger("message_ingest.api")

router = APIRouter()


def get_orchestrator() -> IngestionOrchestrator:
    """FastAPI dependency; tests swap it through app.dependency_overrides."""
    return build_orchestrator(get_sink(), settings)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise InvalidRequest(f"request body is not valid JSON: {exc}") from exc


def _error_response(request: Request, exc: IngestError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("ingest failed: code=%s message=%s", exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ingest_error_body(exc.code, exc.message, getattr(request.state, "request_id", None)),
    )


# ── Health ────────────────────────────────────────────────────────────────────

@router.get("/health", tags=["system"])
async def health():
    return {
        "status": "ok",
        "system": settings.app_name,
        "version": settings.app_version,
        "sink_backend": settings.sink_backend,
    }


@router.get("/metrics", tags=["system"])
async def metrics():
    if not settings.enable_metrics:
        raise service_unavailable("METRICS_DISABLED", "Metrics are disabled")
    return PlainTextResponse(telemetry.as_prometheus(), media_type="text/plain; version=0.0.4")


@router.get("/metrics/summary", tags=["system"])
async def metrics_summary():
    if not settings.enable_metrics:
        raise service_unavailable("METRICS_DISABLED", "Metrics are disabled")
    return telemetry.aggregated_snapshot()


# ── Ingest ────────────────────────────────────────────────────────────────────

@router.post("/ingest", tags=["ingest"])
async def ingest_batch(
    request: Request,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """
    Body: ``{"grouping": {group: {sub_group: [event, ...]}}, "orgId": "..."}``.
    Returns ``{"status": "success", "rowCount": n}``.
    """
    try:
        payload = await _read_json(request)
        result = await run_in_threadpool(orchestrator.ingest, payload)
    except IngestError as exc:
        return _error_response(request, exc)
    return result.as_response()


@router.post("/ingest/event", tags=["ingest"])
async def ingest_event(
    request: Request,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    try:
        payload = await _read_json(request)
        row = await run_in_threadpool(orchestrator.ingest_event, payload)
    except IngestError as exc:
        return _error_response(request, exc)
    return {"status": "success", "rowCount": 1, "inserted": row.to_row()}
