"""
message-ingest runtime
======================
HTTP ingestion endpoint for chat/message events → analytical warehouse table.
"""
from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import settings
from .utils.logging_utils import clear_request_context, configure_logging, set_request_context, structured_log
from .utils.system_health import collect_readiness
from .utils.telemetry import telemetry

configure_logging(settings.log_level)
logger = logging.getLogger("message_ingest")

_PUBLIC_PATHS = ("/", "/healthz", "/livez", "/readyz", "/metrics", "/v1/health", "/docs", "/redoc", "/openapi.json")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s v%s starting up...", settings.app_name, settings.app_version)

    from .sinks import get_sink
    try:
        sink = get_sink()
        logger.info("Sink ready: backend=%s sink=%s configured=%s",
                    settings.sink_backend, sink.name, sink.is_configured())
    except Exception as e:
        logger.warning("Sink unavailable at startup: backend=%s reason=%s", settings.sink_backend, e)

    logger.info("%s v%s ready.", settings.app_name, settings.app_version)
    yield
    logger.info("%s shutdown complete.", settings.app_name)


app = FastAPI(
    title="message-ingest",
    version=settings.app_version,
    description="Receives grouped chat/message events, normalizes them into message_events rows and bulk-inserts them into the warehouse.",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.monotonic()
    request.state.request_id = request_id
    tokens = set_request_context(request_id=request_id)
    try:
        response = await call_next(request)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        response.headers["x-elapsed-ms"] = str(elapsed_ms)
        telemetry.incr("http_requests_total")
        telemetry.incr(f"http_status_{response.status_code}_total")
        telemetry.timing("http_request", elapsed_ms / 1000.0)
        structured_log(
            logger, logging.INFO, "http_request",
            method=request.method, path=request.url.path, status_code=response.status_code, elapsed_ms=elapsed_ms
        )
        return response
    finally:
        clear_request_context(tokens)


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    api_key = settings.api_key
    if not api_key:
        return await call_next(request)
    if request.url.path in _PUBLIC_PATHS:
        return await call_next(request)
    token = (
        request.headers.get("x-api-key")
        or request.headers.get("authorization", "").removeprefix("Bearer ")
    )
    if token != api_key:
        structured_log(logger, logging.WARNING, "auth_failed", path=request.url.path, method=request.method)
        telemetry.incr("auth_failed_total")
        return JSONResponse({"detail": {"code": "UNAUTHORIZED", "message": "Unauthorized"}}, status_code=401)
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("request validation failed: path=%s request_id=%s", request.url.path, getattr(request.state, "request_id", "-"))
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "code": "REQUEST_VALIDATION_FAILED",
                "message": "Request validation failed",
                "errors": exc.errors(),
                "request_id": getattr(request.state, "request_id", None),
            }
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled request error: path=%s request_id=%s", request.url.path, getattr(request.state, "request_id", "-"))
    detail = {
        "code": "INTERNAL_SERVER_ERROR",
        "message": "Unhandled server error",
        "request_id": getattr(request.state, "request_id", None),
    }
    if settings.app_env.strip().lower() in {"dev", "development", "local", "test", "testing"} or settings.expose_internal_error_details:
        detail["reason"] = str(exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": detail
        },
    )


from .api.routes import router as api_router
app.include_router(api_router, prefix="/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "system": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/v1/health",
        "ingest": "/v1/ingest",
    }


@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok", "system": settings.app_name, "version": settings.app_version}


@app.get("/livez", include_in_schema=False)
async def livez():
    return {"status": "alive", "system": settings.app_name, "version": settings.app_version}


@app.get("/readyz", include_in_schema=False)
async def readyz():
    payload = collect_readiness()
    payload.update({"system": settings.app_name, "version": settings.app_version})
    code = 200 if payload["status"] == "ready" else 503
    return JSONResponse(payload, status_code=code)


@app.get("/metrics", include_in_schema=False)
async def metrics_root():
    if not settings.enable_metrics:
        return JSONResponse({"detail": {"code": "METRICS_DISABLED", "message": "Metrics are disabled"}}, status_code=503)
    return PlainTextResponse(telemetry.as_prometheus(), media_type="text/plain; version=0.0.4")
