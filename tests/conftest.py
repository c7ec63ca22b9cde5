from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Callable

os.environ.setdefault("SINK_BACKEND", "memory")
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient

from app.api.routes import get_orchestrator
from app.config import settings
from app.ingest.pipeline import IngestionOrchestrator
from app.main import app
from app.sinks.memory import InMemorySink
from app.utils.telemetry import telemetry


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def restore_settings():
    tracked = {
        'api_key': settings.api_key,
        'app_env': settings.app_env,
        'expose_internal_error_details': settings.expose_internal_error_details,
        'enable_metrics': settings.enable_metrics,
        'sink_backend': settings.sink_backend,
        'sink_max_attempts': settings.sink_max_attempts,
        'sort_by_message_timestamp': settings.sort_by_message_timestamp,
        'strict_required_fields': settings.strict_required_fields,
        'sink_http_url': settings.sink_http_url,
        'sink_http_token': settings.sink_http_token,
    }
    yield settings
    for key, value in tracked.items():
        setattr(settings, key, value)


@pytest.fixture(autouse=True)
def reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def memory_sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def counter_tokens() -> Callable[[], str]:
    state = {'n': 0}

    def _next() -> str:
        state['n'] += 1
        return f"tok{state['n']}"
    return _next


@pytest.fixture
def override_orchestrator():
    """Route the /v1/ingest endpoints through a given orchestrator."""
    def _install(orchestrator: IngestionOrchestrator) -> IngestionOrchestrator:
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return orchestrator

    yield _install
    app.dependency_overrides.pop(get_orchestrator, None)


@pytest.fixture
def api_sink(memory_sink, override_orchestrator) -> InMemorySink:
    override_orchestrator(IngestionOrchestrator(memory_sink))
    return memory_sink
