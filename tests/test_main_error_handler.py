from __future__ import annotations

from fastapi.testclient import TestClient

from app.api.routes import get_orchestrator
from app.config import settings
from app.main import app


def _broken_orchestrator():
    raise RuntimeError('could not load default credentials')


def _post_with_broken_sink() -> dict:
    app.dependency_overrides[get_orchestrator] = _broken_orchestrator
    try:
        with TestClient(app, raise_server_exceptions=False) as local_client:
            resp = local_client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'})
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)
    assert resp.status_code == 500
    return resp.json()['detail']


def test_unhandled_error_hides_reason_in_production():
    settings.app_env = 'production'
    settings.expose_internal_error_details = False
    detail = _post_with_broken_sink()
    assert detail['code'] == 'INTERNAL_SERVER_ERROR'
    assert 'reason' not in detail


def test_unhandled_error_exposes_reason_in_development():
    settings.app_env = 'development'
    settings.expose_internal_error_details = False
    detail = _post_with_broken_sink()
    assert detail['reason'] == 'could not load default credentials'


def test_unhandled_error_force_exposes_reason_via_flag():
    settings.app_env = 'production'
    settings.expose_internal_error_details = True
    detail = _post_with_broken_sink()
    assert detail['reason'] == 'could not load default credentials'
    assert detail['request_id']
