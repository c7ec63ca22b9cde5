from __future__ import annotations

from app.ingest.errors import SinkError
from app.ingest.pipeline import IngestionOrchestrator


def test_ingest_empty_grouping(client, api_sink):
    resp = client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'})
    assert resp.status_code == 200
    assert resp.json() == {'status': 'success', 'rowCount': 0}
    assert api_sink.call_count == 0


def test_ingest_one_event(client, api_sink):
    payload = {'grouping': {'g': {'s': [{'message_text': 'hi there'}]}}, 'orgId': 'org1'}
    resp = client.post('/v1/ingest', json=payload, headers={'x-request-id': 'req-ingest-1'})
    assert resp.status_code == 200
    assert resp.json() == {'status': 'success', 'rowCount': 1}
    assert resp.headers['x-request-id'] == 'req-ingest-1'
    assert api_sink.call_count == 1
    assert api_sink.calls[0][0]['word_count'] == 2


def test_ingest_missing_grouping_is_client_error(client, api_sink):
    resp = client.post('/v1/ingest', json={'orgId': 'org1'}, headers={'x-request-id': 'req-bad'})
    assert resp.status_code == 400
    body = resp.json()
    assert body['status'] == 'error'
    assert body['code'] == 'INVALID_REQUEST'
    assert 'grouping' in body['message']
    assert body['request_id'] == 'req-bad'
    assert api_sink.call_count == 0


def test_ingest_missing_org_id_is_client_error(client, api_sink):
    resp = client.post('/v1/ingest', json={'grouping': {}})
    assert resp.status_code == 400
    assert resp.json()['status'] == 'error'


def test_ingest_non_json_body_is_client_error(client, api_sink):
    resp = client.post('/v1/ingest', content=b'not json', headers={'content-type': 'application/json'})
    assert resp.status_code == 400
    assert resp.json()['code'] == 'INVALID_REQUEST'


def test_ingest_sink_failure_surfaces_message(client, api_sink):
    api_sink.fail_with = SinkError('Access Denied: Table whatsapp_analytics.message_events', sink='BigQuerySink')
    payload = {'grouping': {'g': {'s': [{'message_text': 'x'}]}}, 'orgId': 'org1'}
    resp = client.post('/v1/ingest', json=payload)
    assert resp.status_code == 500
    body = resp.json()
    assert body['status'] == 'error'
    assert body['code'] == 'SINK_FAILURE'
    assert body['message'] == 'Access Denied: Table whatsapp_analytics.message_events'


def test_ingest_event_returns_inserted_row(client, api_sink):
    resp = client.post('/v1/ingest/event', json={
        'org_id': 'org1',
        'message_id': 'm-1',
        'conversation_id': 'c-1',
        'message_timestamp': '2026-02-27T10:15:00Z',
        'message_text': 'good morning team',
        'sender_type': 'customer',
        'sentiment_score': 0.4,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body['status'] == 'success'
    assert body['rowCount'] == 1
    inserted = body['inserted']
    assert inserted['event_id'].startswith('org1-')
    assert inserted['word_count'] == 3
    assert inserted['sender_type'] == 'customer'
    assert inserted['message_timestamp'] == '2026-02-27T10:15:00.000Z'
    assert api_sink.rows == [inserted]


def test_ingest_event_without_org_id(client, api_sink):
    resp = client.post('/v1/ingest/event', json={'message_text': 'x'})
    assert resp.status_code == 400
    assert api_sink.call_count == 0


def test_ingest_uses_configured_orchestrator_options(client, memory_sink, override_orchestrator):
    override_orchestrator(IngestionOrchestrator(memory_sink, strict_required_fields=True))
    resp = client.post('/v1/ingest', json={'grouping': {'g': {'s': [{'message_text': 'x'}]}}, 'orgId': 'o'})
    assert resp.status_code == 400
    assert 'message_id' in resp.json()['message']


def test_ingest_requires_auth_when_api_key_enabled(client, api_sink, restore_settings):
    restore_settings.api_key = 'k1'
    resp = client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'})
    assert resp.status_code == 401
    assert resp.json()['detail']['code'] == 'UNAUTHORIZED'

    resp = client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'}, headers={'x-api-key': 'wrong'})
    assert resp.status_code == 401

    resp = client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'}, headers={'x-api-key': 'k1'})
    assert resp.status_code == 200

    resp = client.post('/v1/ingest', json={'grouping': {}, 'orgId': 'x'}, headers={'authorization': 'Bearer k1'})
    assert resp.status_code == 200


def test_default_dependency_uses_process_sink(client, monkeypatch):
    from app.api import routes
    from app.sinks.memory import InMemorySink

    sink = InMemorySink()
    monkeypatch.setattr(routes, 'get_sink', lambda: sink)
    resp = client.post('/v1/ingest', json={'grouping': {'g': {'s': [{'message_text': 'a b'}]}}, 'orgId': 'o'})
    assert resp.status_code == 200
    assert sink.call_count == 1


def test_out_of_range_timestamp_still_ingests(client, api_sink):
    event = {'message_id': 'm-1', 'message_timestamp': '0001-01-01T00:00:00+05:00', 'message_text': 'hi'}
    resp = client.post('/v1/ingest', json={'grouping': {'g': {'s': [event]}}, 'orgId': 'org1'})
    assert resp.status_code == 200
    assert resp.json() == {'status': 'success', 'rowCount': 1}
    assert api_sink.rows[0]['message_timestamp'] is None
