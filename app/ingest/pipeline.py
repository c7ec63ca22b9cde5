"""
message-ingest: Ingestion Orchestrator
========================================
request → validate → flatten → map (per event) → one bulk insert → result

No retry, no partial-success reporting: the sink call is treated as
all-or-nothing.  Per-row rejections reported by the sink are attached to the
SinkError and logged, but the request as a whole fails.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..utils.logging_utils import clear_request_context, set_request_context, structured_log
from ..utils.telemetry import telemetry
from .errors import InvalidRequest, SinkError, SinkFailure
from .flattener import flatten_grouping
from .mapper import map_event, parse_timestamp
from .types import (
    CLIENT_REQUIRED_FIELDS,
    GROUPING_KEY,
    ORG_ID_KEYS,
    IngestResult,
    NestedGrouping,
    NormalizedRow,
    RawEvent,
)

logger = logging.getLogger("message_ingest.pipeline")

_MIN_TS = datetime.min.replace(tzinfo=timezone.utc)


def extract_org_id(payload: Mapping[str, Any]) -> Optional[str]:
    for key in ORG_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value is not None:
            return value
    return None


def validate_request(payload: Any) -> Tuple[NestedGrouping, str]:
    """Check the request shape and return ``(grouping, org_id)``."""
    if not isinstance(payload, Mapping):
        raise InvalidRequest("request body must be a JSON object")

    org_id = extract_org_id(payload)
    if not isinstance(org_id, str) or not org_id:
        raise InvalidRequest("orgId is required", {"field": "orgId"})

    grouping = payload.get(GROUPING_KEY)
    if grouping is None:
        raise InvalidRequest("grouping is required", {"field": GROUPING_KEY})
    if not isinstance(grouping, Mapping):
        raise InvalidRequest("grouping must be an object", {"field": GROUPING_KEY})

    for group_key, sub_groups in grouping.items():
        path = f"{GROUPING_KEY}.{group_key}"
        if not isinstance(sub_groups, Mapping):
            raise InvalidRequest(f"{path} must be an object", {"field": path})
        for sub_key, leaf in sub_groups.items():
            leaf_path = f"{path}.{sub_key}"
            if not isinstance(leaf, (list, tuple)):
                raise InvalidRequest(f"{leaf_path} must be a list", {"field": leaf_path})
            for i, event in enumerate(leaf):
                if not isinstance(event, Mapping):
                    raise InvalidRequest(
                        f"{leaf_path}[{i}] must be an object", {"field": f"{leaf_path}[{i}]"}
                    )
    return grouping, org_id


def check_required_fields(events: Sequence[RawEvent]) -> None:
    for i, event in enumerate(events):
        for name in CLIENT_REQUIRED_FIELDS:
            if event.get(name) in (None, ""):
                raise InvalidRequest(
                    f"event {i} is missing required field {name}", {"index": i, "field": name}
                )
        if parse_timestamp(event.get("message_timestamp")) is None:
            raise InvalidRequest(
                f"event {i} has an unparseable message_timestamp",
                {"index": i, "field": "message_timestamp"},
            )


def sort_by_message_timestamp(events: Sequence[RawEvent]) -> List[RawEvent]:
    """Stable chronological sort; events without a parseable timestamp go last."""
    def _key(event: RawEvent):
        ts = parse_timestamp(event.get("message_timestamp"))
        return (ts is None, ts or _MIN_TS)
    return sorted(events, key=_key)


class IngestionOrchestrator:
    """Runs one ingest request against an injected sink."""

    def __init__(
        self,
        sink,
        *,
        sort_by_timestamp: bool = False,
        strict_required_fields: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
        token_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._sink = sink
        self._sort_by_timestamp = sort_by_timestamp
        self._strict = strict_required_fields
        self._clock = clock
        self._token_factory = token_factory

    @property
    def sink(self):
        return self._sink

    def ingest(self, payload: Any) -> IngestResult:
        """
        Validate, flatten, map and submit one grouped batch.

        Raises:
            InvalidRequest: malformed or incomplete request; nothing was sent.
            SinkFailure:    the bulk write failed; wraps the SinkError.
        """
        telemetry.incr("ingest_requests_total")
        try:
            grouping, org_id = validate_request(payload)
        except InvalidRequest as exc:
            self._reject(exc)
            raise

        tokens = set_request_context(org_id=org_id)
        try:
            events = flatten_grouping(grouping)
            if not events:
                telemetry.incr("ingest_empty_total")
                structured_log(logger, logging.INFO, "ingest_empty", org_id=org_id)
                return IngestResult(row_count=0)

            self._check_strict(events)
            if self._sort_by_timestamp:
                events = sort_by_message_timestamp(events)

            rows = [self._map(event, org_id) for event in events]
            self._submit(rows, org_id)
            return IngestResult(row_count=len(rows))
        finally:
            clear_request_context(tokens)

    def ingest_event(self, raw: Any) -> NormalizedRow:
        """Single-event variant: the event itself carries org_id."""
        telemetry.incr("ingest_requests_total")
        org_id = extract_org_id(raw) if isinstance(raw, Mapping) else None
        if not isinstance(org_id, str) or not org_id:
            exc = InvalidRequest("org_id is required", {"field": "org_id"})
            self._reject(exc)
            raise exc

        tokens = set_request_context(org_id=org_id)
        try:
            self._check_strict([raw])
            row = self._map(raw, org_id)
            self._submit([row], org_id)
            return row
        finally:
            clear_request_context(tokens)

    def _check_strict(self, events: Sequence[RawEvent]) -> None:
        if not self._strict:
            return
        try:
            check_required_fields(events)
        except InvalidRequest as exc:
            self._reject(exc)
            raise

    def _map(self, event: RawEvent, org_id: str) -> NormalizedRow:
        now = self._clock() if self._clock else None
        return map_event(event, org_id, now=now, token_factory=self._token_factory)

    def _submit(self, rows: List[NormalizedRow], org_id: str) -> None:
        start = time.monotonic()
        try:
            self._sink.insert([row.to_row() for row in rows])
        except SinkError as exc:
            telemetry.incr("ingest_sink_failure_total")
            structured_log(
                logger, logging.ERROR, "ingest_sink_failed",
                org_id=org_id, sink=exc.sink, row_count=len(rows),
                rejected_rows=len(exc.row_errors), retryable=exc.retryable, reason=exc.message,
            )
            raise SinkFailure(exc) from exc
        finally:
            telemetry.timing("sink_insert", time.monotonic() - start)

        telemetry.incr("ingest_rows_total", len(rows))
        structured_log(
            logger, logging.INFO, "ingest_completed",
            org_id=org_id, sink=getattr(self._sink, "name", "-"), row_count=len(rows),
        )

    def _reject(self, exc: InvalidRequest) -> None:
        telemetry.incr("ingest_invalid_total")
        structured_log(logger, logging.WARNING, "ingest_rejected", reason=exc.message, **exc.details)


def build_orchestrator(sink, settings) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        sink,
        sort_by_timestamp=settings.sort_by_message_timestamp,
        strict_required_fields=settings.strict_required_fields,
    )
