"""
message-ingest: Schema Mapper
===============================
RawEvent → NormalizedRow.  Total: malformed optional fields become None,
missing required fields pass through as None and are left for the sink's
schema enforcement to reject.
"""
from __future__ import annotations

import json
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .types import NormalizedRow, RawEvent

_EPOCH_MS_THRESHOLD = 1e11
_TRUE_STRINGS = {"true", "1", "yes", "y"}
_FALSE_STRINGS = {"false", "0", "no", "n"}


def map_event(
    raw: RawEvent,
    org_id: str,
    *,
    now: Optional[datetime] = None,
    token_factory: Optional[Callable[[], str]] = None,
) -> NormalizedRow:
    """
    Reshape one raw event into a warehouse row.

    event_id is always freshly generated as ``{org_id}-{token}``, even when
    the raw event carries an identifier of its own.  ingestion_timestamp is
    always the server clock.
    """
    token = (token_factory or _uuid_token)()
    ingested_at = now or datetime.now(timezone.utc)
    message_text = _opt_text(raw.get("message_text"))

    return NormalizedRow(
        event_id=f"{org_id}-{token}",
        message_id=_opt_str(raw.get("message_id")),
        conversation_id=_opt_str(raw.get("conversation_id")),
        org_id=org_id,
        message_timestamp=format_timestamp(parse_timestamp(raw.get("message_timestamp"))),
        ingestion_timestamp=format_timestamp(ingested_at),
        user_id=_opt_str(raw.get("user_id")),
        sender_number=_opt_str(raw.get("sender_number")),
        sender_type=_opt_str(raw.get("sender_type")),
        ack_status=_opt_ack(raw.get("ack_status")),
        message_text=message_text,
        word_count=count_words(message_text),
        file_url=_opt_str(raw.get("file_url")),
        is_broadcast=_opt_bool(raw.get("is_broadcast")),
        special_data=_serialize_blob(raw.get("special_data")),
        sentiment_score=_opt_float(raw.get("sentiment_score")),
    )


def count_words(text: Optional[str]) -> Optional[int]:
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    return len(stripped.split())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Accepts ISO-8601 strings, datetimes and epoch numbers (seconds, or
    milliseconds above 1e11).  Naive values are taken as UTC.  Anything
    unparseable yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) >= _EPOCH_MS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # offset pushes the instant outside datetime's range
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    try:
        return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    except (OverflowError, ValueError):
        return None


def _uuid_token() -> str:
    return str(uuid.uuid4())


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        return None
    return str(value)


def _opt_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return None
    return str(value)


def _opt_ack(value: Any) -> Optional[str | int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        return value
    return None


def _opt_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _opt_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _serialize_blob(value: Any) -> Optional[str]:
    # Strings are treated as already-serialized blobs.
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return None
