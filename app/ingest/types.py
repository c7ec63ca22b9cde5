"""
message-ingest: Row and result models
=======================================
RawEvent        untyped mapping as received at the boundary
NestedGrouping  {group_key: {sub_group_key: [RawEvent, ...]}}
NormalizedRow   fixed-shape warehouse row (one per RawEvent)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping, Optional, Sequence, Union

RawEvent = Mapping[str, Any]
NestedGrouping = Mapping[str, Mapping[str, Sequence[RawEvent]]]

REQUIRED_FIELDS = (
    "event_id",
    "message_id",
    "conversation_id",
    "org_id",
    "message_timestamp",
    "ingestion_timestamp",
)

# Checked locally only when strict_required_fields is enabled; the
# remaining required columns are always produced by the mapper itself.
CLIENT_REQUIRED_FIELDS = ("message_id", "conversation_id", "message_timestamp")

GROUPING_KEY = "grouping"
ORG_ID_KEYS = ("orgId", "org_id")


@dataclass(frozen=True)
class NormalizedRow:
    """One schema-conforming ``message_events`` row."""

    event_id: str
    message_id: Optional[str]
    conversation_id: Optional[str]
    org_id: str
    message_timestamp: Optional[str]
    ingestion_timestamp: str
    user_id: Optional[str] = None
    sender_number: Optional[str] = None
    sender_type: Optional[str] = None
    ack_status: Optional[Union[str, int]] = None
    message_text: Optional[str] = None
    word_count: Optional[int] = None
    file_url: Optional[str] = None
    is_broadcast: Optional[bool] = None
    special_data: Optional[str] = None
    sentiment_score: Optional[float] = None

    def to_row(self) -> dict[str, Any]:
        return asdict(self)


ROW_FIELDS = tuple(f.name for f in fields(NormalizedRow))


@dataclass(frozen=True)
class IngestResult:
    row_count: int

    def as_response(self) -> dict[str, Any]:
        return {"status": "success", "rowCount": self.row_count}
