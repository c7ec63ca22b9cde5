"""
message-ingest: BigQuery streaming-insert sink
================================================
Settings: bigquery_project / bigquery_dataset / bigquery_table
Uses tabledata.insertAll through ``Client.insert_rows_json``.

insertAll is not atomic: the remote side may accept some rows and reject
others.  Rejections come back as ``[{"index": i, "errors": [...]}]`` and are
raised as one SinkError carrying row_errors.
"""
import logging
from typing import Any, Mapping, Optional, Sequence

from google.api_core import exceptions as gexc
from google.cloud import bigquery

from ..config import settings
from ..ingest.errors import SinkError
from .base import BulkSink

logger = logging.getLogger(__name__)

_RETRYABLE = (
    gexc.ServerError,
    gexc.TooManyRequests,
    gexc.RetryError,
    ConnectionError,
    TimeoutError,
)


class BigQuerySink(BulkSink):
    """Thin pass-through to a BigQuery table."""

    def __init__(
        self,
        table_id: Optional[str] = None,
        *,
        client: Optional[bigquery.Client] = None,
        use_event_id_as_insert_id: Optional[bool] = None,
    ) -> None:
        self._table_id = table_id or settings.bigquery_table_id
        self._client = client
        if use_event_id_as_insert_id is None:
            use_event_id_as_insert_id = settings.bigquery_use_event_id_as_insert_id
        self._use_event_id = use_event_id_as_insert_id

    @property
    def table_id(self) -> str:
        return self._table_id

    def is_configured(self) -> bool:
        return bool(settings.bigquery_dataset and settings.bigquery_table)

    def _get_client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client(project=settings.bigquery_project or None)
        return self._client

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        json_rows = [dict(r) for r in rows]
        row_ids = None
        if self._use_event_id:
            row_ids = [r.get("event_id") for r in json_rows]

        try:
            errors = self._get_client().insert_rows_json(self._table_id, json_rows, row_ids=row_ids)
        except _RETRYABLE as exc:
            raise SinkError(str(exc), sink=self.name, retryable=True) from exc
        except Exception as exc:
            raise SinkError(str(exc), sink=self.name) from exc

        if errors:
            logger.warning(
                "[BigQuerySink] %d/%d rows rejected by %s", len(errors), len(json_rows), self._table_id
            )
            raise SinkError(
                _summarize_row_errors(errors, len(json_rows)),
                sink=self.name,
                row_errors=list(errors),
            )


def _summarize_row_errors(errors: list[dict], total: int) -> str:
    first = errors[0]
    reasons = first.get("errors") or []
    detail = ""
    if reasons:
        reason = reasons[0]
        detail = f": {reason.get('reason', 'invalid')} {reason.get('message', '')}".rstrip()
    return f"{len(errors)} of {total} rows rejected (first at index {first.get('index')}){detail}"
