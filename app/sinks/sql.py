from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.schema import MessageEvent, get_engine, init_db
from ..ingest.errors import SinkError
from .base import BulkSink

logger = logging.getLogger(__name__)

_COLUMNS = tuple(c.name for c in MessageEvent.__table__.columns if c.name != "id")


class SqlSink(BulkSink):
    """
    Writes rows into the ``message_events`` table in one transaction.
    Unlike streaming inserts this is all-or-nothing: a rejected row rolls
    back the whole batch.
    """

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self._engine = engine
        self._ready = False

    def is_configured(self) -> bool:
        return True

    def _get_engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        if not self._ready:
            init_db(self._engine)
            self._ready = True
        return self._engine

    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        values = [_to_columns(r) for r in rows]
        try:
            with Session(self._get_engine()) as session, session.begin():
                session.execute(insert(MessageEvent), values)
        except SQLAlchemyError as exc:
            logger.warning("[SqlSink] insert of %d rows failed: %s", len(values), exc.__class__.__name__)
            raise SinkError(str(exc.orig if getattr(exc, "orig", None) else exc), sink=self.name) from exc
        except Exception as exc:
            logger.warning("[SqlSink] engine unavailable: %s", exc.__class__.__name__)
            raise SinkError(str(exc), sink=self.name) from exc


def _to_columns(row: Mapping[str, Any]) -> dict[str, Any]:
    out = {name: row.get(name) for name in _COLUMNS}
    if out.get("ack_status") is not None:
        out["ack_status"] = str(out["ack_status"])
    return out
