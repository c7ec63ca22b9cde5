"""
message-ingest: SQL warehouse schema
Supports SQLite (dev) / MySQL (production) / MSSQL (enterprise).
Only used when SINK_BACKEND=sql.
"""
from __future__ import annotations

from functools import lru_cache
from sqlalchemy import (
    Boolean, Column, Float, Index, Integer, String, Text, create_engine, event
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool


# ── Engine factory ────────────────────────────────────────────────────────────

@lru_cache()
def get_engine() -> Engine:
    """
    Create the SQLAlchemy engine based on DB_TYPE in settings.
    Cached so the same engine is reused across the process lifetime.
    """
    from ..config import settings

    db_url = settings.database_url
    db_type = settings.db_type

    if db_type == "mysql":
        engine = create_engine(
            db_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
            future=True,
        )
    elif db_type == "mssql":
        engine = create_engine(db_url, future=True)
    elif db_type == "sqlite_memory":
        # StaticPool keeps the single in-memory connection alive
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    else:
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
            future=True,
        )

    if db_type in ("sqlite", "sqlite_memory"):
        event.listen(engine, "connect", _configure_sqlite)
    return engine


def _configure_sqlite(conn, _record):
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")


class Base(DeclarativeBase):
    pass


# ── ORM Models ────────────────────────────────────────────────────────────────

class MessageEvent(Base):
    __tablename__ = "message_events"
    id                  = Column(Integer, primary_key=True, autoincrement=True)
    event_id            = Column(String(192), unique=True, nullable=False)
    message_id          = Column(String(128), nullable=False)
    conversation_id     = Column(String(128), nullable=False)
    org_id              = Column(String(64), nullable=False)
    message_timestamp   = Column(String(32), nullable=False)   # ISO-8601 UTC
    ingestion_timestamp = Column(String(32), nullable=False)   # ISO-8601 UTC
    user_id             = Column(String(128), nullable=True)
    sender_number       = Column(String(64), nullable=True)
    sender_type         = Column(String(32), nullable=True)
    ack_status          = Column(String(32), nullable=True)
    message_text        = Column(Text, nullable=True)
    word_count          = Column(Integer, nullable=True)
    file_url            = Column(Text, nullable=True)
    is_broadcast        = Column(Boolean, nullable=True)
    special_data        = Column(Text, nullable=True)           # JSON
    sentiment_score     = Column(Float, nullable=True)

    __table_args__ = (
        Index("ix_message_events_org_id", "org_id"),
        Index("ix_message_events_conversation_id", "conversation_id"),
        Index("ix_message_events_message_timestamp", "message_timestamp"),
    )


# ── DB lifecycle ──────────────────────────────────────────────────────────────

def init_db(engine: Engine | None = None) -> None:
    """Create all tables (idempotent; existing tables are skipped)."""
    Base.metadata.create_all(bind=engine or get_engine())
