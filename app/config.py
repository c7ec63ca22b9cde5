"""
message-ingest: Configuration
Chat/message event ingestion into an analytical warehouse table.
Sink backends: BigQuery (default) / SQL (SQLite / MySQL / MSSQL) / HTTP collector / memory.
"""
from __future__ import annotations

import os
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────────────────────────
    app_name: str = "message-ingest"
    app_version: str = "1.0.0"
    app_env: str = "development"
    log_level: str = "INFO"
    expose_internal_error_details: bool = False

    # ── Security ──────────────────────────────────────────────────────────────
    api_key: str = ""          # Required for /v1/* endpoints (empty = no auth)

    # ── Telemetry ─────────────────────────────────────────────────────────────
    enable_metrics: bool = True

    # ── Sink ──────────────────────────────────────────────────────────────────
    sink_backend: Literal["bigquery", "sql", "http", "memory"] = "bigquery"

    # BigQuery streaming insert target
    bigquery_project: str = ""                 # empty = client default project
    bigquery_dataset: str = "whatsapp_analytics"
    bigquery_table: str = "message_events"
    bigquery_use_event_id_as_insert_id: bool = True

    # SQL warehouse table (sink_backend=sql)
    db_type: Literal["sqlite", "sqlite_memory", "mysql", "mssql"] = "sqlite"
    db_name: str = "message_ingest"
    db_host: str = "localhost"
    db_port: int = 3306               # MySQL default; MSSQL use 1433
    db_user: str = "root"
    db_password: str = ""
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    # HTTP collector (sink_backend=http)
    sink_http_url: str = ""
    sink_http_timeout_s: float = 10.0
    sink_http_token: str = ""

    # Retry around the sink call; 1 = single attempt
    sink_max_attempts: int = 1
    sink_backoff_base_s: float = 0.5
    sink_backoff_max_s: float = 8.0

    # ── Pipeline ──────────────────────────────────────────────────────────────
    sort_by_message_timestamp: bool = False
    strict_required_fields: bool = False

    # ── Constructed Database URL ──────────────────────────────────────────────
    @property
    def database_url(self) -> str:
        override = os.getenv("DATABASE_URL")
        if override:
            return override

        if self.db_type == "sqlite_memory":
            return "sqlite:///:memory:"

        if self.db_type == "mysql":
            return (
                f"mysql+pymysql://{self.db_user}:{self.db_password}"
                f"@{self.db_host}:{self.db_port}/{self.db_name}"
            )

        if self.db_type == "mssql":
            return (
                f"mssql+pyodbc://{self.db_user}:{self.db_password}"
                f"@{self.db_host}/{self.db_name}"
                f"?driver=ODBC+Driver+17+for+SQL+Server"
            )

        return f"sqlite:///./{self.db_name}.db"

    @property
    def bigquery_table_id(self) -> str:
        parts = [self.bigquery_project, self.bigquery_dataset, self.bigquery_table]
        return ".".join(p for p in parts if p)

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
