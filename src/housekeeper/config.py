"""Application configuration builder.

Settings come from ``HOUSEKEEPER_*`` environment variables. The defaults run
the whole service against a local SQLite file and a filesystem blob store
under ``./var/media``; production deployments point ``database_url`` at a real
server and switch ``blob_backend`` to ``s3`` (AWS S3 or MinIO).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .db.db_init import init_db


def _default_media_root() -> Path:
    return Path("./var/media")


class HousekeeperSettings(BaseSettings):
    """Pydantic settings container for the service layer."""

    model_config = SettingsConfigDict(env_prefix="HOUSEKEEPER_")

    database_url: str = Field(
        default="sqlite:///housekeeper.db",
        description="SQLAlchemy URL of the document store holding content and task records.",
    )
    media_root: Path = Field(
        default_factory=_default_media_root,
        description="Filesystem root used by the local blob store.",
    )
    reference_prefix: str = Field(
        default="/media",
        min_length=1,
        description="Prefix of owned media references embedded in content.",
    )
    object_domain: str = Field(
        default="images",
        min_length=1,
        description="First segment of every object key.",
    )
    blob_backend: Literal["local", "s3"] = Field(
        default="local",
        description="Blob store implementation.",
    )
    s3_endpoint_url: str | None = Field(default=None, description="S3/MinIO endpoint URL.")
    s3_access_key: str | None = Field(default=None)
    s3_secret_key: str | None = Field(default=None)
    s3_bucket: str = Field(default="housekeeper-media")
    s3_region: str = Field(default="us-east-1")
    scheduler_enabled: bool = Field(
        default=True,
        description="Start the polling scheduler together with the web application.",
    )
    scheduler_tick_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Interval between scheduler polling ticks in seconds.",
    )
    task_max_duration_seconds: float = Field(
        default=3600.0,
        ge=1.0,
        description="Deadline of a single task run; stale running records are failed after it.",
    )
    scan_sources: list[str] = Field(
        default_factory=lambda: ["posts", "comments", "users"],
        description="Content kinds scanned for live media references.",
    )
    gc_grace_period_seconds: int = Field(
        default=0,
        ge=0,
        description="Media objects younger than this are never collected.",
    )
    inactive_user_days: int = Field(
        default=15,
        ge=1,
        description="Days without login after which a user is marked inactive.",
    )
    upload_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Largest accepted upload in bytes.",
    )
    upload_content_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif", "image/webp"],
        description="Content types accepted by the upload route.",
    )


@dataclass(slots=True)
class AppConfig:
    settings: HousekeeperSettings
    engine: Engine
    session_factory: sessionmaker[Session]


def build_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url, future=True, connect_args={"check_same_thread": False}
        )
    return create_engine(database_url, future=True)


def load_config(settings: HousekeeperSettings | None = None) -> AppConfig:
    """Load configuration from environment and prepare the database."""
    cfg = settings or HousekeeperSettings()
    if cfg.blob_backend == "local":
        cfg.media_root.mkdir(parents=True, exist_ok=True)

    engine = build_engine(cfg.database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(settings=cfg, engine=engine, session_factory=session_factory)
