"""Database initialization helpers."""

from __future__ import annotations

from sqlalchemy.engine import Engine

from .db_models import Base


def init_db(engine: Engine) -> None:
    """Create any missing tables.

    Schema changes on existing databases go through the alembic migrations.
    """
    Base.metadata.create_all(engine)
