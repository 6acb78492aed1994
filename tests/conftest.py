from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest
from sqlalchemy.orm import Session, sessionmaker

from src.housekeeper.config import build_engine
from src.housekeeper.db.db_init import init_db
from src.housekeeper.media.references import ReferenceConvention
from tests.mocks.blob_store import InMemoryBlobStore


class FrozenClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def session_factory() -> Callable[[], Session]:
    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def convention() -> ReferenceConvention:
    return ReferenceConvention(prefix="/media", domain="images")


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 10, 12, 0, 0))
