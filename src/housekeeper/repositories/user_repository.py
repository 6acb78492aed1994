"""Persistence layer for user activity status."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.db_models import UserModel
from ..exceptions import handle_sqlalchemy_errors

ACTIVE = "active"
INACTIVE = "inactive"


@dataclass(slots=True)
class UserActivity:
    """Lightweight view of a user used by the inactivity sweep."""

    id: str
    name: str
    email: str
    status: str
    last_login_at: datetime | None
    created_at: datetime


class UserRepository:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_activity(self) -> list[UserActivity]:
        with handle_sqlalchemy_errors(entity="user"):
            with self._session_factory() as session:
                rows = session.execute(
                    select(
                        UserModel.id,
                        UserModel.name,
                        UserModel.email,
                        UserModel.status,
                        UserModel.last_login_at,
                        UserModel.created_at,
                    )
                ).all()
        return [UserActivity(*row) for row in rows]

    def mark_inactive(self, user_id: str, *, now: datetime) -> bool:
        """Flip an active user to inactive; returns ``False`` if nothing changed."""
        with handle_sqlalchemy_errors(entity="user"):
            with self._session_factory() as session:
                result = session.execute(
                    update(UserModel)
                    .where(UserModel.id == user_id, UserModel.status == ACTIVE)
                    .values(status=INACTIVE, updated_at=now)
                )
                session.commit()
                return result.rowcount == 1
