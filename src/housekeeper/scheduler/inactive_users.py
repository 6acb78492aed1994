"""Mark users inactive after a period without logging in."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..exceptions import RepositoryError
from ..repositories.user_repository import ACTIVE, INACTIVE, UserActivity, UserRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InactiveSweepSummary:
    total_users: int = 0
    active_users: int = 0
    inactive_users: int = 0
    updated_users: int = 0
    errors: list[str] = field(default_factory=list)

    def to_details(self) -> dict[str, Any]:
        return {
            "totalUsers": self.total_users,
            "activeUsers": self.active_users,
            "inactiveUsers": self.inactive_users,
            "updatedUsers": self.updated_users,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class InactiveSweepResult:
    success: bool
    message: str
    summary: InactiveSweepSummary


def is_stale(user: UserActivity, cutoff: datetime) -> bool:
    """Active users whose last login, or creation if they never logged in, predates ``cutoff``."""
    if user.status != ACTIVE:
        return False
    reference = user.last_login_at or user.created_at
    return reference < cutoff


class InactiveUserSweep:
    def __init__(
        self,
        user_repo: UserRepository,
        *,
        default_days: int = 15,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._user_repo = user_repo
        self._default_days = default_days
        self._clock = clock or datetime.utcnow

    def run(self, inactive_days: int | None = None) -> InactiveSweepResult:
        days = inactive_days or self._default_days
        now = self._clock()
        cutoff = now - timedelta(days=days)
        summary = InactiveSweepSummary()

        try:
            users = self._user_repo.list_activity()
        except RepositoryError as exc:
            message = f"user scan failed: {exc}"
            logger.error("users.inactive.scan_failed", extra={"error": str(exc)})
            summary.errors.append(message)
            return InactiveSweepResult(success=False, message=message, summary=summary)

        summary.total_users = len(users)
        active = sum(1 for user in users if user.status == ACTIVE)
        inactive = sum(1 for user in users if user.status == INACTIVE)

        for user in users:
            if not is_stale(user, cutoff):
                continue
            try:
                changed = self._user_repo.mark_inactive(user.id, now=now)
            except RepositoryError as exc:
                message = f"failed to update {user.email}: {exc}"
                summary.errors.append(message)
                logger.warning("users.inactive.update_failed", extra={"user_id": user.id, "error": str(exc)})
                continue
            if changed:
                summary.updated_users += 1
                logger.info("users.inactive.marked", extra={"user_id": user.id, "cutoff": cutoff.isoformat()})

        summary.active_users = active - summary.updated_users
        summary.inactive_users = inactive + summary.updated_users
        return InactiveSweepResult(
            success=True,
            message=f"marked {summary.updated_users} users inactive",
            summary=summary,
        )
