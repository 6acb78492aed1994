"""Scheduled task domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TaskType(str, Enum):
    """Closed set of task kinds the scheduler can dispatch."""

    CLEANUP_UNUSED_IMAGES = "cleanupUnusedImages"
    UPDATE_INACTIVE_USERS = "updateInactiveUsers"


class TaskStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class TaskResult:
    """Outcome of one task run as stored on the task record."""

    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    duration_ms: int = 0

    @classmethod
    def failure(cls, message: str, *, duration_ms: int = 0, details: dict[str, Any] | None = None) -> "TaskResult":
        return cls(success=False, message=message, details=dict(details or {}), duration_ms=duration_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "details": dict(self.details),
            "durationMs": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TaskResult":
        return cls(
            success=bool(payload.get("success", False)),
            message=str(payload.get("message", "")),
            details=dict(payload.get("details") or {}),
            duration_ms=int(payload.get("durationMs", 0)),
        )


@dataclass(slots=True)
class ScheduledTask:
    id: str
    name: str
    description: str
    task_type: str
    cron_expression: str
    enabled: bool
    status: TaskStatus
    last_run_at: datetime | None
    next_run_at: datetime | None
    last_result: TaskResult | None
    config: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    def is_due(self, now: datetime) -> bool:
        return (
            self.enabled
            and self.next_run_at is not None
            and self.next_run_at <= now
            and self.status is not TaskStatus.RUNNING
        )
