"""Administrative operations on scheduled task definitions."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..repositories.scheduled_task_repository import ScheduledTaskRepository
from .next_run import NextRunCalculator, ReducedCronCalculator
from .task_models import ScheduledTask, TaskType


class ScheduledTaskService:
    """Create, edit and remove task records, keeping ``next_run_at`` in sync."""

    def __init__(
        self,
        repo: ScheduledTaskRepository,
        *,
        calculator: NextRunCalculator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repo
        self._calculator = calculator or ReducedCronCalculator()
        self._clock = clock or datetime.now

    def list_tasks(self) -> list[ScheduledTask]:
        return self._repo.list_all()

    def get_task(self, task_id: str) -> ScheduledTask:
        return self._repo.get(task_id)

    def create_task(
        self,
        *,
        name: str,
        task_type: TaskType,
        cron_expression: str,
        description: str = "",
        enabled: bool = False,
        config: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        next_run_at = self._calculator.next_run(cron_expression, self._clock())
        return self._repo.create(
            name=name,
            description=description,
            task_type=task_type.value,
            cron_expression=cron_expression,
            enabled=enabled,
            next_run_at=next_run_at,
            config=config,
        )

    def update_task(self, task_id: str, **changes: Any) -> ScheduledTask:
        cron_expression = changes.get("cron_expression")
        if cron_expression is not None:
            changes["next_run_at"] = self._calculator.next_run(cron_expression, self._clock())
        elif changes.get("enabled"):
            current = self._repo.get(task_id)
            if current.next_run_at is None:
                changes["next_run_at"] = self._calculator.next_run(current.cron_expression, self._clock())
        return self._repo.update(task_id, **changes)

    def delete_task(self, task_id: str) -> bool:
        return self._repo.delete(task_id)
