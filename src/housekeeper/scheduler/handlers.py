"""Task handlers and the registry mapping task types onto them."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from ..exceptions import UnknownTaskTypeError
from ..media.orphan_collector import OrphanCollector
from .inactive_users import InactiveUserSweep
from .task_models import ScheduledTask, TaskResult, TaskType


class TaskHandler(Protocol):
    def __call__(self, task: ScheduledTask) -> TaskResult:
        """Run the task to completion and describe the outcome."""


class HandlerRegistry:
    """Exhaustive mapping from :class:`TaskType` to handlers."""

    def __init__(self, handlers: Mapping[TaskType, TaskHandler]) -> None:
        missing = [task_type.value for task_type in TaskType if task_type not in handlers]
        if missing:
            raise ValueError(f"no handler registered for task types: {', '.join(missing)}")
        self._handlers = dict(handlers)

    def resolve(self, task_type: str) -> TaskHandler:
        try:
            key = TaskType(task_type)
        except ValueError as exc:
            raise UnknownTaskTypeError(f"unknown task type: {task_type}") from exc
        return self._handlers[key]


def _config_flag(config: Mapping[str, Any], key: str) -> bool:
    value = config.get(key, False)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


class CleanupUnusedImagesHandler:
    def __init__(self, collector: OrphanCollector) -> None:
        self._collector = collector

    def __call__(self, task: ScheduledTask) -> TaskResult:
        outcome = self._collector.collect(
            dry_run=_config_flag(task.config, "dryRun"),
            temp_only=_config_flag(task.config, "tempOnly"),
        )
        details = outcome.summary.to_details()
        details["dryRun"] = outcome.dry_run
        details["tempOnly"] = outcome.temp_only
        return TaskResult(success=outcome.success, message=outcome.message, details=details)


class UpdateInactiveUsersHandler:
    def __init__(self, sweep: InactiveUserSweep) -> None:
        self._sweep = sweep

    def __call__(self, task: ScheduledTask) -> TaskResult:
        days = task.config.get("inactiveDays")
        outcome = self._sweep.run(int(days) if days else None)
        return TaskResult(success=outcome.success, message=outcome.message, details=outcome.summary.to_details())


def build_handler_registry(*, collector: OrphanCollector, sweep: InactiveUserSweep) -> HandlerRegistry:
    return HandlerRegistry(
        {
            TaskType.CLEANUP_UNUSED_IMAGES: CleanupUnusedImagesHandler(collector),
            TaskType.UPDATE_INACTIVE_USERS: UpdateInactiveUsersHandler(sweep),
        }
    )
