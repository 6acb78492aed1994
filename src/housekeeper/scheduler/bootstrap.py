"""Seeding of the default scheduled task records."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from ..repositories.scheduled_task_repository import ScheduledTaskRepository
from .next_run import NextRunCalculator, ReducedCronCalculator
from .task_models import ScheduledTask, TaskType

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DefaultTask:
    task_type: TaskType
    name: str
    description: str
    cron_expression: str
    config: dict[str, Any] = field(default_factory=dict)


DEFAULT_TASKS: tuple[DefaultTask, ...] = (
    DefaultTask(
        task_type=TaskType.CLEANUP_UNUSED_IMAGES,
        name="Clean up unused images",
        description="Delete stored images that no post, comment or profile refers to.",
        cron_expression="0 2 * * *",
    ),
    DefaultTask(
        task_type=TaskType.UPDATE_INACTIVE_USERS,
        name="Mark inactive users",
        description="Mark users inactive when they have not logged in for the configured number of days.",
        cron_expression="0 3 * * *",
    ),
)


class TaskBootstrapper:
    """Create missing default task records, disabled, once per instance.

    The lookup-then-insert is not protected by a storage constraint: two
    processes starting at the same moment may both insert a default.
    """

    def __init__(
        self,
        repo: ScheduledTaskRepository,
        *,
        defaults: Sequence[DefaultTask] = DEFAULT_TASKS,
        calculator: NextRunCalculator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repo
        self._defaults = tuple(defaults)
        self._calculator = calculator or ReducedCronCalculator()
        self._clock = clock or datetime.now
        self._lock = threading.Lock()
        self._initialized = False

    def ensure_defaults(self, *, force: bool = False) -> list[ScheduledTask]:
        """Insert absent defaults; returns the records created by this call.

        After the first pass later calls are no-ops unless ``force`` asks for
        another lookup, e.g. when an operator deleted a default record.
        """
        with self._lock:
            if self._initialized and not force:
                return []
            created: list[ScheduledTask] = []
            for default in self._defaults:
                if self._repo.find_by_type(default.task_type.value) is not None:
                    continue
                if self._repo.find_by_name(default.name) is not None:
                    continue
                record = self._repo.create(
                    name=default.name,
                    description=default.description,
                    task_type=default.task_type.value,
                    cron_expression=default.cron_expression,
                    enabled=False,
                    next_run_at=self._calculator.next_run(default.cron_expression, self._clock()),
                    config=dict(default.config),
                )
                created.append(record)
                logger.info("scheduler.bootstrap.created", task_id=record.id, task_type=record.task_type)
            self._initialized = True
            return created
