"""Persistence layer for scheduled task records."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..db.db_models import ScheduledTaskModel
from ..exceptions import TaskNotFoundError, handle_sqlalchemy_errors
from ..scheduler.task_models import ScheduledTask, TaskResult, TaskStatus

_UPDATABLE_FIELDS = frozenset(
    {"name", "description", "cron_expression", "enabled", "next_run_at", "config", "status"}
)


class ScheduledTaskRepository:
    """Manage scheduled_task records and their run state."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        *,
        name: str,
        task_type: str,
        cron_expression: str,
        next_run_at: datetime | None,
        description: str = "",
        enabled: bool = False,
        config: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        now = datetime.utcnow()
        model = ScheduledTaskModel(
            id=uuid.uuid4().hex,
            name=name,
            description=description,
            task_type=task_type,
            cron_expression=cron_expression,
            enabled=enabled,
            status=TaskStatus.IDLE.value,
            next_run_at=next_run_at,
            config=dict(config or {}),
            created_at=now,
            updated_at=now,
        )
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                session.add(model)
                session.commit()
                return self._to_domain(model)

    def list_all(self) -> list[ScheduledTask]:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                rows = session.scalars(
                    select(ScheduledTaskModel).order_by(ScheduledTaskModel.created_at.desc())
                ).all()
                return [self._to_domain(row) for row in rows]

    def get(self, task_id: str) -> ScheduledTask:
        task = self.find(task_id)
        if task is None:
            raise TaskNotFoundError(f"Scheduled task '{task_id}' not found")
        return task

    def find(self, task_id: str) -> ScheduledTask | None:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                model = session.get(ScheduledTaskModel, task_id)
                return self._to_domain(model) if model is not None else None

    def find_by_type(self, task_type: str) -> ScheduledTask | None:
        return self._find_first(ScheduledTaskModel.task_type == task_type)

    def find_by_name(self, name: str) -> ScheduledTask | None:
        return self._find_first(ScheduledTaskModel.name == name)

    def count_by_type(self, task_type: str) -> int:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                return session.scalar(
                    select(func.count()).select_from(ScheduledTaskModel).where(
                        ScheduledTaskModel.task_type == task_type
                    )
                ) or 0

    def list_due(self, now: datetime) -> list[ScheduledTask]:
        """Enabled records whose next run has arrived and that are not running."""
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                rows = session.scalars(
                    select(ScheduledTaskModel)
                    .where(
                        ScheduledTaskModel.enabled.is_(True),
                        ScheduledTaskModel.next_run_at.is_not(None),
                        ScheduledTaskModel.next_run_at <= now,
                        ScheduledTaskModel.status != TaskStatus.RUNNING.value,
                    )
                    .order_by(ScheduledTaskModel.next_run_at)
                ).all()
                return [self._to_domain(row) for row in rows]

    def list_running(self) -> list[ScheduledTask]:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                rows = session.scalars(
                    select(ScheduledTaskModel).where(
                        ScheduledTaskModel.status == TaskStatus.RUNNING.value
                    )
                ).all()
                return [self._to_domain(row) for row in rows]

    def update(self, task_id: str, **changes: Any) -> ScheduledTask:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {', '.join(sorted(unknown))}")
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                model = session.get(ScheduledTaskModel, task_id)
                if model is None:
                    raise TaskNotFoundError(f"Scheduled task '{task_id}' not found")
                for key, value in changes.items():
                    if isinstance(value, TaskStatus):
                        value = value.value
                    setattr(model, key, value)
                model.updated_at = datetime.utcnow()
                session.commit()
                return self._to_domain(model)

    def delete(self, task_id: str) -> bool:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                model = session.get(ScheduledTaskModel, task_id)
                if model is None:
                    return False
                session.delete(model)
                session.commit()
                return True

    def try_claim(self, task_id: str, now: datetime) -> bool:
        """Atomically move a record that is not running into ``running``."""
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                result = session.execute(
                    update(ScheduledTaskModel)
                    .where(
                        ScheduledTaskModel.id == task_id,
                        ScheduledTaskModel.status != TaskStatus.RUNNING.value,
                    )
                    .values(
                        status=TaskStatus.RUNNING.value,
                        last_run_at=now,
                        updated_at=datetime.utcnow(),
                    )
                )
                session.commit()
                return result.rowcount == 1

    def record_result(
        self,
        task_id: str,
        *,
        result: TaskResult,
        next_run_at: datetime | None,
    ) -> None:
        """Finish a run: write status, result and next run time."""
        status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                session.execute(
                    update(ScheduledTaskModel)
                    .where(ScheduledTaskModel.id == task_id)
                    .values(
                        status=status.value,
                        last_result=result.to_dict(),
                        next_run_at=next_run_at,
                        updated_at=datetime.utcnow(),
                    )
                )
                session.commit()

    def fail_if_running(self, task_id: str, *, result: TaskResult, started_before: datetime) -> bool:
        """Force a stuck ``running`` record to ``failed``; no-op if it moved on."""
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                outcome = session.execute(
                    update(ScheduledTaskModel)
                    .where(
                        ScheduledTaskModel.id == task_id,
                        ScheduledTaskModel.status == TaskStatus.RUNNING.value,
                        (ScheduledTaskModel.last_run_at.is_(None))
                        | (ScheduledTaskModel.last_run_at < started_before),
                    )
                    .values(
                        status=TaskStatus.FAILED.value,
                        last_result=result.to_dict(),
                        updated_at=datetime.utcnow(),
                    )
                )
                session.commit()
                return outcome.rowcount == 1

    def _find_first(self, *criteria: Any) -> ScheduledTask | None:
        with handle_sqlalchemy_errors(entity="scheduled_task"):
            with self._session_factory() as session:
                model = session.scalar(
                    select(ScheduledTaskModel)
                    .where(*criteria)
                    .order_by(ScheduledTaskModel.created_at)
                    .limit(1)
                )
                return self._to_domain(model) if model is not None else None

    @staticmethod
    def _to_domain(model: ScheduledTaskModel) -> ScheduledTask:
        return ScheduledTask(
            id=model.id,
            name=model.name,
            description=model.description,
            task_type=model.task_type,
            cron_expression=model.cron_expression,
            enabled=model.enabled,
            status=TaskStatus(model.status),
            last_run_at=model.last_run_at,
            next_run_at=model.next_run_at,
            last_result=TaskResult.from_dict(model.last_result) if model.last_result else None,
            config=dict(model.config or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
