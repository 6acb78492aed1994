"""Pydantic schemas for the scheduled task admin API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import InvalidCronExpressionError
from .next_run import ReducedCronCalculator
from .task_models import ScheduledTask, TaskResult, TaskStatus, TaskType

_CRON = ReducedCronCalculator()


def _check_cron(value: str) -> str:
    try:
        _CRON.validate(value)
    except InvalidCronExpressionError as exc:
        raise ValueError(str(exc)) from exc
    return value


class TaskResultModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = Field(default=0, alias="durationMs")

    @classmethod
    def from_result(cls, result: TaskResult) -> "TaskResultModel":
        return cls(
            success=result.success,
            message=result.message,
            details=result.details,
            duration_ms=result.duration_ms,
        )


class TaskSnapshotModel(BaseModel):
    id: str
    name: str
    description: str
    task_type: str
    cron_expression: str
    enabled: bool
    status: TaskStatus
    last_run_at: datetime | None = None
    next_run_at: datetime | None = None
    last_result: TaskResultModel | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: ScheduledTask) -> "TaskSnapshotModel":
        return cls(
            id=task.id,
            name=task.name,
            description=task.description,
            task_type=task.task_type,
            cron_expression=task.cron_expression,
            enabled=task.enabled,
            status=task.status,
            last_run_at=task.last_run_at,
            next_run_at=task.next_run_at,
            last_result=TaskResultModel.from_result(task.last_result) if task.last_result else None,
            config=task.config,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str = Field(default="", max_length=2000)
    task_type: TaskType
    cron_expression: str
    enabled: bool = False
    config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("cron_expression")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        return _check_cron(value)


class TaskUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=2000)
    cron_expression: str | None = None
    enabled: bool | None = None
    config: dict[str, Any] | None = None

    @field_validator("cron_expression")
    @classmethod
    def validate_cron(cls, value: str | None) -> str | None:
        return _check_cron(value) if value is not None else value


class TaskListResponse(BaseModel):
    tasks: list[TaskSnapshotModel]


class TaskResponse(BaseModel):
    task: TaskSnapshotModel


class TaskExecuteResponse(BaseModel):
    result: TaskResultModel


class BootstrapResponse(BaseModel):
    created: list[TaskSnapshotModel]
    scheduler_running: bool = False
