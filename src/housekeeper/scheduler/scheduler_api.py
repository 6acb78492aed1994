"""Admin API routes for scheduled tasks."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..exceptions import TaskNotFoundError
from ..lifecycle import start_scheduler_if_enabled
from .bootstrap import TaskBootstrapper
from .scheduler_schemas import (
    BootstrapResponse,
    TaskSnapshotModel,
    TaskCreateRequest,
    TaskExecuteResponse,
    TaskListResponse,
    TaskResponse,
    TaskResultModel,
    TaskUpdateRequest,
)
from .task_scheduler import TaskScheduler
from .task_service import ScheduledTaskService

router = APIRouter(prefix="/api/admin", tags=["scheduled-tasks"])


def get_task_service(request: Request) -> ScheduledTaskService:
    try:
        return request.app.state.task_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("ScheduledTaskService is not configured") from exc


def get_scheduler(request: Request) -> TaskScheduler:
    try:
        return request.app.state.scheduler  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("TaskScheduler is not configured") from exc


def get_bootstrapper(request: Request) -> TaskBootstrapper:
    try:
        return request.app.state.bootstrapper  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("TaskBootstrapper is not configured") from exc


@router.get("/scheduled-tasks", response_model=TaskListResponse)
def list_tasks(service: ScheduledTaskService = Depends(get_task_service)) -> TaskListResponse:
    return TaskListResponse(tasks=[TaskSnapshotModel.from_task(task) for task in service.list_tasks()])


@router.post("/scheduled-tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreateRequest,
    service: ScheduledTaskService = Depends(get_task_service),
) -> TaskResponse:
    task = service.create_task(
        name=payload.name,
        description=payload.description,
        task_type=payload.task_type,
        cron_expression=payload.cron_expression,
        enabled=payload.enabled,
        config=payload.config,
    )
    return TaskResponse(task=TaskSnapshotModel.from_task(task))


@router.put("/scheduled-tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    payload: TaskUpdateRequest,
    service: ScheduledTaskService = Depends(get_task_service),
) -> TaskResponse:
    try:
        task = service.update_task(task_id, **payload.model_dump(exclude_none=True))
    except TaskNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return TaskResponse(task=TaskSnapshotModel.from_task(task))


@router.delete("/scheduled-tasks/{task_id}")
def delete_task(task_id: str, service: ScheduledTaskService = Depends(get_task_service)) -> dict[str, str]:
    if not service.delete_task(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Scheduled task '{task_id}' not found")
    return {"message": "task deleted"}


@router.post("/scheduled-tasks/{task_id}/execute", response_model=TaskExecuteResponse)
async def execute_task(task_id: str, scheduler: TaskScheduler = Depends(get_scheduler)) -> TaskExecuteResponse:
    result = await scheduler.run_task_manually(task_id)
    return TaskExecuteResponse(result=TaskResultModel.from_result(result))


@router.post("/scheduler/init", response_model=BootstrapResponse)
async def init_scheduler(
    request: Request,
    force: bool = Query(default=False),
    bootstrapper: TaskBootstrapper = Depends(get_bootstrapper),
) -> BootstrapResponse:
    """Seed missing defaults and make sure the polling loop is running.

    ``force`` repeats the lookup even when defaults were already seeded by
    this instance, so a deleted default comes back.
    """
    created = await asyncio.to_thread(bootstrapper.ensure_defaults, force=force)
    running = await start_scheduler_if_enabled(request.app)
    return BootstrapResponse(
        created=[TaskSnapshotModel.from_task(task) for task in created],
        scheduler_running=running,
    )
