from datetime import datetime

import pytest

from src.housekeeper.exceptions import InvalidCronExpressionError, TaskNotFoundError
from src.housekeeper.repositories.scheduled_task_repository import ScheduledTaskRepository
from src.housekeeper.scheduler.task_models import TaskType
from src.housekeeper.scheduler.task_service import ScheduledTaskService


def test_create_and_update_keep_next_run_in_sync(session_factory, clock) -> None:
    service = ScheduledTaskService(ScheduledTaskRepository(session_factory), clock=clock)

    task = service.create_task(
        name="purge",
        task_type=TaskType.CLEANUP_UNUSED_IMAGES,
        cron_expression="0 2 * * *",
        config={"dryRun": True},
    )
    assert task.next_run_at == datetime(2025, 3, 11, 2, 0)
    assert task.task_type == "cleanupUnusedImages"

    updated = service.update_task(task.id, cron_expression="45 13 * * *")
    assert updated.next_run_at == datetime(2025, 3, 10, 13, 45)

    assert [t.id for t in service.list_tasks()] == [task.id]
    assert service.delete_task(task.id) is True
    with pytest.raises(TaskNotFoundError):
        service.get_task(task.id)


def test_enabling_unscheduled_task_computes_next_run(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    task = repo.create(
        name="users",
        task_type=TaskType.UPDATE_INACTIVE_USERS.value,
        cron_expression="0 3 * * *",
        next_run_at=None,
    )
    service = ScheduledTaskService(repo, clock=clock)

    enabled = service.update_task(task.id, enabled=True)

    assert enabled.enabled is True
    assert enabled.next_run_at == datetime(2025, 3, 11, 3, 0)


def test_invalid_cron_is_rejected(session_factory, clock) -> None:
    service = ScheduledTaskService(ScheduledTaskRepository(session_factory), clock=clock)

    with pytest.raises(InvalidCronExpressionError):
        service.create_task(name="bad", task_type=TaskType.CLEANUP_UNUSED_IMAGES, cron_expression="@daily")
