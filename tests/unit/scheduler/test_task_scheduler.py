from __future__ import annotations

import asyncio
import threading
import time
from datetime import datetime, timedelta

from src.housekeeper.repositories.scheduled_task_repository import ScheduledTaskRepository
from src.housekeeper.scheduler.handlers import HandlerRegistry
from src.housekeeper.scheduler.task_models import ScheduledTask, TaskResult, TaskStatus, TaskType
from src.housekeeper.scheduler.task_scheduler import TaskScheduler


class RecordingHandler:
    def __init__(self, result: TaskResult | None = None) -> None:
        self.calls: list[str] = []
        self.result = result or TaskResult(success=True, message="done", details={"deletedCount": 0})

    def __call__(self, task: ScheduledTask) -> TaskResult:
        self.calls.append(task.id)
        return TaskResult(self.result.success, self.result.message, dict(self.result.details))


class CrashingHandler:
    def __call__(self, task: ScheduledTask) -> TaskResult:
        raise RuntimeError("disk on fire")


class BlockingHandler:
    def __init__(self) -> None:
        self.release = threading.Event()

    def __call__(self, task: ScheduledTask) -> TaskResult:
        self.release.wait(timeout=5)
        return TaskResult(success=True, message="late")


def _registry(cleanup, users=None) -> HandlerRegistry:
    return HandlerRegistry(
        {
            TaskType.CLEANUP_UNUSED_IMAGES: cleanup,
            TaskType.UPDATE_INACTIVE_USERS: users or RecordingHandler(),
        }
    )


def _task(repo: ScheduledTaskRepository, now: datetime, **overrides) -> ScheduledTask:
    payload = {
        "name": "cleanup",
        "task_type": TaskType.CLEANUP_UNUSED_IMAGES.value,
        "cron_expression": "0 2 * * *",
        "next_run_at": now - timedelta(minutes=1),
        "enabled": True,
    }
    payload.update(overrides)
    return repo.create(**payload)


def test_tick_runs_due_task_and_reschedules(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock())
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    executed = asyncio.run(scheduler.tick())

    assert executed == [task.id]
    assert handler.calls == [task.id]
    stored = repo.get(task.id)
    assert stored.status is TaskStatus.COMPLETED
    assert stored.last_run_at == clock()
    assert stored.next_run_at == datetime(2025, 3, 11, 2, 0)
    assert stored.last_result is not None and stored.last_result.success is True
    assert stored.last_result.duration_ms >= 0


def test_tick_skips_disabled_future_and_running(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    _task(repo, clock(), name="disabled", enabled=False)
    _task(repo, clock(), name="future", next_run_at=clock() + timedelta(hours=1))
    running = _task(repo, clock(), name="running")
    repo.try_claim(running.id, clock())
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    executed = asyncio.run(scheduler.tick())

    assert executed == []
    assert handler.calls == []
    assert repo.get(running.id).status is TaskStatus.RUNNING


def test_failed_handler_result_marks_record_failed(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler(TaskResult(success=False, message="media scan failed: boom"))
    task = _task(repo, clock())
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    asyncio.run(scheduler.tick())

    stored = repo.get(task.id)
    assert stored.status is TaskStatus.FAILED
    assert stored.last_result.message == "media scan failed: boom"
    assert stored.next_run_at == datetime(2025, 3, 11, 2, 0)


def test_handler_exception_is_contained(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    crashing = _task(repo, clock(), name="crashing")
    users_handler = RecordingHandler()
    other = _task(repo, clock(), name="users", task_type=TaskType.UPDATE_INACTIVE_USERS.value)
    scheduler = TaskScheduler(repo=repo, handlers=_registry(CrashingHandler(), users_handler), clock=clock)

    executed = asyncio.run(scheduler.tick())

    assert set(executed) == {crashing.id, other.id}
    assert repo.get(crashing.id).status is TaskStatus.FAILED
    assert repo.get(crashing.id).last_result.message == "disk on fire"
    assert repo.get(other.id).status is TaskStatus.COMPLETED


def test_unknown_task_type_fails_record(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    task = _task(repo, clock(), task_type="reindexSearch")
    scheduler = TaskScheduler(repo=repo, handlers=_registry(RecordingHandler()), clock=clock)

    asyncio.run(scheduler.tick())

    stored = repo.get(task.id)
    assert stored.status is TaskStatus.FAILED
    assert "unknown task type" in stored.last_result.message


def test_invalid_cron_is_not_rescheduled(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    task = _task(repo, clock(), cron_expression="*/5 * * * *")
    scheduler = TaskScheduler(repo=repo, handlers=_registry(RecordingHandler()), clock=clock)

    asyncio.run(scheduler.tick())
    stored = repo.get(task.id)

    assert stored.status is TaskStatus.FAILED
    assert stored.next_run_at is None
    assert "invalid cron expression" in stored.last_result.message
    assert asyncio.run(scheduler.tick()) == []


def test_non_ascii_digits_in_cron_fail_the_record(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock(), cron_expression="0 ² * * *")
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    assert asyncio.run(scheduler.tick()) == [task.id]

    stored = repo.get(task.id)
    assert handler.calls == [task.id]
    assert stored.status is TaskStatus.FAILED
    assert stored.next_run_at is None
    assert "invalid cron expression" in stored.last_result.message


def test_due_tasks_in_one_tick_run_one_after_another(session_factory, clock) -> None:
    events: list[str] = []

    class SlowHandler:
        def __call__(self, task: ScheduledTask) -> TaskResult:
            events.append(f"enter:{task.name}")
            time.sleep(0.05)
            events.append(f"exit:{task.name}")
            return TaskResult(success=True, message="done")

    repo = ScheduledTaskRepository(session_factory)
    _task(repo, clock(), name="images", next_run_at=clock() - timedelta(minutes=2))
    _task(
        repo,
        clock(),
        name="users",
        task_type=TaskType.UPDATE_INACTIVE_USERS.value,
        next_run_at=clock() - timedelta(minutes=1),
    )
    scheduler = TaskScheduler(repo=repo, handlers=_registry(SlowHandler(), SlowHandler()), clock=clock)

    executed = asyncio.run(scheduler.tick())

    assert len(executed) == 2
    assert events == ["enter:images", "exit:images", "enter:users", "exit:users"]


def test_tick_skips_records_that_are_not_due(session_factory, clock) -> None:
    class LooseRepository(ScheduledTaskRepository):
        def list_due(self, now):
            return self.list_all()

    repo = LooseRepository(session_factory)
    handler = RecordingHandler()
    due = _task(repo, clock(), name="due")
    _task(repo, clock(), name="disabled", enabled=False)
    _task(repo, clock(), name="future", next_run_at=clock() + timedelta(hours=1))
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    assert asyncio.run(scheduler.tick()) == [due.id]
    assert handler.calls == [due.id]


def test_tick_swallows_store_failures(session_factory, clock) -> None:
    class BrokenRepository(ScheduledTaskRepository):
        def list_due(self, now):
            raise RuntimeError("connection reset")

    scheduler = TaskScheduler(
        repo=BrokenRepository(session_factory),
        handlers=_registry(RecordingHandler()),
        clock=clock,
    )

    assert asyncio.run(scheduler.tick()) == []


def test_manual_run_ignores_schedule(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock(), enabled=False, next_run_at=clock() + timedelta(days=3))
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    result = asyncio.run(scheduler.run_task_manually(task.id))

    assert result.success is True
    assert handler.calls == [task.id]
    stored = repo.get(task.id)
    assert stored.status is TaskStatus.COMPLETED
    assert stored.enabled is False
    assert stored.next_run_at == datetime(2025, 3, 11, 2, 0)


def test_manual_run_reports_missing_task(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    scheduler = TaskScheduler(repo=repo, handlers=_registry(RecordingHandler()), clock=clock)

    result = asyncio.run(scheduler.run_task_manually("missing"))

    assert result.success is False
    assert "not found" in result.message


def test_manual_run_refuses_running_task(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock())
    repo.try_claim(task.id, clock())
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock)

    result = asyncio.run(scheduler.run_task_manually(task.id))

    assert result.success is False
    assert "already running" in result.message
    assert handler.calls == []


def test_deadline_fails_run(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = BlockingHandler()
    task = _task(repo, clock())
    scheduler = TaskScheduler(
        repo=repo,
        handlers=_registry(handler),
        clock=clock,
        max_duration_seconds=0.05,
    )

    async def scenario() -> TaskResult:
        try:
            return await scheduler.run_task_manually(task.id)
        finally:
            handler.release.set()

    result = asyncio.run(scenario())

    assert result.success is False
    assert "deadline" in result.message
    assert repo.get(task.id).status is TaskStatus.FAILED


def test_watchdog_fails_stale_running_records(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock())
    repo.try_claim(task.id, clock() - timedelta(hours=3))
    scheduler = TaskScheduler(
        repo=repo,
        handlers=_registry(handler),
        clock=clock,
        max_duration_seconds=3600,
    )

    executed = asyncio.run(scheduler.tick())

    # reaped, then picked up in the same tick because its next run is overdue
    assert executed == [task.id]
    assert handler.calls == [task.id]
    assert repo.get(task.id).status is TaskStatus.COMPLETED


def test_watchdog_leaves_recent_runs_alone(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    task = _task(repo, clock())
    repo.try_claim(task.id, clock() - timedelta(minutes=5))
    scheduler = TaskScheduler(repo=repo, handlers=_registry(RecordingHandler()), clock=clock)

    assert scheduler.reap_stale(clock()) == []
    assert repo.get(task.id).status is TaskStatus.RUNNING


def test_start_runs_first_tick_and_stop_is_clean(session_factory, clock) -> None:
    repo = ScheduledTaskRepository(session_factory)
    handler = RecordingHandler()
    task = _task(repo, clock())
    scheduler = TaskScheduler(repo=repo, handlers=_registry(handler), clock=clock, tick_seconds=30)

    async def scenario() -> None:
        await scheduler.start()
        assert scheduler.is_running is True
        for _ in range(100):
            if handler.calls:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())

    assert handler.calls == [task.id]
    assert scheduler.is_running is False
