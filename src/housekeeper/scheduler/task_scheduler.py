"""Polling scheduler dispatching due task records to their handlers.

Each tick first fails records left ``running`` past the maximum run
duration, then selects enabled records whose ``next_run_at`` has arrived and
that are not running, and runs them one after another. A record is claimed
with a conditional update (anything but ``running`` -> ``running``) before
its handler starts, so a tick and a manual trigger never run it twice at the
same time within one database.

Handlers are synchronous and run in a worker thread under a deadline. A
timed out handler thread cannot be interrupted; its record is failed and
becomes eligible again at its next run time.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

import structlog

from ..exceptions import RepositoryError, UnknownTaskTypeError
from ..repositories.scheduled_task_repository import ScheduledTaskRepository
from .handlers import HandlerRegistry
from .next_run import NextRunCalculator, ReducedCronCalculator
from .task_models import ScheduledTask, TaskResult

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TaskScheduler:
    def __init__(
        self,
        *,
        repo: ScheduledTaskRepository,
        handlers: HandlerRegistry,
        calculator: NextRunCalculator | None = None,
        clock: Callable[[], datetime] | None = None,
        tick_seconds: float = 60.0,
        max_duration_seconds: float = 3600.0,
    ) -> None:
        self._repo = repo
        self._handlers = handlers
        self._calculator = calculator or ReducedCronCalculator()
        self._clock = clock or datetime.now
        self._tick_seconds = max(0.01, float(tick_seconds))
        self._max_duration = max(0.01, float(max_duration_seconds))
        self._loop_task: asyncio.Task[None] | None = None
        self._shutdown_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @staticmethod
    async def _run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` in a worker thread to avoid blocking the event loop."""

        return await asyncio.to_thread(func, *args, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Start the polling loop; the first tick runs immediately."""
        if self.is_running:
            return
        self._shutdown_event = asyncio.Event()
        self._loop_task = asyncio.create_task(
            self._run_loop(self._shutdown_event), name="housekeeper-scheduler"
        )
        logger.info("scheduler.started", tick_seconds=self._tick_seconds)

    async def stop(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()
        task = self._loop_task
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._loop_task = None
        self._shutdown_event = None
        logger.info("scheduler.stopped")

    async def _run_loop(self, shutdown_event: asyncio.Event) -> None:
        try:
            while not shutdown_event.is_set():
                await self.tick()
                try:
                    await asyncio.wait_for(shutdown_event.wait(), timeout=self._tick_seconds)
                except asyncio.TimeoutError:
                    continue
        except asyncio.CancelledError:
            logger.debug("scheduler.loop.cancelled")
            raise

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    async def tick(self) -> list[str]:
        """Run every due task once, serially; returns the ids that ran."""
        executed: list[str] = []
        try:
            now = self._clock()
            await self._run_sync(self.reap_stale, now)
            due = await self._run_sync(self._repo.list_due, now)
            for task in due:
                if not task.is_due(now):
                    logger.warning("scheduler.task.not_due", task_id=task.id, status=task.status.value)
                    continue
                claimed_at = self._clock()
                if not await self._run_sync(self._repo.try_claim, task.id, claimed_at):
                    logger.info("scheduler.task.claim_lost", task_id=task.id)
                    continue
                await self._run_claimed(task, trigger="schedule")
                executed.append(task.id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduler.tick.failed")
        return executed

    async def run_task_manually(self, task_id: str) -> TaskResult:
        """Run ``task_id`` now regardless of its schedule."""
        try:
            task = await self._run_sync(self._repo.find, task_id)
            if task is None:
                return TaskResult.failure(f"task '{task_id}' not found")
            if not await self._run_sync(self._repo.try_claim, task.id, self._clock()):
                return TaskResult.failure(f"task '{task.name}' is already running")
        except RepositoryError as exc:
            logger.error("scheduler.manual.failed", task_id=task_id, error=str(exc))
            return TaskResult.failure(f"task store unavailable: {exc}")
        return await self._run_claimed(task, trigger="manual")

    async def _run_claimed(self, task: ScheduledTask, *, trigger: str) -> TaskResult:
        log = logger.bind(task_id=task.id, task_name=task.name, task_type=task.task_type, trigger=trigger)
        log.info("scheduler.task.started")
        begin = time.monotonic()
        try:
            handler = self._handlers.resolve(task.task_type)
            result = await asyncio.wait_for(self._run_sync(handler, task), timeout=self._max_duration)
        except UnknownTaskTypeError as exc:
            result = TaskResult.failure(str(exc))
        except asyncio.TimeoutError:
            result = TaskResult.failure(f"task exceeded its {self._max_duration:g}s deadline")
        except asyncio.CancelledError:
            cancelled = TaskResult.failure("task cancelled during shutdown", duration_ms=_elapsed_ms(begin))
            with contextlib.suppress(RepositoryError):
                await self._run_sync(self._repo.record_result, task.id, result=cancelled, next_run_at=task.next_run_at)
            raise
        except Exception as exc:
            log.exception("scheduler.task.crashed")
            result = TaskResult.failure(str(exc) or exc.__class__.__name__)
        result.duration_ms = _elapsed_ms(begin)

        next_run_at = self._next_run(task)
        if next_run_at is None:
            result = TaskResult.failure(
                f"{result.message}; invalid cron expression '{task.cron_expression}', task will not be rescheduled",
                duration_ms=result.duration_ms,
                details=result.details,
            )

        try:
            await self._run_sync(self._repo.record_result, task.id, result=result, next_run_at=next_run_at)
        except RepositoryError as exc:
            log.error("scheduler.task.record_failed", error=str(exc))
        if result.success:
            log.info("scheduler.task.completed", message=result.message, duration_ms=result.duration_ms)
        else:
            log.warning("scheduler.task.failed", message=result.message, duration_ms=result.duration_ms)
        return result

    def _next_run(self, task: ScheduledTask) -> datetime | None:
        try:
            return self._calculator.next_run(task.cron_expression, self._clock())
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------
    def reap_stale(self, now: datetime) -> list[str]:
        """Fail records stuck in ``running`` longer than the maximum duration."""
        cutoff = now - timedelta(seconds=self._max_duration)
        reaped: list[str] = []
        for task in self._repo.list_running():
            if task.last_run_at is not None and task.last_run_at >= cutoff:
                continue
            verdict = TaskResult.failure(
                f"run started at {task.last_run_at} exceeded {self._max_duration:g}s; marked failed by watchdog"
            )
            if self._repo.fail_if_running(task.id, result=verdict, started_before=cutoff):
                reaped.append(task.id)
                logger.warning("scheduler.task.reaped", task_id=task.id, last_run_at=str(task.last_run_at))
        return reaped


def _elapsed_ms(begin: float) -> int:
    return int((time.monotonic() - begin) * 1000)
