"""Lifecycle helpers wiring the scheduler into FastAPI startup."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .exceptions import RepositoryError

logger = logging.getLogger(__name__)


async def startup_scheduler(app: FastAPI) -> None:
    """Seed default tasks, then start polling unless disabled."""
    try:
        created = await asyncio.to_thread(app.state.bootstrapper.ensure_defaults)
    except RepositoryError:
        logger.exception("scheduler.bootstrap.failed")
    else:
        if created:
            logger.info("scheduler.bootstrap.done", extra={"created": len(created)})

    await start_scheduler_if_enabled(app)


async def start_scheduler_if_enabled(app: FastAPI) -> bool:
    """Start polling unless disabled; returns whether the scheduler runs."""
    config = app.state.config
    if not config.settings.scheduler_enabled or getattr(app.state, "disable_scheduler", False):
        logger.info("scheduler.startup.skipped")
        return False
    await app.state.scheduler.start()
    return True


async def shutdown_scheduler(app: FastAPI) -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None and scheduler.is_running:
        await scheduler.stop()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup_scheduler(app)
    try:
        yield
    finally:
        await shutdown_scheduler(app)


__all__ = ["lifespan", "shutdown_scheduler", "start_scheduler_if_enabled", "startup_scheduler"]
