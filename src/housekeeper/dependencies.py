"""Dependency wiring helpers."""

from datetime import timedelta

from fastapi import FastAPI

from .config import AppConfig
from .content.content_sources import POST_CASCADE, resolve_sources
from .media.blob_store import BlobStore, build_blob_store
from .media.cascade_delete import CascadeDeleter
from .media.media_api import files_router as media_files_router
from .media.media_api import router as media_router
from .media.media_service import MediaService
from .media.orphan_collector import OrphanCollector
from .media.references import ReferenceConvention
from .repositories.content_repository import ContentRepository
from .repositories.media_object_repository import MediaObjectRepository
from .repositories.scheduled_task_repository import ScheduledTaskRepository
from .repositories.user_repository import UserRepository
from .scheduler.bootstrap import TaskBootstrapper
from .scheduler.handlers import build_handler_registry
from .scheduler.inactive_users import InactiveUserSweep
from .scheduler.next_run import ReducedCronCalculator
from .scheduler.scheduler_api import router as scheduler_router
from .scheduler.task_scheduler import TaskScheduler
from .scheduler.task_service import ScheduledTaskService


def build_orphan_collector(config: AppConfig, *, blob_store: BlobStore | None = None) -> OrphanCollector:
    """Collector over the configured sources; shared by the app and the CLI."""
    settings = config.settings
    convention = ReferenceConvention(prefix=settings.reference_prefix, domain=settings.object_domain)
    return OrphanCollector(
        media_repo=MediaObjectRepository(config.session_factory),
        content_repo=ContentRepository(config.session_factory, convention),
        blob_store=blob_store or build_blob_store(settings),
        sources=resolve_sources(settings.scan_sources),
        grace_period=timedelta(seconds=settings.gc_grace_period_seconds),
    )


def include_routers(app: FastAPI, config: AppConfig, *, blob_store: BlobStore | None = None) -> None:
    """Mount module routers and attach services."""
    settings = config.settings
    convention = ReferenceConvention(prefix=settings.reference_prefix, domain=settings.object_domain)
    store = blob_store or build_blob_store(settings)

    media_repo = MediaObjectRepository(config.session_factory)
    content_repo = ContentRepository(config.session_factory, convention)
    task_repo = ScheduledTaskRepository(config.session_factory)
    user_repo = UserRepository(config.session_factory)
    calculator = ReducedCronCalculator()

    collector = build_orphan_collector(config, blob_store=store)
    sweep = InactiveUserSweep(user_repo, default_days=settings.inactive_user_days)
    scheduler = TaskScheduler(
        repo=task_repo,
        handlers=build_handler_registry(collector=collector, sweep=sweep),
        calculator=calculator,
        tick_seconds=settings.scheduler_tick_seconds,
        max_duration_seconds=settings.task_max_duration_seconds,
    )

    app.state.config = config
    app.state.blob_store = store
    app.state.media_repo = media_repo
    app.state.task_repo = task_repo
    app.state.media_service = MediaService(media_repo=media_repo, blob_store=store, convention=convention)
    app.state.orphan_collector = collector
    app.state.post_deleter = CascadeDeleter(
        spec=POST_CASCADE,
        content_repo=content_repo,
        media_repo=media_repo,
        blob_store=store,
        convention=convention,
    )
    app.state.scheduler = scheduler
    app.state.bootstrapper = TaskBootstrapper(task_repo, calculator=calculator)
    app.state.task_service = ScheduledTaskService(task_repo, calculator=calculator)

    app.include_router(scheduler_router)
    app.include_router(media_router)
    app.include_router(media_files_router, prefix=convention.base)
