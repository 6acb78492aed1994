"""Mark-and-sweep collection of media objects no content refers to.

A run loads the whole media registry as the candidate set, scans every
configured content source for embedded references, and deletes candidates
that are neither referenced nor protected (``used_flag``, an associated
entity, or younger than the grace period). Just before each delete the
object is re-checked against the registry and the content tables; this
narrows the window in which a concurrent save can lose its media but does
not close it.

With ``temp_only`` the candidate set is narrowed to objects still in the
``temp`` upload scope; the live set and the re-check are unchanged.

Failures while building the candidate or live sets abort the run with
``success=False`` before anything is deleted. Failures deleting a single
object are recorded in ``errors`` and the sweep moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..content.content_sources import ContentSource
from ..exceptions import AppError, BlobStoreError, RepositoryError, ScanFailureError
from ..repositories.content_repository import ContentRepository
from ..repositories.media_object_repository import MediaObjectRepository
from .blob_store import BlobStore
from .media_models import MediaObject
from .references import ReferenceConvention

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CollectionSummary:
    total_images: int = 0
    used_images: int = 0
    unused_images: int = 0
    deleted_images: int = 0
    skipped_images: int = 0
    errors: list[str] = field(default_factory=list)

    def to_details(self) -> dict[str, Any]:
        """Shape used in task run reports."""
        return {
            "totalScanned": self.total_images,
            "liveCount": self.used_images,
            "unusedCount": self.unused_images,
            "deletedCount": self.deleted_images,
            "skippedCount": self.skipped_images,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class CollectionResult:
    success: bool
    message: str
    summary: CollectionSummary
    dry_run: bool = False
    temp_only: bool = False


@dataclass(slots=True)
class _LiveSnapshot:
    live_keys: set[str]
    protected_ids: set[str]


class OrphanCollector:
    """Delete unreferenced, unprotected media from blob store and registry."""

    def __init__(
        self,
        *,
        media_repo: MediaObjectRepository,
        content_repo: ContentRepository,
        blob_store: BlobStore,
        sources: Sequence[ContentSource],
        grace_period: timedelta = timedelta(0),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._media_repo = media_repo
        self._content_repo = content_repo
        self._blob_store = blob_store
        self._sources = list(sources)
        self._grace_period = grace_period
        self._clock = clock or datetime.utcnow

    def collect(self, *, dry_run: bool = False, temp_only: bool = False) -> CollectionResult:
        summary = CollectionSummary()
        scope = "temporary images" if temp_only else "images"
        try:
            candidates = self._load_candidates(temp_only=temp_only)
            snapshot = self._mark(candidates)
        except ScanFailureError as exc:
            message = f"media scan failed: {exc}"
            logger.error("media.gc.scan_failed", extra={"error": str(exc)})
            summary.errors.append(message)
            return CollectionResult(
                success=False, message=message, summary=summary, dry_run=dry_run, temp_only=temp_only
            )

        unused = [
            media
            for media in candidates
            if media.id not in snapshot.protected_ids and media.object_key not in snapshot.live_keys
        ]
        summary.total_images = len(candidates)
        summary.unused_images = len(unused)
        summary.used_images = summary.total_images - summary.unused_images
        logger.info(
            "media.gc.marked",
            extra={
                "total": summary.total_images,
                "live_keys": len(snapshot.live_keys),
                "unused": summary.unused_images,
                "dry_run": dry_run,
                "temp_only": temp_only,
            },
        )

        if dry_run:
            return CollectionResult(
                success=True,
                message=f"found {summary.unused_images} unused {scope} (dry run)",
                summary=summary,
                dry_run=True,
                temp_only=temp_only,
            )

        for media in unused:
            self._sweep_one(media, snapshot, summary)

        logger.info(
            "media.gc.completed",
            extra={
                "deleted": summary.deleted_images,
                "skipped": summary.skipped_images,
                "errors": len(summary.errors),
            },
        )
        return CollectionResult(
            success=True,
            message=f"deleted {summary.deleted_images} unused {scope}",
            summary=summary,
            temp_only=temp_only,
        )

    def _load_candidates(self, *, temp_only: bool) -> list[MediaObject]:
        try:
            candidates = self._media_repo.list_all()
        except RepositoryError as exc:
            raise ScanFailureError(f"media registry unavailable: {exc}") from exc
        if temp_only:
            return [media for media in candidates if ReferenceConvention.is_temporary(media.object_key)]
        return candidates

    def _mark(self, candidates: Sequence[MediaObject]) -> _LiveSnapshot:
        try:
            live_keys = self._content_repo.collect_live_keys(self._sources)
        except RepositoryError as exc:
            raise ScanFailureError(f"content store unavailable: {exc}") from exc
        protected_ids = {media.id for media in candidates if self._is_protected(media)}
        return _LiveSnapshot(live_keys=live_keys, protected_ids=protected_ids)

    def _is_protected(self, media: MediaObject) -> bool:
        if media.is_protected:
            return True
        if self._grace_period and media.created_at > self._clock() - self._grace_period:
            return True
        return False

    def _still_unused(self, media: MediaObject, snapshot: _LiveSnapshot) -> bool:
        if media.id in snapshot.protected_ids or media.object_key in snapshot.live_keys:
            return False
        current = self._media_repo.find(media.id)
        if current is None or self._is_protected(current):
            return False
        return not self._content_repo.is_referenced(self._sources, current.reference_url)

    def _sweep_one(self, media: MediaObject, snapshot: _LiveSnapshot, summary: CollectionSummary) -> None:
        try:
            if not self._still_unused(media, snapshot):
                summary.skipped_images += 1
                logger.info("media.gc.skipped", extra={"media_id": media.id, "key": media.object_key})
                return
        except RepositoryError as exc:
            self._record_failure(summary, media, f"re-check failed for {media.object_key}: {exc}")
            return

        try:
            self._blob_store.delete(media.object_key)
        except BlobStoreError as exc:
            self._record_failure(summary, media, f"blob delete failed for {media.object_key}: {exc}")
            return

        try:
            self._media_repo.delete(media.id)
        except AppError as exc:
            self._record_failure(summary, media, f"registry delete failed for {media.object_key}: {exc}")
            return

        summary.deleted_images += 1
        logger.info(
            "media.gc.deleted",
            extra={"media_id": media.id, "key": media.object_key, "size_bytes": media.size_bytes},
        )

    @staticmethod
    def _record_failure(summary: CollectionSummary, media: MediaObject, message: str) -> None:
        summary.errors.append(message)
        summary.skipped_images += 1
        logger.warning("media.gc.delete_failed", extra={"media_id": media.id, "error": message})
