"""Cascade deletion of a root content entity with its dependents and media.

Order: embedded media of the root and its dependents, then the dependents,
then the root, then media explicitly associated with the root. A crash part
way through leaves orphaned media or dependents that the collector reclaims
later; it never leaves a root pointing at deleted dependents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..content.content_sources import CascadeSpec, references_in
from ..exceptions import AppError
from ..repositories.content_repository import ContentRepository
from ..repositories.media_object_repository import MediaObjectRepository
from .blob_store import BlobStore
from .media_models import MediaObject
from .references import ReferenceConvention

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CascadeReport:
    root_id: str
    root_found: bool = False
    root_deleted: bool = False
    media_deleted: int = 0
    dependents_deleted: int = 0
    errors: list[str] = field(default_factory=list)


class CascadeDeleter:
    """Delete a root entity described by ``spec`` together with what hangs off it."""

    def __init__(
        self,
        *,
        spec: CascadeSpec,
        content_repo: ContentRepository,
        media_repo: MediaObjectRepository,
        blob_store: BlobStore,
        convention: ReferenceConvention,
    ) -> None:
        self._spec = spec
        self._content_repo = content_repo
        self._media_repo = media_repo
        self._blob_store = blob_store
        self._convention = convention

    def delete_entity_cascade(self, root_id: str) -> CascadeReport:
        report = CascadeReport(root_id=root_id)
        root_source = self._spec.root

        root = self._content_repo.get(root_source, root_id)
        if root is None:
            logger.info("content.cascade.root_missing", extra={"kind": root_source.name, "root_id": root_id})
            return report
        report.root_found = True

        keys = references_in(root, root_source, self._convention)
        for link in self._spec.dependents:
            for child in self._content_repo.list_children(link.source, link.parent_field, root_id):
                keys |= references_in(child, link.source, self._convention)

        for key in sorted(keys):
            media = self._lookup(key, report)
            if media is not None and self._delete_media(media, report):
                report.media_deleted += 1

        for link in self._spec.dependents:
            report.dependents_deleted += self._content_repo.delete_children(
                link.source, link.parent_field, root_id
            )

        report.root_deleted = self._content_repo.delete(root_source, root_id)

        try:
            associated = self._media_repo.list_by_association(root_id)
        except AppError as exc:
            self._record_error(report, f"association lookup failed for {root_id}: {exc}")
            associated = []
        for media in associated:
            if self._delete_media(media, report):
                report.media_deleted += 1

        logger.info(
            "content.cascade.deleted",
            extra={
                "kind": root_source.name,
                "root_id": root_id,
                "media_deleted": report.media_deleted,
                "dependents_deleted": report.dependents_deleted,
                "errors": len(report.errors),
            },
        )
        return report

    def _lookup(self, key: str, report: CascadeReport) -> MediaObject | None:
        try:
            return self._media_repo.find_by_key(key)
        except AppError as exc:
            self._record_error(report, f"media lookup failed for {key}: {exc}")
            return None

    def _delete_media(self, media: MediaObject, report: CascadeReport) -> bool:
        try:
            self._blob_store.delete(media.object_key)
        except AppError as exc:
            self._record_error(report, f"blob delete failed for {media.object_key}: {exc}")
            return False
        try:
            return self._media_repo.delete(media.id)
        except AppError as exc:
            self._record_error(report, f"registry delete failed for {media.object_key}: {exc}")
            return False

    @staticmethod
    def _record_error(report: CascadeReport, message: str) -> None:
        report.errors.append(message)
        logger.warning("content.cascade.media_failed", extra={"root_id": report.root_id, "error": message})
