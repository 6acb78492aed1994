"""Upload registration for media embedded in content."""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from ..exceptions import BlobNotFoundError, IntegrityConstraintViolation
from ..repositories.media_object_repository import MediaObjectRepository
from .blob_store import BlobStore
from .media_models import MediaObject
from .references import ReferenceConvention


@dataclass(slots=True)
class MediaService:
    """Put uploads into the blob store and keep the registry in step.

    New uploads land under the ``temp`` scope with ``used_flag=False`` and
    stay collectable until content embeds them or :meth:`mark_used` confirms
    them.
    """

    media_repo: MediaObjectRepository
    blob_store: BlobStore
    convention: ReferenceConvention
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def upload(
        self,
        *,
        owner_id: str,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        scope_id: str | None = None,
    ) -> MediaObject:
        stored_name = self._derive_filename(filename)
        object_key = self.convention.build_object_key(owner_id, stored_name, scope_id)
        mime = content_type or mimetypes.guess_type(stored_name)[0] or "application/octet-stream"

        self.blob_store.put(object_key, data, mime)
        try:
            media = self.media_repo.register(
                object_key=object_key,
                reference_url=self.convention.reference_url(object_key),
                filename=stored_name,
                owner_id=owner_id,
                size_bytes=len(data),
                content_type=mime,
            )
        except IntegrityConstraintViolation:
            self.blob_store.delete(object_key)
            raise
        self.log.info(
            "media.upload.registered",
            extra={"media_id": media.id, "key": object_key, "size_bytes": media.size_bytes},
        )
        return media

    def mark_used(self, object_key: str, *, associated_entity_id: str | None = None) -> MediaObject:
        return self.media_repo.mark_used(object_key, associated_entity_id=associated_entity_id)

    def fetch(self, object_key: str) -> tuple[MediaObject, bytes]:
        """Return the registry entry together with the stored bytes."""
        media = self.media_repo.find_by_key(object_key)
        if media is None:
            raise BlobNotFoundError(f"object '{object_key}' is not registered")
        return media, self.blob_store.get(object_key)

    def read(self, object_key: str) -> bytes:
        return self.fetch(object_key)[1]

    @staticmethod
    def _derive_filename(filename: str) -> str:
        suffix = PurePosixPath(filename).suffix.lower() if filename else ""
        return f"{uuid.uuid4().hex}{suffix or '.bin'}"
