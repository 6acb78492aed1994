"""Persistence layer for media_object records."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.db_models import MediaObjectModel
from ..exceptions import NotFoundError, handle_sqlalchemy_errors
from ..media.media_models import MediaObject


class MediaObjectRepository:
    """Registry of stored media objects and their protection flags."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def register(
        self,
        *,
        object_key: str,
        reference_url: str,
        filename: str,
        owner_id: str,
        size_bytes: int,
        content_type: str = "application/octet-stream",
        associated_entity_id: str | None = None,
        used_flag: bool = False,
        created_at: datetime | None = None,
    ) -> MediaObject:
        model = MediaObjectModel(
            id=uuid.uuid4().hex,
            object_key=object_key,
            reference_url=reference_url,
            filename=filename,
            content_type=content_type,
            size_bytes=size_bytes,
            owner_id=owner_id,
            associated_entity_id=associated_entity_id,
            used_flag=used_flag,
            created_at=created_at or datetime.utcnow(),
        )
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                session.add(model)
                session.commit()
                return self._to_domain(model)

    def list_all(self) -> list[MediaObject]:
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                rows = session.scalars(
                    select(MediaObjectModel).order_by(MediaObjectModel.created_at)
                ).all()
                return [self._to_domain(row) for row in rows]

    def get(self, media_id: str) -> MediaObject:
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                model = session.get(MediaObjectModel, media_id)
                if model is None:
                    raise NotFoundError(f"Media object '{media_id}' not found")
                return self._to_domain(model)

    def find(self, media_id: str) -> MediaObject | None:
        """Return the current record or ``None`` once it has been deleted."""
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                model = session.get(MediaObjectModel, media_id)
                return self._to_domain(model) if model is not None else None

    def find_by_key(self, object_key: str) -> MediaObject | None:
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                model = session.scalar(
                    select(MediaObjectModel).where(MediaObjectModel.object_key == object_key)
                )
                return self._to_domain(model) if model is not None else None

    def list_by_association(self, entity_id: str) -> list[MediaObject]:
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                rows = session.scalars(
                    select(MediaObjectModel).where(
                        MediaObjectModel.associated_entity_id == entity_id
                    )
                ).all()
                return [self._to_domain(row) for row in rows]

    def mark_used(self, object_key: str, *, associated_entity_id: str | None = None) -> MediaObject:
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                model = session.scalar(
                    select(MediaObjectModel).where(MediaObjectModel.object_key == object_key)
                )
                if model is None:
                    raise NotFoundError(f"Media object '{object_key}' not found")
                model.used_flag = True
                if associated_entity_id is not None:
                    model.associated_entity_id = associated_entity_id
                session.commit()
                return self._to_domain(model)

    def delete(self, media_id: str) -> bool:
        """Delete the record; returns ``False`` when it was already gone."""
        with handle_sqlalchemy_errors(entity="media_object"):
            with self._session_factory() as session:
                result = session.execute(
                    delete(MediaObjectModel).where(MediaObjectModel.id == media_id)
                )
                session.commit()
                return result.rowcount > 0

    @staticmethod
    def _to_domain(model: MediaObjectModel) -> MediaObject:
        return MediaObject(
            id=model.id,
            object_key=model.object_key,
            reference_url=model.reference_url,
            filename=model.filename,
            content_type=model.content_type,
            size_bytes=model.size_bytes,
            owner_id=model.owner_id,
            associated_entity_id=model.associated_entity_id,
            used_flag=model.used_flag,
            created_at=model.created_at,
        )
