"""Read and delete access to content entities that embed media."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence

from sqlalchemy import String, cast, delete, or_, select
from sqlalchemy.orm import Session

from ..content.content_sources import ContentRecord, ContentSource, references_in
from ..exceptions import handle_sqlalchemy_errors
from ..media.references import ReferenceConvention

SCAN_BATCH_SIZE = 500


class ContentRepository:
    """Generic access to content rows described by :class:`ContentSource`."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        convention: ReferenceConvention,
    ) -> None:
        self._session_factory = session_factory
        self._convention = convention

    def iter_records(self, source: ContentSource) -> Iterator[ContentRecord]:
        """Stream every row of ``source`` with its scanned fields."""
        model = source.model
        columns = [model.id, *(getattr(model, name) for name in source.scanned_fields)]
        with handle_sqlalchemy_errors(entity=source.name):
            with self._session_factory() as session:
                result = session.execute(select(*columns).execution_options(yield_per=SCAN_BATCH_SIZE))
                for row in result:
                    yield ContentRecord(
                        kind=source.name,
                        id=row[0],
                        fields=dict(zip(source.scanned_fields, row[1:])),
                    )

    def collect_live_keys(self, sources: Sequence[ContentSource]) -> set[str]:
        """Union of object keys referenced anywhere in ``sources``."""
        live: set[str] = set()
        for source in sources:
            for record in self.iter_records(source):
                live |= references_in(record, source, self._convention)
        return live

    def is_referenced(self, sources: Sequence[ContentSource], reference_url: str) -> bool:
        """Check the current content for ``reference_url`` with a substring query.

        Matches are deliberately loose: a longer reference sharing the prefix
        also counts, which can only keep an object alive, never delete it.
        """
        for source in sources:
            model = source.model
            clauses = [
                cast(getattr(model, name), String).contains(reference_url, autoescape=True)
                for name in source.scanned_fields
            ]
            with handle_sqlalchemy_errors(entity=source.name):
                with self._session_factory() as session:
                    hit = session.scalar(select(model.id).where(or_(*clauses)).limit(1))
            if hit is not None:
                return True
        return False

    def get(self, source: ContentSource, entity_id: str) -> ContentRecord | None:
        model = source.model
        with handle_sqlalchemy_errors(entity=source.name):
            with self._session_factory() as session:
                row = session.get(model, entity_id)
                if row is None:
                    return None
                return ContentRecord(
                    kind=source.name,
                    id=row.id,
                    fields={name: getattr(row, name) for name in source.scanned_fields},
                )

    def list_children(
        self, source: ContentSource, parent_field: str, parent_id: str
    ) -> list[ContentRecord]:
        model = source.model
        columns = [model.id, *(getattr(model, name) for name in source.scanned_fields)]
        with handle_sqlalchemy_errors(entity=source.name):
            with self._session_factory() as session:
                rows = session.execute(
                    select(*columns).where(getattr(model, parent_field) == parent_id)
                ).all()
        return [
            ContentRecord(kind=source.name, id=row[0], fields=dict(zip(source.scanned_fields, row[1:])))
            for row in rows
        ]

    def delete_children(self, source: ContentSource, parent_field: str, parent_id: str) -> int:
        model = source.model
        with handle_sqlalchemy_errors(entity=source.name):
            with self._session_factory() as session:
                result = session.execute(delete(model).where(getattr(model, parent_field) == parent_id))
                session.commit()
                return result.rowcount

    def delete(self, source: ContentSource, entity_id: str) -> bool:
        model = source.model
        with handle_sqlalchemy_errors(entity=source.name):
            with self._session_factory() as session:
                result = session.execute(delete(model).where(model.id == entity_id))
                session.commit()
                return result.rowcount > 0
