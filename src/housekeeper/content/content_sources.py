"""Catalogue of content kinds that may embed owned media.

Each :class:`ContentSource` names an ORM model together with the free-text
fields scanned for embeds and the fields holding bare references (an avatar
URL, a JSON list of attached images). The collector scans whichever sources
``HousekeeperSettings.scan_sources`` lists; the cascade deleter uses
:class:`CascadeSpec` to find the dependents of a root entity.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..db.db_models import Base, CommentModel, PostModel, UserModel
from ..media.references import ReferenceConvention


@dataclass(frozen=True, slots=True)
class ContentSource:
    name: str
    model: type[Base]
    text_fields: tuple[str, ...]
    reference_fields: tuple[str, ...] = ()

    @property
    def scanned_fields(self) -> tuple[str, ...]:
        return self.text_fields + self.reference_fields


@dataclass(frozen=True, slots=True)
class DependentLink:
    """Children of ``source`` point at their root through ``parent_field``."""

    source: ContentSource
    parent_field: str


@dataclass(frozen=True, slots=True)
class CascadeSpec:
    root: ContentSource
    dependents: tuple[DependentLink, ...] = ()


@dataclass(slots=True)
class ContentRecord:
    """Scanned fields of one persisted content entity."""

    kind: str
    id: str
    fields: dict[str, Any] = field(default_factory=dict)


POSTS = ContentSource("posts", PostModel, text_fields=("content", "summary"))
COMMENTS = ContentSource("comments", CommentModel, text_fields=("content",), reference_fields=("images",))
USERS = ContentSource("users", UserModel, text_fields=("bio",), reference_fields=("avatar",))

SOURCE_CATALOG: Mapping[str, ContentSource] = {
    source.name: source for source in (POSTS, COMMENTS, USERS)
}

POST_CASCADE = CascadeSpec(root=POSTS, dependents=(DependentLink(COMMENTS, "post_id"),))


def resolve_sources(
    names: Iterable[str],
    catalog: Mapping[str, ContentSource] = SOURCE_CATALOG,
) -> list[ContentSource]:
    """Map configured source names onto catalogue entries."""
    sources: list[ContentSource] = []
    for name in names:
        try:
            source = catalog[name]
        except KeyError as exc:
            known = ", ".join(sorted(catalog))
            raise ValueError(f"unknown content source '{name}' (known: {known})") from exc
        if source not in sources:
            sources.append(source)
    return sources


def references_in(
    record: ContentRecord,
    source: ContentSource,
    convention: ReferenceConvention,
) -> set[str]:
    """Return object keys referenced by ``record`` through any scanned field."""
    keys: set[str] = set()
    for name in source.text_fields:
        keys |= convention.extract(record.fields.get(name))
    for name in source.reference_fields:
        keys |= _bare_references(record.fields.get(name), convention)
    return keys


def _bare_references(value: Any, convention: ReferenceConvention) -> set[str]:
    if value is None:
        return set()
    values: Sequence[Any] = [value] if isinstance(value, str) else list(value)
    keys: set[str] = set()
    for item in values:
        if not isinstance(item, str):
            continue
        key = convention.object_key(item)
        if key is not None:
            keys.add(key)
    return keys
