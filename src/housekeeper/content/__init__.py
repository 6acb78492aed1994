"""Content kinds scanned for embedded media."""

from .content_sources import (
    COMMENTS,
    POST_CASCADE,
    POSTS,
    SOURCE_CATALOG,
    USERS,
    CascadeSpec,
    ContentRecord,
    ContentSource,
    DependentLink,
    references_in,
    resolve_sources,
)

__all__ = [
    "COMMENTS",
    "POST_CASCADE",
    "POSTS",
    "SOURCE_CATALOG",
    "USERS",
    "CascadeSpec",
    "ContentRecord",
    "ContentSource",
    "DependentLink",
    "references_in",
    "resolve_sources",
]
