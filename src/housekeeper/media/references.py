"""Embedded media reference scanning and the object key convention.

Content embeds owned media as ``{reference_prefix}/{object_key}``, either as a
markdown image (``![alt](ref)``) or as a raw ``<img src="ref">`` tag. Object
keys are hierarchical: ``{domain}/{owner_id}/{scope_id|temp}/{filename}``.
References that do not start with the owned prefix are external and never
returned by the scanner.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_REFERENCE_PREFIX = "/media"
TEMP_SCOPE = "temp"

_MARKDOWN_IMAGE = re.compile(
    r"!\[(?:[^\[\]]|\[[^\[\]]*\])*\]\(\s*<?([^)\s>]+)>?(?:\s+[\"'][^)]*[\"'])?\s*\)"
)
_HTML_IMAGE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)


def _normalize_prefix(prefix: str) -> str:
    normalized = "/" + prefix.strip().strip("/")
    if normalized == "/":
        raise ValueError("reference prefix must not be empty")
    return normalized


def object_key_from_reference(reference: str, prefix: str = DEFAULT_REFERENCE_PREFIX) -> str | None:
    """Return the object key behind ``reference`` or ``None`` for foreign URLs."""
    base = _normalize_prefix(prefix) + "/"
    candidate = reference.strip()
    if not candidate.startswith(base):
        return None
    key = candidate[len(base):]
    for separator in ("?", "#"):
        key = key.split(separator, 1)[0]
    key = key.strip("/")
    return key or None


def reference_from_object_key(object_key: str, prefix: str = DEFAULT_REFERENCE_PREFIX) -> str:
    return f"{_normalize_prefix(prefix)}/{object_key.strip('/')}"


def extract_references(text: str | None, prefix: str = DEFAULT_REFERENCE_PREFIX) -> set[str]:
    """Return object keys of every owned image embedded in ``text``."""
    if not text:
        return set()
    keys: set[str] = set()
    for pattern in (_MARKDOWN_IMAGE, _HTML_IMAGE):
        for match in pattern.finditer(text):
            key = object_key_from_reference(match.group(1), prefix)
            if key is not None:
                keys.add(key)
    return keys


@dataclass(frozen=True, slots=True)
class ReferenceConvention:
    """Bind the key/reference helpers to configured prefix and domain."""

    prefix: str = DEFAULT_REFERENCE_PREFIX
    domain: str = "images"

    def build_object_key(self, owner_id: str, filename: str, scope_id: str | None = None) -> str:
        for part, label in ((owner_id, "owner_id"), (filename, "filename")):
            if not part or "/" in part:
                raise ValueError(f"{label} must be a non-empty path segment")
        scope = scope_id or TEMP_SCOPE
        if "/" in scope:
            raise ValueError("scope_id must be a single path segment")
        return f"{self.domain}/{owner_id}/{scope}/{filename}"

    @property
    def base(self) -> str:
        """Normalized prefix, e.g. ``/media``."""
        return _normalize_prefix(self.prefix)

    def reference_url(self, object_key: str) -> str:
        return reference_from_object_key(object_key, self.prefix)

    def object_key(self, reference: str) -> str | None:
        return object_key_from_reference(reference, self.prefix)

    def extract(self, text: str | None) -> set[str]:
        return extract_references(text, self.prefix)

    @staticmethod
    def is_temporary(object_key: str) -> bool:
        parts = object_key.split("/")
        return len(parts) >= 4 and parts[2] == TEMP_SCOPE
