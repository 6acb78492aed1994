"""Media data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class MediaObject:
    id: str
    object_key: str
    reference_url: str
    filename: str
    content_type: str
    size_bytes: int
    owner_id: str
    associated_entity_id: str | None
    used_flag: bool
    created_at: datetime

    @property
    def is_protected(self) -> bool:
        """Explicit association or the used flag exempt the object from collection."""
        return self.used_flag or self.associated_entity_id is not None
