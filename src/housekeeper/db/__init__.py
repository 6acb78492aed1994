"""Database models and utilities."""

from .db_init import init_db
from .db_models import (
    Base,
    CommentModel,
    MediaObjectModel,
    PostModel,
    ScheduledTaskModel,
    UserModel,
)

__all__ = [
    "Base",
    "CommentModel",
    "MediaObjectModel",
    "PostModel",
    "ScheduledTaskModel",
    "UserModel",
    "init_db",
]
