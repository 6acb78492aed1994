"""Domain level exceptions and helpers for repository layers."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "AppError",
    "RepositoryError",
    "NotFoundError",
    "IntegrityConstraintViolation",
    "DatabaseOperationError",
    "BlobStoreError",
    "BlobNotFoundError",
    "ScanFailureError",
    "TaskNotFoundError",
    "UnknownTaskTypeError",
    "InvalidCronExpressionError",
    "handle_sqlalchemy_errors",
]


class AppError(Exception):
    """Base class for application specific errors."""


class RepositoryError(AppError):
    """Base class for persistence layer failures."""


class NotFoundError(RepositoryError):
    """Raised when a record could not be located."""


class IntegrityConstraintViolation(RepositoryError):
    """Raised when a database constraint is violated."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


class BlobStoreError(AppError):
    """Raised when the binary store rejects an operation."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob key does not exist."""


class ScanFailureError(AppError):
    """Raised when the live reference set cannot be built."""


class TaskNotFoundError(NotFoundError):
    """Raised when a scheduled task record does not exist."""


class UnknownTaskTypeError(AppError):
    """Raised when no handler is registered for a task type."""


class InvalidCronExpressionError(ValueError):
    """Raised for cron expressions outside the supported dialect."""


@dataclass(slots=True)
class _EntityContext:
    """Internal helper describing the entity for error messages."""

    entity: str | None = None

    def format(self, message: str) -> str:
        if self.entity:
            return f"{self.entity}: {message}"
        return message


def _translate_sqlalchemy_error(exc: Exception, *, context: _EntityContext) -> RepositoryError:
    if isinstance(exc, sa_exc.IntegrityError):
        return IntegrityConstraintViolation(context.format("integrity constraint violated"))
    if isinstance(exc, sa_exc.DBAPIError):
        return DatabaseOperationError(context.format("database operation failed"))
    return RepositoryError(context.format(str(exc)))


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into domain specific ones."""

    context = _EntityContext(entity)
    try:
        yield
    except sa_exc.SQLAlchemyError as exc:
        raise _translate_sqlalchemy_error(exc, context=context) from exc
