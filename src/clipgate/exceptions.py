"""State store exceptions and translation of SQLAlchemy failures.

State store errors are pipeline errors with the ``storage`` category, so a
database outage during a run ends in ``failed`` with a storage diagnosis
instead of an uncategorised crash.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, TypeVar

from sqlalchemy import exc as sa_exc

from .domain.models import ErrorCategory
from .ingest.ingest_errors import PipelineError

__all__ = [
    "DuplicateItemError",
    "NotFoundError",
    "StateStoreError",
    "StateStoreUnavailable",
    "ensure_found",
    "handle_sqlalchemy_errors",
]

T = TypeVar("T")


class StateStoreError(PipelineError):
    """Base class for state store failures."""

    category = ErrorCategory.STORAGE


class NotFoundError(StateStoreError):
    """Raised when a record could not be located."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} '{identifier}' not found")
        self.entity = entity
        self.identifier = identifier


class DuplicateItemError(StateStoreError):
    """Raised when an insert collides with an existing item id."""


class StateStoreUnavailable(StateStoreError):
    """Raised for driver level failures (locked database, lost connection)."""


def ensure_found(record: T | None, *, entity: str, identifier: str) -> T:
    """Return ``record`` or raise :class:`NotFoundError`."""

    if record is None:
        raise NotFoundError(entity, identifier)
    return record


@contextmanager
def handle_sqlalchemy_errors(
    *, entity: str, identifier: str | None = None
) -> Iterator[None]:
    """Translate SQLAlchemy errors raised inside the block."""

    label = f"{entity} '{identifier}'" if identifier else entity
    try:
        yield
    except sa_exc.IntegrityError as exc:
        raise DuplicateItemError(f"{label}: integrity constraint violated") from exc
    except sa_exc.DBAPIError as exc:
        raise StateStoreUnavailable(
            f"{label}: database operation failed ({type(exc.orig).__name__})"
        ) from exc
