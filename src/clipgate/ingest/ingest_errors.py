"""Domain-specific exceptions for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.models import ErrorCategory


class PipelineError(Exception):
    """Base class for stage failures caught at the orchestrator boundary."""

    category: ErrorCategory | None = None

    def __init__(self, message: str, *, category: ErrorCategory | None = None) -> None:
        super().__init__(message)
        if category is not None:
            self.category = category


@dataclass(slots=True)
class RungAttempt:
    """Diagnostics for one transcoder recovery rung."""

    rung: str
    returncode: int | None
    timed_out: bool
    stderr_tail: str


class TranscodeError(PipelineError):
    """Raised when every recovery rung failed to produce an output."""

    def __init__(
        self,
        message: str,
        *,
        attempts: list[RungAttempt] | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        super().__init__(message, category=category)
        self.attempts = list(attempts or [])


class StagingError(PipelineError):
    """Raised when the staging store upload or verification fails."""

    category = ErrorCategory.STORAGE


class ClassifierError(PipelineError):
    """Raised by analysis collaborators; never fatal to the other modality."""

    def __init__(
        self,
        message: str,
        *,
        modality: str,
        category: ErrorCategory = ErrorCategory.TECHNICAL,
    ) -> None:
        super().__init__(message, category=category)
        self.modality = modality


class PublishError(PipelineError):
    """Raised when the CDN upload fails after approval."""

    category = ErrorCategory.SERVICE


class QuarantineError(PipelineError):
    """Raised when rejected media could not be stored for review."""

    category = ErrorCategory.SERVICE


class InvalidTransitionError(PipelineError):
    """Raised when a status change violates the item lifecycle."""


__all__ = [
    "ClassifierError",
    "InvalidTransitionError",
    "PipelineError",
    "PublishError",
    "QuarantineError",
    "RungAttempt",
    "StagingError",
    "TranscodeError",
]
