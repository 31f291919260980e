"""Best-effort categorisation of pipeline failures for triage and messaging.

The category is derived from the typed error raised at the collaborator
boundary when one is available. Otherwise known substrings of the message are
matched. The result feeds logs and user messages only.
"""

from __future__ import annotations

from ..domain.models import ErrorCategory
from .ingest_errors import PipelineError

USER_RETRY_MESSAGE = "Processing error, please retry upload"

_SUBSTRING_RULES: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.STORAGE, ("File not found", "NOT_FOUND")),
    (ErrorCategory.SERVICE, ("PERMISSION_DENIED", "permission")),
    (ErrorCategory.STORAGE, ("Cannot access video file", "storage")),
    (ErrorCategory.SERVICE, ("Google Cloud", "Speech-to-Text", "Speech API")),
    (ErrorCategory.DEPENDENCY, ("FFmpeg", "ffmpeg")),
    (ErrorCategory.NETWORK, ("network", "timeout", "timed out", "DEADLINE_EXCEEDED")),
    (ErrorCategory.SERVICE, ("quota", "RESOURCE_EXHAUSTED")),
)

_FRIENDLY_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.STORAGE: "Media file is not accessible in the storage system",
    ErrorCategory.SERVICE: "Analysis service temporarily unavailable",
    ErrorCategory.DEPENDENCY: "Media processing dependency not available",
    ErrorCategory.NETWORK: "Network timeout during processing",
    ErrorCategory.TECHNICAL: "Moderation system error",
}


def categorize_message(message: str) -> ErrorCategory:
    """Match ``message`` against the known substrings."""

    for category, needles in _SUBSTRING_RULES:
        if any(needle in message for needle in needles):
            return category
    return ErrorCategory.TECHNICAL


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Return the diagnostic category for ``exc``."""

    if isinstance(exc, PipelineError) and exc.category is not None:
        return exc.category
    if isinstance(exc, TimeoutError):
        return ErrorCategory.NETWORK
    if isinstance(exc, FileNotFoundError):
        return ErrorCategory.STORAGE
    return categorize_message(str(exc))


def friendly_message(category: ErrorCategory, *, modality: str | None = None) -> str:
    """Operator-facing explanation for ``category``."""

    message = _FRIENDLY_MESSAGES[category]
    if modality:
        return f"{message} - cannot analyze {modality} content"
    return message


__all__ = [
    "USER_RETRY_MESSAGE",
    "categorize_error",
    "categorize_message",
    "friendly_message",
]
