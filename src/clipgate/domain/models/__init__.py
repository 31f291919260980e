"""Domain models for the ingestion and moderation pipeline.

The dataclasses below mirror the lifecycle of a single uploaded clip
(:class:`MediaItem`) and the verdict produced for it
(:class:`ModerationDecision`). Statuses are plain ``str`` enums so they can be
stored verbatim in the state store and compared with raw column values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Mapping


class ItemKind(str, Enum):
    """Call site that submitted the clip; selects the downstream record."""

    PRIMARY_POST = "primary_post"
    REPLY_COMMENT = "reply_comment"
    THREAD_MESSAGE = "thread_message"


class ItemStatus(str, Enum):
    """Lifecycle states of a :class:`MediaItem`.

    ``uploading`` is assigned at intake. ``approved``, ``rejected`` and
    ``failed`` are terminal for the pipeline; ``under_appeal`` is reserved for
    the external appeal workflow and is reachable only from ``approved`` or
    ``rejected``.
    """

    UPLOADING = "uploading"
    PENDING_MODERATION = "pending_moderation"
    APPROVED = "approved"
    REJECTED = "rejected"
    FAILED = "failed"
    UNDER_APPEAL = "under_appeal"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ItemStatus.APPROVED, ItemStatus.REJECTED, ItemStatus.FAILED}
)
RECOVERABLE_STATUSES = (ItemStatus.UPLOADING, ItemStatus.PENDING_MODERATION)

# Transitions the pipeline itself may perform.
PIPELINE_TRANSITIONS: Mapping[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.UPLOADING: frozenset(
        {ItemStatus.PENDING_MODERATION, ItemStatus.FAILED}
    ),
    ItemStatus.PENDING_MODERATION: frozenset(
        {ItemStatus.APPROVED, ItemStatus.REJECTED, ItemStatus.FAILED}
    ),
}

# Transitions reserved for the appeal workflow.
APPEAL_TRANSITIONS: Mapping[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.APPROVED: frozenset({ItemStatus.UNDER_APPEAL}),
    ItemStatus.REJECTED: frozenset({ItemStatus.UNDER_APPEAL}),
    ItemStatus.UNDER_APPEAL: frozenset({ItemStatus.APPROVED, ItemStatus.REJECTED}),
}


class AudioStatus(str, Enum):
    """Outcome of the audio classifier."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class ErrorCategory(str, Enum):
    """Diagnostic buckets used for operator triage and user messaging."""

    TECHNICAL = "technical"
    DEPENDENCY = "dependency"
    SERVICE = "service"
    STORAGE = "storage"
    NETWORK = "network"


INFRASTRUCTURE_CATEGORIES = frozenset(
    {
        ErrorCategory.DEPENDENCY,
        ErrorCategory.SERVICE,
        ErrorCategory.STORAGE,
        ErrorCategory.NETWORK,
    }
)


class Likelihood(IntEnum):
    """Five-level ordinal scale reported by the visual annotation service."""

    UNKNOWN = 0
    VERY_UNLIKELY = 1
    UNLIKELY = 2
    POSSIBLE = 3
    LIKELY = 4
    VERY_LIKELY = 5

    @classmethod
    def parse(cls, value: object) -> "Likelihood":
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.UNKNOWN
        name = str(value or "").strip().upper()
        return cls.__members__.get(name, cls.UNKNOWN)


class CdnReadiness(IntEnum):
    """Asset processing states reported by the CDN publishing service."""

    CREATED = 0
    UPLOADED = 1
    PROCESSING = 2
    TRANSCODING = 3
    FINISHED = 4
    ERROR = 5
    UPLOAD_FAILED = 6

    @property
    def is_failure(self) -> bool:
        return self in {CdnReadiness.ERROR, CdnReadiness.UPLOAD_FAILED}


@dataclass(slots=True, frozen=True)
class FrameAnnotation:
    """Explicit-content likelihood for a single sampled frame."""

    time_offset_seconds: float
    likelihood: Likelihood


@dataclass(slots=True)
class VisualResult:
    """Verdict of the visual classifier."""

    passed: bool
    reason: str | None = None
    frames_total: int = 0
    very_likely_frames: int = 0
    likely_frames: int = 0
    labels: list[str] = field(default_factory=list)
    errored: bool = False


@dataclass(slots=True)
class AudioResult:
    """Verdict of the audio classifier.

    ``infrastructure`` is set only when the error came from a typed
    collaborator failure whose category is an infrastructure one.
    """

    status: AudioStatus
    transcript: str | None = None
    keywords: list[str] = field(default_factory=list)
    reason: str | None = None
    error_category: ErrorCategory | None = None
    infrastructure: bool = False


@dataclass(slots=True, frozen=True)
class ModerationDecision:
    """Immutable moderation verdict for one pipeline run."""

    approved: bool
    visual_passed: bool
    audio_status: AudioStatus
    reason: str | None = None
    transcript: str | None = None
    keywords: tuple[str, ...] = ()
    decided_at: datetime | None = None


@dataclass(slots=True)
class PublishResult:
    """Public URLs returned by the publish manager on approval."""

    asset_id: str
    public_url: str
    thumbnail_url: str
    thumbnail_placeholder: bool = False


@dataclass(slots=True)
class MediaItem:
    """Unit of work flowing through the pipeline."""

    id: str
    source_path: Path
    kind: ItemKind
    status: ItemStatus = ItemStatus.UPLOADING
    declared_duration: float | None = None
    title: str | None = None
    category: str | None = None
    normalized_path: Path | None = None
    staging_uri: str | None = None
    decision: ModerationDecision | None = None
    public_url: str | None = None
    thumbnail_url: str | None = None
    cdn_asset_id: str | None = None
    quarantine_ref: str | None = None
    failure_reason: str | None = None
    error_category: ErrorCategory | None = None
    user_message: str | None = None
    attempts: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "APPEAL_TRANSITIONS",
    "AudioResult",
    "AudioStatus",
    "CdnReadiness",
    "ErrorCategory",
    "FrameAnnotation",
    "INFRASTRUCTURE_CATEGORIES",
    "ItemKind",
    "ItemStatus",
    "Likelihood",
    "MediaItem",
    "ModerationDecision",
    "PIPELINE_TRANSITIONS",
    "PublishResult",
    "RECOVERABLE_STATUSES",
    "TERMINAL_STATUSES",
    "VisualResult",
]
