"""Abstract contracts of the external analysis and publishing services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..domain.models import CdnReadiness, FrameAnnotation


@dataclass(slots=True, frozen=True)
class TranscriptionHints:
    """Encoding hints sent along with a transcription request."""

    encoding: str = "MP3"
    container: str = "mp4"
    sample_rate_hertz: int = 48_000
    channel_count: int = 1
    language_code: str = "en-US"


@dataclass(slots=True)
class TextSignals:
    """Sentiment and category signals for a piece of text."""

    score: float = 0.0
    magnitude: float = 0.0
    categories: list[str] = field(default_factory=list)


@dataclass(slots=True)
class VisualAnnotations:
    """Per-frame explicit-content annotations of a staged clip."""

    frames: list[FrameAnnotation] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    annotated: bool = True


class SpeechToTextService(ABC):
    @abstractmethod
    async def transcribe(self, staging_uri: str, hints: TranscriptionHints) -> str | None:
        """Return the transcript, or ``None`` when no speech was detected."""


class TextClassificationService(ABC):
    @abstractmethod
    async def analyze(self, text: str) -> TextSignals:
        """Return sentiment/category signals for ``text``."""


class VisualAnnotationService(ABC):
    @abstractmethod
    async def annotate(self, staging_uri: str) -> VisualAnnotations:
        """Return explicit-content frame annotations for the staged clip."""


class CdnService(ABC):
    """CDN publishing service (one instance per library/zone)."""

    @abstractmethod
    async def create(self, title: str) -> str:
        """Create an empty asset and return its id."""

    @abstractmethod
    async def upload(self, asset_id: str, data: bytes) -> None:
        """Upload media bytes into an existing asset."""

    @abstractmethod
    async def status(self, asset_id: str) -> CdnReadiness:
        """Return the asset processing state."""

    @abstractmethod
    async def delete(self, asset_id: str) -> None:
        """Delete an asset."""

    @abstractmethod
    async def thumbnail_available(self, asset_id: str) -> bool:
        """Return ``True`` when the CDN serves a thumbnail for the asset."""

    @abstractmethod
    def public_url(self, asset_id: str) -> str:
        """Playback URL of the asset."""

    @abstractmethod
    def thumbnail_url(self, asset_id: str) -> str:
        """Thumbnail URL of the asset."""

    async def aclose(self) -> None:
        return None


__all__ = [
    "CdnService",
    "SpeechToTextService",
    "TextClassificationService",
    "TextSignals",
    "TranscriptionHints",
    "VisualAnnotationService",
    "VisualAnnotations",
]
