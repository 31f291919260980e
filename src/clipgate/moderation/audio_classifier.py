"""Audio classifier: transcription followed by text moderation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..domain.models import INFRASTRUCTURE_CATEGORIES, AudioResult, AudioStatus
from ..ingest.error_categories import categorize_error, friendly_message
from ..ingest.ingest_errors import PipelineError
from ..providers.providers_base import SpeechToTextService, TranscriptionHints
from .keywords import extract_keywords
from .text_moderation import TextModerator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AudioClassifier:
    """Transcribe a staged clip and moderate the transcript.

    Silence passes. A transcription failure yields ``AudioStatus.ERROR`` with a
    diagnostic category; ``infrastructure`` is only set when the failure was
    raised as a typed pipeline error from the service boundary.
    """

    speech: SpeechToTextService
    moderator: TextModerator
    hints: TranscriptionHints = field(default_factory=TranscriptionHints)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def classify(self, staging_uri: str, *, item_id: str | None = None) -> AudioResult:
        try:
            transcript = await self.speech.transcribe(staging_uri, self.hints)
        except Exception as exc:
            category = categorize_error(exc)
            typed = isinstance(exc, PipelineError) and exc.category is not None
            self.log.error(
                "moderation.audio.transcription_failed",
                extra={
                    "item_id": item_id,
                    "staging_uri": staging_uri,
                    "error": str(exc),
                    "category": category.value,
                },
            )
            return AudioResult(
                status=AudioStatus.ERROR,
                reason=friendly_message(category, modality="audio"),
                error_category=category,
                infrastructure=typed and category in INFRASTRUCTURE_CATEGORIES,
            )

        transcript = (transcript or "").strip()
        if not transcript:
            self.log.info("moderation.audio.no_speech", extra={"item_id": item_id})
            return AudioResult(status=AudioStatus.PASSED, transcript="")

        keywords = extract_keywords(transcript)
        verdict = await self.moderator.moderate(transcript, video_context=True)
        self.log.info(
            "moderation.audio.completed",
            extra={
                "item_id": item_id,
                "passed": verdict.passed,
                "source": verdict.source,
                "keywords": keywords,
            },
        )
        if not verdict.passed:
            return AudioResult(
                status=AudioStatus.FAILED,
                transcript=transcript,
                keywords=keywords,
                reason=verdict.reason,
            )
        return AudioResult(status=AudioStatus.PASSED, transcript=transcript, keywords=keywords)


__all__ = ["AudioClassifier"]
