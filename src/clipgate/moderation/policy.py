"""Combine per-modality classifier results into one moderation decision."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..domain.models import AudioResult, AudioStatus, ModerationDecision, VisualResult
from ..repositories.media_item_repository import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PolicyEvaluator:
    """Approve only when the visual check passed and audio did not object.

    ``audio_error_blocks_approval`` controls the one asymmetric case: an audio
    error caused by infrastructure (service outage, network, storage, missing
    dependency). With the flag off such an error is treated as inconclusive
    and visual approval alone suffices; audio errors of any other kind always
    block approval.
    """

    audio_error_blocks_approval: bool = False
    retain_transcript_on_rejection: bool = False
    clock: Callable[[], datetime] = utcnow
    log: logging.Logger = field(default_factory=lambda: logger)

    def evaluate(
        self,
        visual: VisualResult,
        audio: AudioResult,
        *,
        item_id: str | None = None,
    ) -> ModerationDecision:
        audio_ok = audio.status is AudioStatus.PASSED
        audio_inconclusive = (
            audio.status is AudioStatus.ERROR
            and audio.infrastructure
            and not self.audio_error_blocks_approval
        )
        approved = visual.passed and (audio_ok or audio_inconclusive)

        if audio_inconclusive and visual.passed:
            self.log.warning(
                "moderation.policy.audio_inconclusive",
                extra={
                    "item_id": item_id,
                    "error_category": audio.error_category.value if audio.error_category else None,
                },
            )

        reason = _join_reasons(visual, audio)
        keep_metadata = approved or self.retain_transcript_on_rejection
        decision = ModerationDecision(
            approved=approved,
            visual_passed=visual.passed,
            audio_status=audio.status,
            reason=reason,
            transcript=audio.transcript if keep_metadata else None,
            keywords=tuple(audio.keywords) if keep_metadata else (),
            decided_at=self.clock(),
        )
        self.log.info(
            "moderation.policy.decided",
            extra={
                "item_id": item_id,
                "approved": approved,
                "visual_passed": visual.passed,
                "audio_status": audio.status.value,
            },
        )
        return decision


def _join_reasons(visual: VisualResult, audio: AudioResult) -> str | None:
    parts: list[str] = []
    if audio.status is not AudioStatus.PASSED and audio.reason:
        parts.append(f"Audio: {audio.reason}")
    if not visual.passed and visual.reason:
        parts.append(f"Video: {visual.reason}")
    if len(parts) == 1:
        # A single failing check is reported without its prefix.
        return parts[0].split(": ", 1)[1]
    return " | ".join(parts) or None


__all__ = ["PolicyEvaluator"]
