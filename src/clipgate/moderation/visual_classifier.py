"""Visual classifier: aggregate per-frame explicit-content likelihoods."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..domain.models import FrameAnnotation, Likelihood, VisualResult
from ..ingest.error_categories import categorize_error
from ..providers.providers_base import VisualAnnotationService

logger = logging.getLogger(__name__)

VISUAL_TECHNICAL_FAILURE = "Visual content analysis failed - technical error"


@dataclass(slots=True, frozen=True)
class VisualThresholds:
    """Two-threshold rejection rule.

    Reject when ``very_likely_limit`` frames sit at the top level, or when the
    share of frames at the top two levels exceeds ``top_two_ratio``.
    """

    very_likely_limit: int = 3
    top_two_ratio: float = 0.3


def judge_frames(
    frames: Sequence[FrameAnnotation], thresholds: VisualThresholds = VisualThresholds()
) -> VisualResult:
    total = len(frames)
    very_likely = sum(1 for frame in frames if frame.likelihood is Likelihood.VERY_LIKELY)
    likely = sum(1 for frame in frames if frame.likelihood is Likelihood.LIKELY)

    if total == 0:
        return VisualResult(passed=True)

    if very_likely >= thresholds.very_likely_limit:
        return VisualResult(
            passed=False,
            reason=(
                f"Explicit content detected: {very_likely} of {total} frames "
                "at the highest likelihood"
            ),
            frames_total=total,
            very_likely_frames=very_likely,
            likely_frames=likely,
        )

    ratio = (likely + very_likely) / total
    if ratio > thresholds.top_two_ratio:
        return VisualResult(
            passed=False,
            reason=(
                f"Explicit content detected: {likely + very_likely} of {total} frames "
                f"({ratio:.0%}) likely explicit"
            ),
            frames_total=total,
            very_likely_frames=very_likely,
            likely_frames=likely,
        )

    return VisualResult(
        passed=True,
        frames_total=total,
        very_likely_frames=very_likely,
        likely_frames=likely,
    )


@dataclass(slots=True)
class VisualClassifier:
    """Run visual annotation for a staged clip and apply the frame thresholds.

    Any error from the annotation service fails closed.
    """

    service: VisualAnnotationService
    thresholds: VisualThresholds = field(default_factory=VisualThresholds)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def classify(self, staging_uri: str, *, item_id: str | None = None) -> VisualResult:
        try:
            annotations = await self.service.annotate(staging_uri)
        except Exception as exc:
            self.log.error(
                "moderation.visual.error",
                extra={
                    "item_id": item_id,
                    "staging_uri": staging_uri,
                    "error": str(exc),
                    "category": categorize_error(exc).value,
                },
            )
            return VisualResult(passed=False, reason=VISUAL_TECHNICAL_FAILURE, errored=True)

        if not annotations.annotated:
            self.log.info(
                "moderation.visual.no_annotations",
                extra={"item_id": item_id, "staging_uri": staging_uri},
            )
            return VisualResult(passed=True, labels=list(annotations.labels))

        result = judge_frames(annotations.frames, self.thresholds)
        result.labels = list(annotations.labels)
        self.log.info(
            "moderation.visual.completed",
            extra={
                "item_id": item_id,
                "passed": result.passed,
                "frames_total": result.frames_total,
                "very_likely_frames": result.very_likely_frames,
                "likely_frames": result.likely_frames,
            },
        )
        return result


__all__ = [
    "VISUAL_TECHNICAL_FAILURE",
    "VisualClassifier",
    "VisualThresholds",
    "judge_frames",
]
