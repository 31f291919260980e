from __future__ import annotations

from datetime import datetime

import pytest

from src.clipgate.domain.models import AudioResult, AudioStatus, ErrorCategory, VisualResult
from src.clipgate.moderation.policy import PolicyEvaluator

FIXED = datetime(2026, 1, 1, 12, 0, 0)


def _policy(**kwargs) -> PolicyEvaluator:
    return PolicyEvaluator(clock=lambda: FIXED, **kwargs)


def _audio_passed() -> AudioResult:
    return AudioResult(
        status=AudioStatus.PASSED, transcript="we went fishing", keywords=["fishing"]
    )


def _audio_failed() -> AudioResult:
    return AudioResult(
        status=AudioStatus.FAILED,
        transcript="that was murder",
        keywords=[],
        reason='Contains inappropriate language: "murder"',
    )


def _infra_error() -> AudioResult:
    return AudioResult(
        status=AudioStatus.ERROR,
        reason="Analysis service temporarily unavailable - cannot analyze audio content",
        error_category=ErrorCategory.SERVICE,
        infrastructure=True,
    )


@pytest.mark.unit
def test_both_passed_is_approved_with_metadata() -> None:
    decision = _policy().evaluate(VisualResult(passed=True), _audio_passed())

    assert decision.approved
    assert decision.reason is None
    assert decision.transcript == "we went fishing"
    assert decision.keywords == ("fishing",)
    assert decision.decided_at == FIXED


@pytest.mark.unit
def test_audio_failure_rejects_and_drops_transcript() -> None:
    decision = _policy().evaluate(VisualResult(passed=True), _audio_failed())

    assert not decision.approved
    assert decision.reason == 'Contains inappropriate language: "murder"'
    assert decision.transcript is None
    assert decision.keywords == ()


@pytest.mark.unit
def test_transcript_retained_when_configured() -> None:
    decision = _policy(retain_transcript_on_rejection=True).evaluate(
        VisualResult(passed=True), _audio_failed()
    )

    assert decision.transcript == "that was murder"


@pytest.mark.unit
def test_both_failing_reasons_are_joined() -> None:
    visual = VisualResult(passed=False, reason="Explicit content detected")

    decision = _policy().evaluate(visual, _audio_failed())

    assert decision.reason == (
        'Audio: Contains inappropriate language: "murder" | Video: Explicit content detected'
    )


@pytest.mark.unit
def test_visual_failure_alone_rejects() -> None:
    visual = VisualResult(passed=False, reason="Visual content analysis failed - technical error")

    decision = _policy().evaluate(visual, _audio_passed())

    assert not decision.approved
    assert not decision.visual_passed
    assert decision.reason == "Visual content analysis failed - technical error"


@pytest.mark.unit
def test_infrastructure_audio_error_is_inconclusive_by_default() -> None:
    decision = _policy().evaluate(VisualResult(passed=True), _infra_error())

    assert decision.approved
    assert decision.audio_status is AudioStatus.ERROR


@pytest.mark.unit
def test_infrastructure_audio_error_blocks_when_configured() -> None:
    decision = _policy(audio_error_blocks_approval=True).evaluate(
        VisualResult(passed=True), _infra_error()
    )

    assert not decision.approved


@pytest.mark.unit
def test_technical_audio_error_always_blocks() -> None:
    audio = AudioResult(
        status=AudioStatus.ERROR,
        reason="Moderation system error - cannot analyze audio content",
        error_category=ErrorCategory.TECHNICAL,
    )

    decision = _policy().evaluate(VisualResult(passed=True), audio)

    assert not decision.approved
