from __future__ import annotations

import httpx
import pytest

from src.clipgate.domain.models import ErrorCategory, Likelihood
from src.clipgate.ingest.ingest_errors import ClassifierError
from src.clipgate.providers.providers_base import TranscriptionHints
from src.clipgate.providers.providers_google import (
    SpeechToTextDriver,
    TextSignalsDriver,
    VisualAnnotationDriver,
)
from tests.mocks.http import ScriptedAsyncClient
from tests.mocks.pipeline import no_sleep


@pytest.fixture
def scripted(monkeypatch: pytest.MonkeyPatch) -> type[ScriptedAsyncClient]:
    ScriptedAsyncClient.reset()
    monkeypatch.setattr(httpx, "AsyncClient", ScriptedAsyncClient)
    return ScriptedAsyncClient


def _speech(**kwargs) -> SpeechToTextDriver:
    return SpeechToTextDriver(
        base_url="https://speech.test/v1/", api_key="key", sleep=no_sleep, **kwargs
    )


@pytest.mark.contract
@pytest.mark.asyncio
async def test_speech_polls_operation_and_joins_transcript(scripted) -> None:
    scripted.reset(
        (200, {"name": "op-1"}),
        (200, {"done": False}),
        (
            200,
            {
                "done": True,
                "response": {
                    "results": [
                        {"alternatives": [{"transcript": "we went fishing"}]},
                        {"alternatives": [{"transcript": " at the lake "}]},
                        {"alternatives": []},
                    ]
                },
            },
        ),
    )

    transcript = await _speech().transcribe("gs://moderation/raw-videos/i.mp4", TranscriptionHints())

    assert transcript == "we went fishing at the lake"
    first, poll, _ = scripted.requests
    assert first["url"] == "https://speech.test/v1/speech:longrunningrecognize"
    assert first["headers"]["x-goog-api-key"] == "key"
    assert first["json"]["config"]["encoding"] == "MP3"
    assert first["json"]["audio"] == {"uri": "gs://moderation/raw-videos/i.mp4"}
    assert poll["method"] == "GET"
    assert poll["url"] == "https://speech.test/v1/operations/op-1"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_speech_without_results_is_silence(scripted) -> None:
    scripted.reset((200, {"name": "op-1"}), (200, {"done": True, "response": {}}))

    assert await _speech().transcribe("gs://b/k.mp4", TranscriptionHints()) is None


@pytest.mark.contract
@pytest.mark.asyncio
async def test_operation_error_maps_rpc_code(scripted) -> None:
    scripted.reset(
        (200, {"name": "op-1"}),
        (200, {"done": True, "error": {"code": 7, "message": "caller lacks access"}}),
    )

    with pytest.raises(ClassifierError) as excinfo:
        await _speech().transcribe("gs://b/k.mp4", TranscriptionHints())

    assert excinfo.value.category is ErrorCategory.SERVICE
    assert excinfo.value.modality == "audio"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_operation_that_never_finishes_times_out(scripted) -> None:
    scripted.reset((200, {"name": "op-1"}), (200, {"done": False}), (200, {"done": False}))

    with pytest.raises(ClassifierError, match="DEADLINE_EXCEEDED") as excinfo:
        await _speech(max_poll_attempts=2).transcribe("gs://b/k.mp4", TranscriptionHints())

    assert excinfo.value.category is ErrorCategory.NETWORK


@pytest.mark.contract
@pytest.mark.asyncio
async def test_retryable_status_is_retried_once(scripted) -> None:
    scripted.reset(
        (503, {"error": {"status": "UNAVAILABLE", "message": "try later"}}),
        (200, {"name": "op-1"}),
        (200, {"done": True, "response": {"results": [{"alternatives": [{"transcript": "hi"}]}]}}),
    )

    assert await _speech().transcribe("gs://b/k.mp4", TranscriptionHints()) == "hi"
    assert len(scripted.requests) == 3


@pytest.mark.contract
@pytest.mark.asyncio
async def test_not_found_is_storage_error(scripted) -> None:
    scripted.reset((404, {"error": {"status": "NOT_FOUND", "message": "no such object"}}))

    with pytest.raises(ClassifierError, match="NOT_FOUND no such object") as excinfo:
        await _speech().transcribe("gs://b/k.mp4", TranscriptionHints())

    assert excinfo.value.category is ErrorCategory.STORAGE


@pytest.mark.contract
@pytest.mark.asyncio
async def test_timeouts_become_network_errors(scripted) -> None:
    scripted.reset(httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow"))

    with pytest.raises(ClassifierError) as excinfo:
        await _speech().transcribe("gs://b/k.mp4", TranscriptionHints())

    assert excinfo.value.category is ErrorCategory.NETWORK


@pytest.mark.contract
@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request(scripted) -> None:
    driver = SpeechToTextDriver(base_url="https://speech.test/v1", api_key="", sleep=no_sleep)

    with pytest.raises(ClassifierError) as excinfo:
        await driver.transcribe("gs://b/k.mp4", TranscriptionHints())

    assert excinfo.value.category is ErrorCategory.SERVICE
    assert scripted.requests == []


@pytest.mark.contract
@pytest.mark.asyncio
async def test_text_signals_tolerate_classification_rejection(scripted) -> None:
    scripted.reset(
        (200, {"documentSentiment": {"score": -0.8, "magnitude": 1.2}}),
        (400, {"error": {"status": "INVALID_ARGUMENT", "message": "too few tokens"}}),
    )
    driver = TextSignalsDriver(base_url="https://language.test/v1", api_key="key", sleep=no_sleep)

    signals = await driver.analyze("short text")

    assert signals.score == pytest.approx(-0.8)
    assert signals.magnitude == pytest.approx(1.2)
    assert signals.categories == []
    assert scripted.requests[1]["url"] == "https://language.test/v1/documents:classifyText"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_text_signals_collect_categories(scripted) -> None:
    scripted.reset(
        (200, {"documentSentiment": {"score": 0.2, "magnitude": 0.3}}),
        (200, {"categories": [{"name": "/Adult", "confidence": 0.9}, {"confidence": 0.1}]}),
    )
    driver = TextSignalsDriver(base_url="https://language.test/v1", api_key="key", sleep=no_sleep)

    signals = await driver.analyze("some longer text about the evening")

    assert signals.categories == ["/Adult"]


@pytest.mark.contract
@pytest.mark.asyncio
async def test_visual_annotations_are_parsed(scripted) -> None:
    scripted.reset(
        (200, {"name": "projects/p/locations/l/operations/op-9"}),
        (
            200,
            {
                "done": True,
                "response": {
                    "annotationResults": [
                        {
                            "explicitAnnotation": {
                                "frames": [
                                    {"timeOffset": "1.5s", "pornographyLikelihood": "VERY_LIKELY"},
                                    {"timeOffset": {"seconds": 2, "nanos": 500000000}, "pornographyLikelihood": "UNLIKELY"},
                                ]
                            },
                            "segmentLabelAnnotations": [
                                {"entity": {"description": "lake"}},
                                {"entity": {"description": "lake"}},
                            ],
                            "shotLabelAnnotations": [{"entity": {"description": "boat"}}],
                        }
                    ]
                },
            },
        ),
    )
    driver = VisualAnnotationDriver(base_url="https://video.test/v1", api_key="key", sleep=no_sleep)

    annotations = await driver.annotate("gs://b/k.mp4")

    assert [frame.likelihood for frame in annotations.frames] == [
        Likelihood.VERY_LIKELY,
        Likelihood.UNLIKELY,
    ]
    assert [frame.time_offset_seconds for frame in annotations.frames] == [1.5, 2.5]
    assert annotations.labels == ["lake", "boat"]
    assert annotations.annotated
    assert scripted.requests[1]["url"] == "https://video.test/v1/projects/p/locations/l/operations/op-9"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_visual_without_results_is_unannotated(scripted) -> None:
    scripted.reset((200, {"name": "op-1"}), (200, {"done": True, "response": {}}))
    driver = VisualAnnotationDriver(base_url="https://video.test/v1", api_key="key", sleep=no_sleep)

    annotations = await driver.annotate("gs://b/k.mp4")

    assert not annotations.annotated
    assert annotations.frames == []
