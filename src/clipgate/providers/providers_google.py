"""httpx drivers for the speech, language and video analysis REST APIs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..domain.models import ErrorCategory, FrameAnnotation, Likelihood
from ..ingest.ingest_errors import ClassifierError
from .providers_base import (
    SpeechToTextService,
    TextClassificationService,
    TextSignals,
    TranscriptionHints,
    VisualAnnotationService,
    VisualAnnotations,
)

logger = logging.getLogger(__name__)

# google.rpc.Code values reported inside failed long-running operations.
_RPC_CODE_CATEGORIES = {
    4: ErrorCategory.NETWORK,  # DEADLINE_EXCEEDED
    5: ErrorCategory.STORAGE,  # NOT_FOUND
    7: ErrorCategory.SERVICE,  # PERMISSION_DENIED
    8: ErrorCategory.SERVICE,  # RESOURCE_EXHAUSTED
    14: ErrorCategory.SERVICE,  # UNAVAILABLE
    16: ErrorCategory.SERVICE,  # UNAUTHENTICATED
}
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(slots=True)
class GoogleApiDriver:
    """Shared request, retry and long-running-operation handling."""

    base_url: str
    api_key: str
    modality: str = "analysis"
    timeout_seconds: float = 30.0
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int = 60
    max_attempts: int = 2
    backoff_seconds: float = 2.0
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    log: logging.Logger = field(default_factory=lambda: logger)

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        if not self.api_key:
            raise ClassifierError(
                f"{self.modality} service API key is not configured (PERMISSION_DENIED)",
                modality=self.modality,
                category=ErrorCategory.SERVICE,
            )
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._send(method, url, headers=headers, json=json)
            except httpx.TimeoutException as exc:
                if attempt >= self.max_attempts:
                    raise ClassifierError(
                        f"{self.modality} request timeout: {exc}",
                        modality=self.modality,
                        category=ErrorCategory.NETWORK,
                    ) from exc
                await self.sleep(self.backoff_seconds)
                continue
            except httpx.HTTPError as exc:
                if attempt >= self.max_attempts:
                    raise ClassifierError(
                        f"{self.modality} network error: {exc}",
                        modality=self.modality,
                        category=ErrorCategory.NETWORK,
                    ) from exc
                await self.sleep(self.backoff_seconds)
                continue

            if response.status_code == 200:
                return response.json()

            if response.status_code in _RETRYABLE_STATUS and attempt < self.max_attempts:
                self.log.warning(
                    "analysis.request.retry",
                    extra={
                        "modality": self.modality,
                        "status_code": response.status_code,
                        "attempt": attempt,
                    },
                )
                await self.sleep(self.backoff_seconds)
                continue

            detail = _extract_error(response)
            self.log.error(
                "analysis.response.error",
                extra={
                    "modality": self.modality,
                    "status_code": response.status_code,
                    "error_detail": detail,
                },
            )
            raise ClassifierError(
                f"{self.modality} request failed (status={response.status_code}): {detail}",
                modality=self.modality,
                category=_category_for_status(response.status_code),
            )

        raise ClassifierError(  # pragma: no cover - loop always returns or raises
            f"{self.modality} request failed after retries",
            modality=self.modality,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: dict[str, Any] | None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.request(method, url, headers=headers, json=json)

    async def _wait_operation(self, name: str) -> dict[str, Any]:
        path = name if "/" in name else f"operations/{name}"
        for _ in range(self.max_poll_attempts):
            operation = await self._request("GET", path)
            if operation.get("done"):
                error = operation.get("error")
                if isinstance(error, dict):
                    code = int(error.get("code") or 0)
                    raise ClassifierError(
                        f"{self.modality} operation failed: {error.get('message', '')} (code={code})",
                        modality=self.modality,
                        category=_RPC_CODE_CATEGORIES.get(code, ErrorCategory.TECHNICAL),
                    )
                return operation.get("response") or {}
            await self.sleep(self.poll_interval_seconds)
        raise ClassifierError(
            f"{self.modality} operation {name} did not finish in time (DEADLINE_EXCEEDED)",
            modality=self.modality,
            category=ErrorCategory.NETWORK,
        )


@dataclass(slots=True)
class SpeechToTextDriver(GoogleApiDriver, SpeechToTextService):
    modality: str = "audio"
    model: str = "latest_long"

    async def transcribe(self, staging_uri: str, hints: TranscriptionHints) -> str | None:
        body = {
            "config": {
                "encoding": hints.encoding,
                "sampleRateHertz": hints.sample_rate_hertz,
                "audioChannelCount": hints.channel_count,
                "languageCode": hints.language_code,
                "enableAutomaticPunctuation": True,
                "enableWordTimeOffsets": False,
                "model": self.model,
            },
            "audio": {"uri": staging_uri},
        }
        started = await self._request("POST", "speech:longrunningrecognize", json=body)
        name = started.get("name")
        if not name:
            raise ClassifierError(
                "Speech API did not return an operation name",
                modality=self.modality,
                category=ErrorCategory.SERVICE,
            )
        response = await self._wait_operation(str(name))
        parts: list[str] = []
        for result in response.get("results") or []:
            alternatives = result.get("alternatives") or []
            if alternatives:
                text = (alternatives[0].get("transcript") or "").strip()
                if text:
                    parts.append(text)
        transcript = " ".join(parts).strip()
        self.log.info(
            "speech.transcription.completed",
            extra={"staging_uri": staging_uri, "transcript_len": len(transcript)},
        )
        return transcript or None


@dataclass(slots=True)
class TextSignalsDriver(GoogleApiDriver, TextClassificationService):
    modality: str = "text"

    async def analyze(self, text: str) -> TextSignals:
        document = {"document": {"type": "PLAIN_TEXT", "content": text}}
        sentiment = await self._request(
            "POST", "documents:analyzeSentiment", json={**document, "encodingType": "UTF8"}
        )
        doc_sentiment = sentiment.get("documentSentiment") or {}
        try:
            classified = await self._request("POST", "documents:classifyText", json=document)
        except ClassifierError as exc:
            # Classification rejects short inputs; sentiment alone still applies.
            self.log.debug("language.classify.skipped", extra={"error": str(exc)})
            classified = {}
        categories = [
            str(category.get("name") or "")
            for category in classified.get("categories") or []
            if category.get("name")
        ]
        return TextSignals(
            score=float(doc_sentiment.get("score") or 0.0),
            magnitude=float(doc_sentiment.get("magnitude") or 0.0),
            categories=categories,
        )


@dataclass(slots=True)
class VisualAnnotationDriver(GoogleApiDriver, VisualAnnotationService):
    modality: str = "visual"

    async def annotate(self, staging_uri: str) -> VisualAnnotations:
        body = {
            "inputUri": staging_uri,
            "features": ["EXPLICIT_CONTENT_DETECTION", "LABEL_DETECTION"],
            "videoContext": {
                "explicitContentDetectionConfig": {"model": "builtin/latest"},
            },
        }
        started = await self._request("POST", "videos:annotate", json=body)
        name = started.get("name")
        if not name:
            raise ClassifierError(
                "Video annotation did not return an operation name",
                modality=self.modality,
                category=ErrorCategory.SERVICE,
            )
        response = await self._wait_operation(str(name))
        results = response.get("annotationResults") or []
        if not results:
            return VisualAnnotations(annotated=False)
        first = results[0] or {}
        frames = [
            FrameAnnotation(
                time_offset_seconds=_parse_offset(frame.get("timeOffset")),
                likelihood=Likelihood.parse(frame.get("pornographyLikelihood")),
            )
            for frame in (first.get("explicitAnnotation") or {}).get("frames") or []
        ]
        labels: list[str] = []
        for key in ("segmentLabelAnnotations", "shotLabelAnnotations", "labelAnnotations"):
            for label in first.get(key) or []:
                description = (label.get("entity") or {}).get("description")
                if description and description not in labels:
                    labels.append(description)
        return VisualAnnotations(frames=frames, labels=labels)


def _category_for_status(status_code: int) -> ErrorCategory:
    if status_code == 404:
        return ErrorCategory.STORAGE
    if status_code in {401, 403, 429} or status_code >= 500:
        return ErrorCategory.SERVICE
    return ErrorCategory.TECHNICAL


def _parse_offset(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.rstrip("s") or 0)
        except ValueError:
            return 0.0
    if isinstance(value, dict):
        seconds = float(value.get("seconds") or 0)
        nanos = float(value.get("nanos") or 0)
        return seconds + nanos / 1e9
    return 0.0


def _extract_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        message = (error.get("message") or "").strip()
        status = (error.get("status") or "").strip()
        return " ".join(part for part in (status, message) if part)
    return str(data)[:500]


__all__ = [
    "GoogleApiDriver",
    "SpeechToTextDriver",
    "TextSignalsDriver",
    "VisualAnnotationDriver",
]
