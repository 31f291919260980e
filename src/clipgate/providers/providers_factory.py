"""Factories turning settings into concrete service drivers."""

from __future__ import annotations

from ..core.config import PipelineSettings
from ..staging.staging_base import StagingStore
from ..staging.staging_local import LocalStagingStore
from ..staging.staging_s3 import S3StagingStore, create_s3_client
from .providers_base import TranscriptionHints
from .providers_cdn import CdnDriver
from .providers_google import SpeechToTextDriver, TextSignalsDriver, VisualAnnotationDriver


def create_staging_store(settings: PipelineSettings) -> StagingStore:
    """Instantiate the staging backend selected by ``staging_backend``."""
    backend = settings.staging_backend.lower()
    if backend == "local":
        return LocalStagingStore(settings.staging_local_root)
    if backend == "s3":
        client = create_s3_client(
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            timeout_seconds=settings.staging_timeout_seconds,
        )
        return S3StagingStore(client)
    raise ValueError(f"Unsupported staging backend '{settings.staging_backend}'")


def _analysis_options(settings: PipelineSettings) -> dict[str, object]:
    return {
        "api_key": settings.analysis_api_key,
        "timeout_seconds": settings.analysis_request_timeout_seconds,
        "poll_interval_seconds": settings.analysis_poll_interval_seconds,
        "max_poll_attempts": settings.analysis_max_poll_attempts,
    }


def create_speech_driver(settings: PipelineSettings) -> SpeechToTextDriver:
    return SpeechToTextDriver(base_url=settings.speech_api_url, **_analysis_options(settings))


def create_text_driver(settings: PipelineSettings) -> TextSignalsDriver:
    return TextSignalsDriver(base_url=settings.language_api_url, **_analysis_options(settings))


def create_visual_driver(settings: PipelineSettings) -> VisualAnnotationDriver:
    return VisualAnnotationDriver(base_url=settings.video_api_url, **_analysis_options(settings))


def transcription_hints(settings: PipelineSettings) -> TranscriptionHints:
    return TranscriptionHints(
        sample_rate_hertz=settings.speech_sample_rate_hertz,
        language_code=settings.speech_language,
    )


def create_cdn_driver(settings: PipelineSettings, *, zone: str = "public") -> CdnDriver:
    """Return the CDN driver of the ``public`` or ``quarantine`` library."""
    if zone == "public":
        library_id, hostname = settings.cdn_library_id, settings.cdn_hostname
    elif zone == "quarantine":
        library_id, hostname = settings.quarantine_library_id, settings.quarantine_hostname
    else:
        raise ValueError(f"Unsupported CDN zone '{zone}'")
    return CdnDriver(
        api_url=settings.cdn_api_url,
        library_id=library_id,
        api_key=settings.cdn_api_key,
        hostname=hostname,
        zone=zone,
        timeout_seconds=settings.cdn_timeout_seconds,
    )


__all__ = [
    "create_cdn_driver",
    "create_speech_driver",
    "create_staging_store",
    "create_text_driver",
    "create_visual_driver",
    "transcription_hints",
]
