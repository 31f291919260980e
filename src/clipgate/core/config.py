"""Pipeline settings loaded from the environment.

Every option can be overridden with a ``CLIPGATE_`` prefixed variable, e.g.
``CLIPGATE_WORKER_CONCURRENCY=4``. Credentials default to empty strings so a
missing key surfaces as a categorised service error at call time instead of
an import failure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_scratch_root() -> Path:
    return Path("./var/scratch")


def _default_staging_root() -> Path:
    return Path("./var/staging")


class PipelineSettings(BaseSettings):
    """Pydantic settings container for the moderation pipeline."""

    model_config = SettingsConfigDict(env_prefix="CLIPGATE_", extra="ignore")

    database_url: str = Field(
        default="sqlite:///clipgate.db",
        description="SQLAlchemy URL of the state store.",
    )
    scratch_root: Path = Field(
        default_factory=_default_scratch_root,
        description="Local scratch directory; one sub-directory per media item.",
    )
    scratch_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="Age after which orphaned scratch directories are swept.",
    )

    # Staging store -------------------------------------------------------
    staging_backend: Literal["local", "s3"] = Field(
        default="local",
        description="Object store used to expose media to analysis services.",
    )
    staging_bucket: str = Field(
        default="clipgate-moderation",
        description="Bucket holding staged media.",
    )
    staging_prefix: str = Field(
        default="raw-videos",
        description="Key prefix for staged media objects.",
    )
    staging_local_root: Path = Field(
        default_factory=_default_staging_root,
        description="Filesystem root emulating buckets for the local backend.",
    )
    staging_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout applied to each staging store call.",
    )
    s3_region: str = Field(default="us-east-1", description="AWS region for S3 staging.")
    s3_endpoint_url: str | None = Field(
        default=None,
        description="Optional S3-compatible endpoint (MinIO, GCS interoperability).",
    )
    s3_access_key: str | None = Field(default=None, description="S3 access key id.")
    s3_secret_key: str | None = Field(default=None, description="S3 secret access key.")

    # Transcoder ----------------------------------------------------------
    ffmpeg_binary: str = Field(default="ffmpeg", description="Transcoder executable.")
    ffprobe_binary: str = Field(default="ffprobe", description="Duration probe executable.")
    probe_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Timeout of the duration probe."
    )
    remux_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Timeout of the direct remux rung."
    )
    repair_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Timeout of the aggressive repair rung."
    )
    transcode_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Timeout of the full transcode rung."
    )

    # Analysis services ---------------------------------------------------
    analysis_api_key: str = Field(
        default="",
        description="API key sent to speech, language and video analysis services.",
    )
    speech_api_url: str = Field(
        default="https://speech.googleapis.com/v1",
        description="Base URL of the speech-to-text service.",
    )
    language_api_url: str = Field(
        default="https://language.googleapis.com/v1",
        description="Base URL of the text classification service.",
    )
    video_api_url: str = Field(
        default="https://videointelligence.googleapis.com/v1",
        description="Base URL of the visual annotation service.",
    )
    analysis_request_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout of a single analysis HTTP request."
    )
    analysis_poll_interval_seconds: float = Field(
        default=5.0, ge=0, description="Delay between long-running operation polls."
    )
    analysis_max_poll_attempts: int = Field(
        default=60, ge=1, description="Polls before a long-running operation times out."
    )
    classification_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound for each classifier within a pipeline run.",
    )
    speech_language: str = Field(default="en-US", description="Transcription language.")
    speech_sample_rate_hertz: int = Field(
        default=48_000, ge=8_000, description="Sample rate hint sent with transcription requests."
    )
    text_moderation_enabled: bool = Field(
        default=True,
        description="Consult the remote text classifier after the blocklist check.",
    )

    # Policy --------------------------------------------------------------
    visual_very_likely_frame_limit: int = Field(
        default=3,
        ge=1,
        description="Frames at the top likelihood level that force a visual rejection.",
    )
    visual_top_two_ratio: float = Field(
        default=0.3,
        gt=0,
        le=1,
        description="Share of LIKELY/VERY_LIKELY frames that forces a visual rejection.",
    )
    toxicity_threshold: float = Field(
        default=0.7, ge=0, le=1, description="General text toxicity threshold."
    )
    video_toxicity_threshold: float = Field(
        default=0.5, ge=0, le=1, description="Stricter toxicity threshold for transcripts."
    )
    audio_error_blocks_approval: bool = Field(
        default=False,
        description=(
            "When true an audio infrastructure error blocks approval. The default "
            "lets visual approval stand on its own for infrastructure errors."
        ),
    )
    retain_transcript_on_rejection: bool = Field(
        default=False,
        description="Keep transcript and keywords on rejected decisions.",
    )

    # CDN -----------------------------------------------------------------
    cdn_api_url: str = Field(
        default="https://video.bunnycdn.com",
        description="Base URL of the CDN publishing API.",
    )
    cdn_api_key: str = Field(default="", description="CDN API access key.")
    cdn_library_id: str = Field(default="", description="Public video library id.")
    cdn_hostname: str = Field(default="cdn.example.net", description="Public CDN host.")
    quarantine_library_id: str = Field(
        default="", description="Quarantine library id, never exposed publicly."
    )
    quarantine_hostname: str = Field(
        default="quarantine.example.net", description="Quarantine CDN host."
    )
    cdn_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Timeout of CDN create/upload calls."
    )
    cdn_poll_interval_seconds: float = Field(
        default=3.0, ge=0, description="Delay between CDN readiness polls."
    )
    cdn_max_poll_attempts: int = Field(
        default=20, ge=1, description="Readiness polls before publication proceeds."
    )

    # Workers and recovery --------------------------------------------------
    worker_concurrency: int = Field(
        default=2, ge=1, description="Number of concurrent pipeline workers."
    )
    recovery_grace_seconds: int = Field(
        default=120, ge=0, description="Age before an in-flight item is considered stuck."
    )
    recovery_batch_size: int = Field(
        default=5, ge=1, description="Stuck items re-enqueued per recovery scan."
    )
    recovery_interval_seconds: float = Field(
        default=60.0, ge=1, description="Delay between recovery scans."
    )
    scratch_cleanup_interval_seconds: float = Field(
        default=900.0, ge=1, description="Delay between scratch TTL sweeps."
    )

    # Downstream records ----------------------------------------------------
    record_webhooks: dict[str, str] = Field(
        default_factory=dict,
        description="Mapping of item kind to the webhook receiving final results.",
    )
    record_webhook_token: str = Field(
        default="", description="Bearer token sent to downstream record webhooks."
    )

    log_level: str = Field(default="INFO", description="Root logging level.")

    @classmethod
    def build_default(cls) -> "PipelineSettings":
        """Construct settings from the current environment."""

        return cls()


__all__ = ["PipelineSettings"]
