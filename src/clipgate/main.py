"""Pipeline entry point: wire collaborators and run the worker service."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass

from .config import AppConfig, load_config
from .ingest.ingest_service import IngestService
from .lifecycle import run_periodic_recovery, run_periodic_scratch_cleanup
from .logging import configure_logging
from .media.temp_media_store import TempMediaStore
from .media.transcoder import FFmpegTranscoder
from .moderation.audio_classifier import AudioClassifier
from .moderation.policy import PolicyEvaluator
from .moderation.text_moderation import TextModerator
from .moderation.visual_classifier import VisualClassifier, VisualThresholds
from .providers.providers_factory import (
    create_cdn_driver,
    create_speech_driver,
    create_staging_store,
    create_text_driver,
    create_visual_driver,
    transcription_hints,
)
from .publishing.publish_manager import PublishManager
from .records.record_updaters import RecordRouter
from .repositories.media_item_repository import MediaItemRepository
from .staging.staging_client import StagingClient
from .workers.pipeline_orchestrator import PipelineOrchestrator
from .workers.recovery import RecoveryScanner
from .workers.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Pipeline:
    """Fully wired pipeline components sharing one configuration."""

    config: AppConfig
    repository: MediaItemRepository
    scratch: TempMediaStore
    orchestrator: PipelineOrchestrator
    pool: WorkerPool
    ingest: IngestService
    recovery: RecoveryScanner


def build_pipeline(config: AppConfig) -> Pipeline:
    settings = config.settings
    repository = MediaItemRepository(config.session_factory)
    scratch = TempMediaStore(
        root=config.scratch_paths.root,
        ttl_seconds=settings.scratch_ttl_hours * 3600,
    )
    transcoder = FFmpegTranscoder(
        scratch=scratch,
        ffmpeg_binary=settings.ffmpeg_binary,
        ffprobe_binary=settings.ffprobe_binary,
        remux_timeout_seconds=settings.remux_timeout_seconds,
        repair_timeout_seconds=settings.repair_timeout_seconds,
        transcode_timeout_seconds=settings.transcode_timeout_seconds,
        probe_timeout_seconds=settings.probe_timeout_seconds,
    )
    staging = StagingClient(
        store=create_staging_store(settings),
        bucket=settings.staging_bucket,
        prefix=settings.staging_prefix,
        timeout_seconds=settings.staging_timeout_seconds,
    )
    moderator = TextModerator(
        classifier=create_text_driver(settings) if settings.text_moderation_enabled else None,
        threshold=settings.toxicity_threshold,
        video_threshold=settings.video_toxicity_threshold,
    )
    visual = VisualClassifier(
        service=create_visual_driver(settings),
        thresholds=VisualThresholds(
            very_likely_limit=settings.visual_very_likely_frame_limit,
            top_two_ratio=settings.visual_top_two_ratio,
        ),
    )
    audio = AudioClassifier(
        speech=create_speech_driver(settings),
        moderator=moderator,
        hints=transcription_hints(settings),
    )
    policy = PolicyEvaluator(
        audio_error_blocks_approval=settings.audio_error_blocks_approval,
        retain_transcript_on_rejection=settings.retain_transcript_on_rejection,
    )
    publisher = PublishManager(
        cdn=create_cdn_driver(settings, zone="public"),
        quarantine_cdn=create_cdn_driver(settings, zone="quarantine"),
        poll_interval_seconds=settings.cdn_poll_interval_seconds,
        max_poll_attempts=settings.cdn_max_poll_attempts,
    )
    orchestrator = PipelineOrchestrator(
        repository=repository,
        scratch=scratch,
        transcoder=transcoder,
        staging=staging,
        visual=visual,
        audio=audio,
        policy=policy,
        publisher=publisher,
        records=RecordRouter.from_webhooks(
            settings.record_webhooks, token=settings.record_webhook_token
        ),
        classification_timeout_seconds=settings.classification_timeout_seconds,
    )
    pool = WorkerPool(orchestrator.run, concurrency=settings.worker_concurrency)
    ingest = IngestService(repository=repository, scratch=scratch, submit=pool.submit)
    recovery = RecoveryScanner(
        repository=repository,
        pool=pool,
        grace_seconds=settings.recovery_grace_seconds,
        batch_size=settings.recovery_batch_size,
    )
    return Pipeline(
        config=config,
        repository=repository,
        scratch=scratch,
        orchestrator=orchestrator,
        pool=pool,
        ingest=ingest,
        recovery=recovery,
    )


async def serve(config: AppConfig | None = None) -> None:
    """Run workers, recovery and scratch sweeps until SIGINT/SIGTERM."""
    cfg = config or load_config()
    configure_logging(cfg.settings.log_level)
    pipeline = build_pipeline(cfg)
    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown_event.set)

    pipeline.pool.start()
    background = [
        asyncio.create_task(
            run_periodic_recovery(
                scanner=pipeline.recovery,
                shutdown_event=shutdown_event,
                interval_seconds=cfg.settings.recovery_interval_seconds,
            )
        ),
        asyncio.create_task(
            run_periodic_scratch_cleanup(
                scratch=pipeline.scratch,
                shutdown_event=shutdown_event,
                interval_seconds=cfg.settings.scratch_cleanup_interval_seconds,
            )
        ),
    ]
    logger.info(
        "pipeline.service.started",
        extra={"workers": pipeline.pool.concurrency},
    )
    try:
        await shutdown_event.wait()
    finally:
        shutdown_event.set()
        await asyncio.gather(*background, return_exceptions=True)
        await pipeline.pool.stop()
        logger.info("pipeline.service.stopped")


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
