"""Pipeline orchestrator: the state machine of one media item run."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import structlog

from ..domain.models import (
    AudioResult,
    AudioStatus,
    ErrorCategory,
    ItemStatus,
    MediaItem,
    ModerationDecision,
    VisualResult,
)
from ..ingest.error_categories import USER_RETRY_MESSAGE, categorize_error, friendly_message
from ..ingest.ingest_errors import InvalidTransitionError, StagingError
from ..media.temp_media_store import TempMediaStore
from ..media.transcoder import FFmpegTranscoder
from ..moderation.audio_classifier import AudioClassifier
from ..moderation.policy import PolicyEvaluator
from ..moderation.visual_classifier import VISUAL_TECHNICAL_FAILURE, VisualClassifier
from ..publishing.publish_manager import PublishManager
from ..records.record_updaters import RecordRouter
from ..repositories.media_item_repository import MediaItemRepository
from ..staging.staging_client import StagingClient

logger = structlog.get_logger(__name__)

T = TypeVar("T")

FAILURE_REASON_LIMIT = 1000


@dataclass(slots=True)
class _RunArtifacts:
    """Temporary artifacts created by one run."""

    normalized_path: Path | None = None
    staging_uri: str | None = None


class PipelineOrchestrator:
    """Sequence transcode, staging, classification, policy and publication.

    One ``run`` owns one item. Stage failures are mapped to ``failed`` with a
    categorised message; rejection and approval are the other two terminal
    outcomes. Scratch files and the staged object are removed on every exit
    except cancellation, which keeps them so the recovery scan can resume.
    """

    def __init__(
        self,
        *,
        repository: MediaItemRepository,
        scratch: TempMediaStore,
        transcoder: FFmpegTranscoder,
        staging: StagingClient,
        visual: VisualClassifier,
        audio: AudioClassifier,
        policy: PolicyEvaluator,
        publisher: PublishManager,
        records: RecordRouter | None = None,
        classification_timeout_seconds: float = 300.0,
    ) -> None:
        self.repository = repository
        self.scratch = scratch
        self.transcoder = transcoder
        self.staging = staging
        self.visual = visual
        self.audio = audio
        self.policy = policy
        self.publisher = publisher
        self.records = records or RecordRouter()
        self._classification_timeout = classification_timeout_seconds
        self._logger = logger

    @staticmethod
    async def _run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` in a worker thread to avoid blocking the event loop."""

        return await asyncio.to_thread(func, *args, **kwargs)

    # ------------------------------------------------------------------
    # High-level control flow
    # ------------------------------------------------------------------
    async def run(self, item_id: str) -> MediaItem:
        """Drive ``item_id`` to a terminal status and return the final record."""

        with structlog.contextvars.bound_contextvars(item_id=item_id):
            item = await self._run_sync(self.repository.get_item, item_id)
            if item.status.is_terminal or item.status is ItemStatus.UNDER_APPEAL:
                self._logger.info("pipeline.run.skipped", item_id=item_id, status=item.status.value)
                return item

            item = await self._run_sync(self.repository.record_attempt, item_id)
            self._logger.info(
                "pipeline.run.started",
                item_id=item_id,
                status=item.status.value,
                attempt=item.attempts,
                kind=item.kind.value,
            )
            artifacts = _RunArtifacts(
                normalized_path=item.normalized_path, staging_uri=item.staging_uri
            )
            cancelled = False
            try:
                final = await self._execute(item, artifacts)
            except asyncio.CancelledError:
                cancelled = True
                self._logger.warning("pipeline.run.cancelled", item_id=item_id)
                raise
            except Exception as exc:
                final = await self._fail(item_id, exc)
            finally:
                if not cancelled:
                    await self._cleanup(item_id, artifacts)

            await self.records.dispatch(final)
            self._logger.info(
                "pipeline.run.finished",
                item_id=item_id,
                status=final.status.value,
                public_url=final.public_url,
                quarantine_ref=final.quarantine_ref,
            )
            return final

    async def _execute(self, item: MediaItem, artifacts: _RunArtifacts) -> MediaItem:
        resumed = await self._resume_from_staging(item, artifacts)
        if resumed is None:
            item = await self._normalize_and_stage(item, artifacts)
        else:
            item = resumed

        normalized, staging_uri = artifacts.normalized_path, artifacts.staging_uri
        if normalized is None or staging_uri is None:
            raise StagingError(f"Item {item.id} has no staged media to classify")
        visual, audio = await self._classify(item, staging_uri)
        decision = self.policy.evaluate(visual, audio, item_id=item.id)

        if decision.approved:
            return await self._approve(item, decision, normalized)
        return await self._reject(item, decision, normalized)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    async def _resume_from_staging(
        self, item: MediaItem, artifacts: _RunArtifacts
    ) -> MediaItem | None:
        """Reuse the staged object of a ``pending_moderation`` item if it still exists."""

        if item.status is not ItemStatus.PENDING_MODERATION or not item.staging_uri:
            return None
        if not await self.staging.verify(item.staging_uri):
            self._logger.warning(
                "pipeline.resume.staging_missing",
                item_id=item.id,
                staging_uri=item.staging_uri,
            )
            return None

        local = item.normalized_path
        if local is None or not local.exists() or local.stat().st_size == 0:
            local = self.scratch.fresh_output(item.id, "resumed")
            await self.staging.download(item.staging_uri, local)
        artifacts.normalized_path = local
        artifacts.staging_uri = item.staging_uri
        self._logger.info(
            "pipeline.resume.from_staging",
            item_id=item.id,
            staging_uri=item.staging_uri,
        )
        return item

    async def _normalize_and_stage(self, item: MediaItem, artifacts: _RunArtifacts) -> MediaItem:
        normalized = await self.transcoder.normalize(
            item.id, item.source_path, item.declared_duration
        )
        artifacts.normalized_path = normalized
        self._logger.info(
            "pipeline.stage.completed", item_id=item.id, stage="transcode", path=str(normalized)
        )

        artifacts.staging_uri = self.staging.uri_for(item.id)
        staging_uri = await self.staging.stage(item.id, normalized)
        artifacts.staging_uri = staging_uri
        if not await self.staging.verify(staging_uri):
            raise StagingError(
                f"Staged object could not be verified at {staging_uri} (storage unavailable)"
            )
        self._logger.info(
            "pipeline.stage.completed", item_id=item.id, stage="staging", staging_uri=staging_uri
        )

        return await self._run_sync(
            self.repository.update_status,
            item.id,
            ItemStatus.PENDING_MODERATION,
            normalized_path=normalized,
            staging_uri=staging_uri,
        )

    async def _classify(self, item: MediaItem, staging_uri: str) -> tuple[VisualResult, AudioResult]:
        visual, audio = await asyncio.gather(
            self._guarded_visual(item.id, staging_uri),
            self._guarded_audio(item.id, staging_uri),
        )
        self._logger.info(
            "pipeline.stage.completed",
            item_id=item.id,
            stage="classification",
            visual_passed=visual.passed,
            audio_status=audio.status.value,
        )
        return visual, audio

    async def _guarded_visual(self, item_id: str, staging_uri: str) -> VisualResult:
        try:
            return await asyncio.wait_for(
                self.visual.classify(staging_uri, item_id=item_id),
                timeout=self._classification_timeout,
            )
        except asyncio.TimeoutError:
            self._logger.error("pipeline.visual.timeout", item_id=item_id)
            return VisualResult(
                passed=False,
                reason="Visual content analysis timed out",
                errored=True,
            )
        except Exception as exc:
            self._logger.error("pipeline.visual.crashed", item_id=item_id, error=str(exc))
            return VisualResult(passed=False, reason=VISUAL_TECHNICAL_FAILURE, errored=True)

    async def _guarded_audio(self, item_id: str, staging_uri: str) -> AudioResult:
        try:
            return await asyncio.wait_for(
                self.audio.classify(staging_uri, item_id=item_id),
                timeout=self._classification_timeout,
            )
        except asyncio.TimeoutError:
            self._logger.error("pipeline.audio.timeout", item_id=item_id)
            return AudioResult(
                status=AudioStatus.ERROR,
                reason=friendly_message(ErrorCategory.NETWORK, modality="audio"),
                error_category=ErrorCategory.NETWORK,
                infrastructure=True,
            )
        except Exception as exc:
            category = categorize_error(exc)
            self._logger.error(
                "pipeline.audio.crashed", item_id=item_id, error=str(exc), category=category.value
            )
            return AudioResult(
                status=AudioStatus.ERROR,
                reason=friendly_message(category, modality="audio"),
                error_category=category,
            )

    async def _approve(
        self, item: MediaItem, decision: ModerationDecision, normalized: Path
    ) -> MediaItem:
        result = await self.publisher.publish(item, normalized)
        try:
            return await self._run_sync(
                self.repository.update_status,
                item.id,
                ItemStatus.APPROVED,
                decision=decision,
                public_url=result.public_url,
                thumbnail_url=result.thumbnail_url,
                cdn_asset_id=result.asset_id,
            )
        except BaseException:
            # The asset must not stay reachable without an approved record.
            await self.publisher.retract(result.asset_id, item_id=item.id)
            raise

    async def _reject(
        self, item: MediaItem, decision: ModerationDecision, normalized: Path
    ) -> MediaItem:
        quarantine_ref: str | None = None
        try:
            quarantine_ref = await self.publisher.quarantine(item, normalized)
        except Exception as exc:
            # The rejection stands whether or not the evidence copy was kept.
            self._logger.error(
                "pipeline.quarantine.failed",
                item_id=item.id,
                error_type=type(exc).__name__,
                error=str(exc),
                category=categorize_error(exc).value,
            )
        return await self._run_sync(
            self.repository.update_status,
            item.id,
            ItemStatus.REJECTED,
            decision=decision,
            quarantine_ref=quarantine_ref,
        )

    async def _fail(self, item_id: str, exc: Exception) -> MediaItem:
        category = categorize_error(exc)
        reason = f"{type(exc).__name__}: {exc}"[:FAILURE_REASON_LIMIT]
        self._logger.error(
            "pipeline.run.failed",
            item_id=item_id,
            error_type=type(exc).__name__,
            error=str(exc),
            category=category.value,
        )
        try:
            return await self._run_sync(
                self.repository.update_status,
                item_id,
                ItemStatus.FAILED,
                failure_reason=reason,
                error_category=category,
                user_message=USER_RETRY_MESSAGE,
            )
        except InvalidTransitionError:
            self._logger.error("pipeline.run.fail_write_rejected", item_id=item_id)
            return await self._run_sync(self.repository.get_item, item_id)

    async def _cleanup(self, item_id: str, artifacts: _RunArtifacts) -> None:
        """Remove the staged object and the item's scratch directory."""

        if artifacts.staging_uri:
            try:
                await self.staging.delete(artifacts.staging_uri)
            except Exception as exc:
                self._logger.error(
                    "pipeline.cleanup.staging_failed",
                    item_id=item_id,
                    staging_uri=artifacts.staging_uri,
                    error=str(exc),
                )
        try:
            await self._run_sync(self.scratch.cleanup, item_id)
        except OSError as exc:
            self._logger.error("pipeline.cleanup.scratch_failed", item_id=item_id, error=str(exc))
        self._logger.info("pipeline.cleanup.completed", item_id=item_id)


__all__ = ["PipelineOrchestrator"]
