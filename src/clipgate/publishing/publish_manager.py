"""Publish approved clips to the CDN and quarantine rejected ones."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..domain.models import CdnReadiness, ErrorCategory, MediaItem, PublishResult
from ..ingest.ingest_errors import PipelineError, PublishError, QuarantineError
from ..providers.providers_base import CdnService
from .thumbnails import placeholder_thumbnail

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PublishManager:
    """Push media to the public CDN library or to the quarantine library.

    Public URLs are only returned once the upload has been accepted and the
    readiness poll did not report an error. Quarantine assets are never
    turned into URLs; only their reference is returned.
    """

    cdn: CdnService
    quarantine_cdn: CdnService
    poll_interval_seconds: float = 3.0
    max_poll_attempts: int = 20
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    log: logging.Logger = field(default_factory=lambda: logger)

    async def publish(self, item: MediaItem, normalized_path: Path) -> PublishResult:
        data = await _read(normalized_path, error_cls=PublishError)
        asset_id = await self.cdn.create(item.title or item.id)
        try:
            await self.cdn.upload(asset_id, data)
            await self._await_ready(item.id, asset_id)
        except BaseException:
            await self.retract(asset_id, item_id=item.id)
            raise

        public_url = self.cdn.public_url(asset_id)
        thumbnail_url, placeholder = await self._thumbnail(item, asset_id)
        self.log.info(
            "publish.completed",
            extra={
                "item_id": item.id,
                "asset_id": asset_id,
                "public_url": public_url,
                "thumbnail_placeholder": placeholder,
            },
        )
        return PublishResult(
            asset_id=asset_id,
            public_url=public_url,
            thumbnail_url=thumbnail_url,
            thumbnail_placeholder=placeholder,
        )

    async def quarantine(self, item: MediaItem, fallback_path: Path | None = None) -> str:
        """Store the original upload for review and return its reference."""

        source = item.source_path
        if not source.exists() and fallback_path is not None:
            source = fallback_path
        data = await _read(source, error_cls=QuarantineError)
        try:
            asset_id = await self.quarantine_cdn.create(f"quarantine-{item.id}")
            await self.quarantine_cdn.upload(asset_id, data)
        except PipelineError as exc:
            raise QuarantineError(
                f"Quarantine upload failed for {item.id}: {exc}",
                category=exc.category,
            ) from exc
        self.log.info(
            "publish.quarantined",
            extra={"item_id": item.id, "quarantine_ref": asset_id, "source": str(source)},
        )
        return asset_id

    async def _await_ready(self, item_id: str, asset_id: str) -> None:
        for attempt in range(1, self.max_poll_attempts + 1):
            readiness = await self.cdn.status(asset_id)
            if readiness is CdnReadiness.FINISHED:
                return
            if readiness.is_failure:
                raise PublishError(
                    f"CDN processing failed for asset {asset_id} (status={int(readiness)})",
                    category=ErrorCategory.SERVICE,
                )
            self.log.debug(
                "publish.readiness.waiting",
                extra={"item_id": item_id, "asset_id": asset_id, "status": int(readiness), "attempt": attempt},
            )
            await self.sleep(self.poll_interval_seconds)
        self.log.warning(
            "publish.readiness.exhausted",
            extra={"item_id": item_id, "asset_id": asset_id, "attempts": self.max_poll_attempts},
        )

    async def _thumbnail(self, item: MediaItem, asset_id: str) -> tuple[str, bool]:
        try:
            available = await self.cdn.thumbnail_available(asset_id)
        except Exception as exc:
            self.log.warning(
                "publish.thumbnail.check_failed",
                extra={"item_id": item.id, "asset_id": asset_id, "error": str(exc)},
            )
            available = False
        if available:
            return self.cdn.thumbnail_url(asset_id), False
        self.log.info(
            "publish.thumbnail.placeholder",
            extra={"item_id": item.id, "category": item.category},
        )
        return placeholder_thumbnail(item.category, item.title), True

    async def retract(self, asset_id: str, *, item_id: str) -> None:
        """Delete a public asset; failures are logged only."""

        try:
            await self.cdn.delete(asset_id)
        except Exception as exc:
            self.log.error(
                "publish.asset.discard_failed",
                extra={"item_id": item_id, "asset_id": asset_id, "error": str(exc)},
            )


async def _read(path: Path, *, error_cls: type[PipelineError]) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise error_cls(
            f"Cannot access video file {path}: {exc}", category=ErrorCategory.STORAGE
        ) from exc


__all__ = ["PublishManager"]
