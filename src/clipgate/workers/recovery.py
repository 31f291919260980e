"""Re-enqueue items left in flight by a crashed or restarted worker."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..domain.models import RECOVERABLE_STATUSES
from ..repositories.media_item_repository import MediaItemRepository, utcnow
from .worker_pool import WorkerPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecoveryScanner:
    """Find stale ``uploading``/``pending_moderation`` items and resubmit them."""

    repository: MediaItemRepository
    pool: WorkerPool
    grace_seconds: int = 120
    batch_size: int = 5
    clock: Callable[[], datetime] = utcnow
    log: logging.Logger = field(default_factory=lambda: logger)

    async def scan_once(self, now: datetime | None = None) -> list[str]:
        """Submit one batch of stuck items; returns the ids actually queued."""

        current = now or self.clock()
        cutoff = current - timedelta(seconds=self.grace_seconds)
        stale = await asyncio.to_thread(
            self.repository.list_stale,
            statuses=RECOVERABLE_STATUSES,
            updated_before=cutoff,
            limit=self.batch_size,
        )
        resubmitted: list[str] = []
        for item in stale:
            if self.pool.submit(item.id):
                resubmitted.append(item.id)
                self.log.info(
                    "recovery.item.resubmitted",
                    extra={
                        "item_id": item.id,
                        "status": item.status.value,
                        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
                    },
                )
        if stale:
            self.log.info(
                "recovery.scan.completed",
                extra={"found": len(stale), "resubmitted": len(resubmitted)},
            )
        return resubmitted


__all__ = ["RecoveryScanner"]
