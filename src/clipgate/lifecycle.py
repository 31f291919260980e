"""Background loops started next to the worker pool."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from .media.temp_media_store import TempMediaStore
from .repositories.media_item_repository import utcnow
from .workers.recovery import RecoveryScanner

logger = logging.getLogger(__name__)


async def _wait_or_stop(shutdown_event: asyncio.Event, interval: float) -> None:
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
    except asyncio.TimeoutError:
        return


async def run_periodic_recovery(
    *,
    scanner: RecoveryScanner,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 60.0,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Scan for stuck items until ``shutdown_event`` is signalled."""

    interval = max(1.0, float(interval_seconds))
    tick = clock or utcnow
    while not shutdown_event.is_set():
        try:
            await scanner.scan_once(tick())
        except Exception:
            logger.exception("recovery.scan.failed")
        await _wait_or_stop(shutdown_event, interval)


async def run_periodic_scratch_cleanup(
    *,
    scratch: TempMediaStore,
    shutdown_event: asyncio.Event,
    interval_seconds: float = 900.0,
) -> None:
    """Sweep scratch directories older than their TTL."""

    interval = max(1.0, float(interval_seconds))
    while not shutdown_event.is_set():
        try:
            removed = await asyncio.to_thread(scratch.cleanup_expired)
        except Exception:
            logger.exception("media.scratch.sweep_failed")
        else:
            if removed:
                logger.info("media.scratch.swept", extra={"removed": removed})
        await _wait_or_stop(shutdown_event, interval)


__all__ = ["run_periodic_recovery", "run_periodic_scratch_cleanup"]
