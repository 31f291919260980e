"""Intake of uploaded clips into the moderation pipeline."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..domain.models import ItemKind, MediaItem
from ..media.temp_media_store import TempMediaStore
from ..repositories.media_item_repository import MediaItemRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestService:
    """Create the item record and hand the id to the worker pool.

    The raw upload is moved into the item's scratch directory first, so the
    pipeline only ever reads item-scoped paths.
    """

    repository: MediaItemRepository
    scratch: TempMediaStore
    submit: Callable[[str], bool]
    id_factory: Callable[[], str] = field(default_factory=lambda: lambda: uuid.uuid4().hex)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def accept(
        self,
        source_path: Path,
        kind: ItemKind | str,
        *,
        declared_duration: float | None = None,
        title: str | None = None,
        category: str | None = None,
        move: bool = True,
    ) -> MediaItem:
        kind = ItemKind(kind)
        if not source_path.is_file():
            raise FileNotFoundError(f"File not found: {source_path}")
        if declared_duration is not None and declared_duration <= 0:
            declared_duration = None

        item_id = self.id_factory()
        local = await asyncio.to_thread(
            self.scratch.adopt_upload, item_id, source_path, move=move
        )
        try:
            item = await asyncio.to_thread(
                self.repository.create,
                MediaItem(
                    id=item_id,
                    source_path=local,
                    kind=kind,
                    declared_duration=declared_duration,
                    title=title,
                    category=category,
                ),
            )
        except Exception:
            self.scratch.cleanup(item_id)
            raise

        self.submit(item.id)
        self.log.info(
            "ingest.item.accepted",
            extra={
                "item_id": item.id,
                "kind": kind.value,
                "declared_duration": declared_duration,
                "size_bytes": local.stat().st_size,
            },
        )
        return item


__all__ = ["IngestService"]
