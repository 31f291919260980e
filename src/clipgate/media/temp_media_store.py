"""Item-scoped scratch storage for uploads and transcoder outputs."""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from uuid import uuid4


@dataclass(slots=True)
class TempMediaStore:
    """Manages lifecycle of scratch files, one directory per media item.

    Directory names are the item ids so concurrent workers never share a
    path. Nothing outside ``root/<item_id>`` is ever written for an item.
    """

    root: Path
    ttl_seconds: int = 24 * 3600
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def item_dir(self, item_id: str) -> Path:
        if not item_id or "/" in item_id or "\\" in item_id or item_id in {".", ".."}:
            raise ValueError(f"Invalid item id for scratch storage: {item_id!r}")
        return self.root / item_id

    def ensure_structure(self, item_id: str) -> Path:
        directory = self.item_dir(item_id)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def adopt_upload(self, item_id: str, source: Path, *, move: bool = True) -> Path:
        """Place the raw upload inside the item's scratch directory."""
        directory = self.ensure_structure(item_id)
        target = directory / f"source{source.suffix.lower() or '.bin'}"
        if source.resolve() == target.resolve():
            return target
        if move:
            shutil.move(str(source), target)
        else:
            shutil.copyfile(source, target)
        self.log.info(
            "media.scratch.adopted",
            extra={"item_id": item_id, "path": str(target), "moved": move},
        )
        return target

    def fresh_output(self, item_id: str, label: str, suffix: str = ".mp4") -> Path:
        """Return a unique, not yet existing path for a stage output."""
        directory = self.ensure_structure(item_id)
        return directory / f"{label}-{uuid4().hex[:8]}{suffix}"

    def list_files(self, item_id: str) -> list[Path]:
        directory = self.item_dir(item_id)
        if not directory.exists():
            return []
        return sorted(path for path in directory.rglob("*") if path.is_file())

    def discard(self, path: Path | None) -> None:
        """Remove a single scratch file if it exists."""
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError:
            self.log.warning("media.scratch.discard_failed", extra={"path": str(path)})

    def cleanup(self, item_id: str) -> bool:
        """Remove the item's scratch directory; returns ``True`` if it existed."""
        directory = self.item_dir(item_id)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        self.log.info("media.scratch.cleaned", extra={"item_id": item_id})
        return True

    def expired_items(self, reference_time: float | None = None) -> list[str]:
        now = reference_time if reference_time is not None else time.time()
        if not self.root.exists():
            return []
        expired: list[str] = []
        for directory in self.root.iterdir():
            if not directory.is_dir():
                continue
            if now - directory.stat().st_mtime >= self.ttl_seconds:
                expired.append(directory.name)
        return sorted(expired)

    def cleanup_expired(self, reference_time: float | None = None) -> int:
        """Purge scratch directories that exceeded TTL (fallback for cron)."""
        removed = 0
        for item_id in self.expired_items(reference_time):
            try:
                if self.cleanup(item_id):
                    removed += 1
            except OSError:
                self.log.exception(
                    "media.scratch.cleanup_failed", extra={"item_id": item_id}
                )
        return removed
