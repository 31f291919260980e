"""Staging store client used by the pipeline orchestrator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from ..domain.models import ErrorCategory
from ..ingest.ingest_errors import StagingError
from .staging_base import StagingStore, StagingUri

logger = logging.getLogger(__name__)

T = TypeVar("T")

STAGED_SUFFIX = ".mp4"


@dataclass(slots=True)
class StagingClient:
    """Upload, verify, download and delete staged media.

    Keys are derived from the item id only, so repeated uploads for the same
    item overwrite one object and always yield the same URI.
    """

    store: StagingStore
    bucket: str
    prefix: str = "raw-videos"
    timeout_seconds: float = 60.0
    content_type: str = "video/mp4"
    log: logging.Logger = field(default_factory=lambda: logger)

    def key_for(self, item_id: str) -> str:
        prefix = self.prefix.strip("/")
        name = f"{item_id}{STAGED_SUFFIX}"
        return f"{prefix}/{name}" if prefix else name

    def uri_for(self, item_id: str) -> str:
        return str(StagingUri(self.store.scheme, self.bucket, self.key_for(item_id)))

    def item_id_from_key(self, key: str) -> str | None:
        name = key.rsplit("/", 1)[-1]
        if not name.endswith(STAGED_SUFFIX):
            return None
        return name[: -len(STAGED_SUFFIX)] or None

    async def stage(self, item_id: str, local_path: Path) -> str:
        return await self.upload(local_path, self.key_for(item_id))

    async def upload(self, local_path: Path, key: str) -> str:
        uri = str(StagingUri(self.store.scheme, self.bucket, key))
        try:
            data = await self._call(local_path.read_bytes, label="read")
            await self._call(
                self.store.put,
                data,
                self.bucket,
                key,
                content_type=self.content_type,
                label="put",
            )
        except StagingError:
            raise
        except Exception as exc:
            raise StagingError(f"Staging upload failed for {uri}: {exc}") from exc
        self.log.info(
            "staging.upload.completed",
            extra={"staging_uri": uri, "size_bytes": len(data)},
        )
        return uri

    async def verify(self, uri: str) -> bool:
        """Return ``True`` only when the staged object is confirmed to exist."""

        try:
            location = self._locate(uri)
            present = await self._call(
                self.store.exists, location.bucket, location.key, label="exists"
            )
        except Exception as exc:
            self.log.warning(
                "staging.verify.error",
                extra={"staging_uri": uri, "error": str(exc)},
            )
            return False
        if not present:
            self.log.warning("staging.verify.missing", extra={"staging_uri": uri})
        return bool(present)

    async def download(self, uri: str, target: Path) -> Path:
        location = self._locate(uri)
        try:
            data = await self._call(self.store.get, location.bucket, location.key, label="get")
            await self._call(target.write_bytes, data, label="write")
        except StagingError:
            raise
        except Exception as exc:
            raise StagingError(f"Staging download failed for {uri}: {exc}") from exc
        return target

    async def delete(self, uri: str) -> None:
        location = self._locate(uri)
        try:
            await self._call(self.store.delete, location.bucket, location.key, label="delete")
        except StagingError:
            raise
        except Exception as exc:
            raise StagingError(f"Staging delete failed for {uri}: {exc}") from exc
        self.log.info("staging.delete.completed", extra={"staging_uri": uri})

    async def list_staged(self) -> list[tuple[str, str]]:
        """Return ``(uri, item_id)`` pairs for every object below the prefix."""

        keys = await self._call(self.store.list_keys, self.bucket, self.prefix, label="list")
        staged: list[tuple[str, str]] = []
        for key in keys:
            item_id = self.item_id_from_key(key)
            if item_id is None:
                continue
            staged.append((str(StagingUri(self.store.scheme, self.bucket, key)), item_id))
        return staged

    def _locate(self, uri: str) -> StagingUri:
        try:
            location = StagingUri.parse(uri)
        except ValueError as exc:
            raise StagingError(str(exc)) from exc
        if location.scheme != self.store.scheme:
            raise StagingError(
                f"Staging URI scheme '{location.scheme}' does not match store '{self.store.scheme}'"
            )
        return location

    async def _call(self, func: Callable[..., T], /, *args: Any, label: str, **kwargs: Any) -> T:
        call = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
        try:
            return await asyncio.wait_for(asyncio.shield(call), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            # Worker threads cannot be interrupted; let the call settle first.
            self.log.warning(
                "staging.call.timeout",
                extra={"operation": label, "timeout_seconds": self.timeout_seconds},
            )
            await asyncio.wait({call})
            if not call.cancelled():
                call.exception()
            raise StagingError(
                f"Staging operation {label} timed out after {self.timeout_seconds:.1f}s",
                category=ErrorCategory.NETWORK,
            ) from exc


__all__ = ["StagingClient"]
