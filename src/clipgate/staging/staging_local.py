"""Filesystem-backed staging store for development and tests."""

from __future__ import annotations

import os
from pathlib import Path

from .staging_base import StagingStore


class LocalStagingStore(StagingStore):
    """Emulates buckets as directories below ``root``."""

    scheme = "file"

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path(self, bucket: str, key: str) -> Path:
        bucket_dir = (self._root / bucket).resolve()
        path = (bucket_dir / key).resolve()
        if bucket_dir not in path.parents:
            raise ValueError(f"Key escapes bucket: {key!r}")
        return path

    def put(self, data: bytes, bucket: str, key: str, *, content_type: str) -> None:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".part")
        tmp.write_bytes(data)
        os.replace(tmp, path)

    def exists(self, bucket: str, key: str) -> bool:
        return self._path(bucket, key).is_file()

    def get(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not path.is_file():
            raise FileNotFoundError(f"File not found in staging store: {bucket}/{key}")
        return path.read_bytes()

    def delete(self, bucket: str, key: str) -> None:
        self._path(bucket, key).unlink(missing_ok=True)

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        bucket_dir = self._root / bucket
        base = bucket_dir / prefix
        if not base.exists():
            return []
        return sorted(
            path.relative_to(bucket_dir).as_posix()
            for path in base.rglob("*")
            if path.is_file() and not path.name.endswith(".part")
        )
