"""Abstract staging object store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass(slots=True, frozen=True)
class StagingUri:
    """``scheme://bucket/key`` reference to a staged object."""

    scheme: str
    bucket: str
    key: str

    def __str__(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.key}"

    @classmethod
    def parse(cls, uri: str) -> "StagingUri":
        parsed = urlparse(uri)
        key = parsed.path.lstrip("/")
        if not parsed.scheme or not parsed.netloc or not key:
            raise ValueError(f"Invalid staging URI: {uri!r}")
        return cls(scheme=parsed.scheme, bucket=parsed.netloc, key=key)


class StagingStore(ABC):
    """Object store contract used to expose media to analysis services.

    Implementations are blocking; :class:`StagingClient` moves calls off the
    event loop.
    """

    scheme: str

    @abstractmethod
    def put(self, data: bytes, bucket: str, key: str, *, content_type: str) -> None:
        """Store ``data`` under ``key``, overwriting any existing object."""

    @abstractmethod
    def exists(self, bucket: str, key: str) -> bool:
        """Return ``True`` when ``key`` is present."""

    @abstractmethod
    def get(self, bucket: str, key: str) -> bytes:
        """Return object bytes; raises ``FileNotFoundError`` when missing."""

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None:
        """Remove ``key``; deleting a missing object is not an error."""

    @abstractmethod
    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        """List keys below ``prefix``."""
