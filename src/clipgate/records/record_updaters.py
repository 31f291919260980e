"""Route final pipeline results to the record type that submitted the clip."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..domain.models import ItemKind, MediaItem

logger = logging.getLogger(__name__)


def result_payload(item: MediaItem) -> dict[str, Any]:
    """Serialise the outcome of a pipeline run for downstream records."""

    decision = item.decision
    return {
        "item_id": item.id,
        "kind": item.kind.value,
        "status": item.status.value,
        "public_url": item.public_url,
        "thumbnail_url": item.thumbnail_url,
        "quarantine_ref": item.quarantine_ref,
        "user_message": item.user_message,
        "error_category": item.error_category.value if item.error_category else None,
        "decision": None
        if decision is None
        else {
            "approved": decision.approved,
            "visual_passed": decision.visual_passed,
            "audio_status": decision.audio_status.value,
            "reason": decision.reason,
            "transcript": decision.transcript,
            "keywords": list(decision.keywords),
        },
    }


class RecordUpdater(ABC):
    @abstractmethod
    async def apply(self, item: MediaItem) -> None:
        """Write the terminal result of ``item`` into its downstream record."""


@dataclass(slots=True)
class WebhookRecordUpdater(RecordUpdater):
    """POST the result payload to the service owning the record type."""

    url: str
    token: str = ""
    timeout_seconds: float = 10.0

    async def apply(self, item: MediaItem) -> None:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(self.url, headers=headers, json=result_payload(item))
        response.raise_for_status()


@dataclass(slots=True)
class RecordRouter:
    """Dispatch to the updater registered for the item kind.

    Failures are logged and never influence the item status.
    """

    updaters: Mapping[ItemKind, RecordUpdater] = field(default_factory=dict)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def dispatch(self, item: MediaItem) -> bool:
        updater = self.updaters.get(item.kind)
        if updater is None:
            self.log.debug(
                "records.updater.missing",
                extra={"item_id": item.id, "kind": item.kind.value},
            )
            return False
        try:
            await updater.apply(item)
        except Exception as exc:
            self.log.error(
                "records.update.failed",
                extra={"item_id": item.id, "kind": item.kind.value, "error": str(exc)},
            )
            return False
        self.log.info(
            "records.update.completed",
            extra={"item_id": item.id, "kind": item.kind.value, "status": item.status.value},
        )
        return True

    @classmethod
    def from_webhooks(cls, webhooks: Mapping[str, str], *, token: str = "") -> "RecordRouter":
        updaters: dict[ItemKind, RecordUpdater] = {}
        for kind, url in webhooks.items():
            if url:
                updaters[ItemKind(kind)] = WebhookRecordUpdater(url=url, token=token)
        return cls(updaters=updaters)


__all__ = [
    "RecordRouter",
    "RecordUpdater",
    "WebhookRecordUpdater",
    "result_payload",
]
