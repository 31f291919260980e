"""CDN publishing driver for a stream-library style video API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..domain.models import CdnReadiness, ErrorCategory
from ..ingest.ingest_errors import PublishError
from .providers_base import CdnService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CdnDriver(CdnService):
    """Talk to one video library of the CDN.

    The public library and the quarantine library are two instances of this
    driver with different ``library_id``/``hostname`` pairs.
    """

    api_url: str
    library_id: str
    api_key: str
    hostname: str
    zone: str = "public"
    timeout_seconds: float = 120.0
    log: logging.Logger = field(default_factory=lambda: logger)

    def _videos_url(self, asset_id: str | None = None) -> str:
        base = f"{self.api_url.rstrip('/')}/library/{self.library_id}/videos"
        return f"{base}/{asset_id}" if asset_id else base

    async def create(self, title: str) -> str:
        data = await self._json_call("POST", self._videos_url(), json={"title": title})
        asset_id = data.get("guid")
        if not asset_id:
            raise PublishError(f"CDN create in {self.zone} library returned no asset id")
        self.log.info("cdn.asset.created", extra={"zone": self.zone, "asset_id": asset_id})
        return str(asset_id)

    async def upload(self, asset_id: str, data: bytes) -> None:
        response = await self._call(
            "PUT",
            self._videos_url(asset_id),
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        self._raise_for_status(response, action="upload")
        self.log.info(
            "cdn.asset.uploaded",
            extra={"zone": self.zone, "asset_id": asset_id, "size_bytes": len(data)},
        )

    async def status(self, asset_id: str) -> CdnReadiness:
        data = await self._json_call("GET", self._videos_url(asset_id))
        try:
            return CdnReadiness(int(data.get("status")))
        except (TypeError, ValueError) as exc:
            raise PublishError(
                f"CDN returned unknown status {data.get('status')!r} for {asset_id}"
            ) from exc

    async def delete(self, asset_id: str) -> None:
        response = await self._call("DELETE", self._videos_url(asset_id))
        if response.status_code == 404:
            return
        self._raise_for_status(response, action="delete")
        self.log.info("cdn.asset.deleted", extra={"zone": self.zone, "asset_id": asset_id})

    async def thumbnail_available(self, asset_id: str) -> bool:
        try:
            response = await self._call("HEAD", self.thumbnail_url(asset_id), authenticated=False)
        except PublishError:
            return False
        return response.status_code == 200

    def public_url(self, asset_id: str) -> str:
        return f"https://{self.hostname}/{asset_id}/playlist.m3u8"

    def thumbnail_url(self, asset_id: str) -> str:
        return f"https://{self.hostname}/{asset_id}/thumbnail.jpg"

    async def _json_call(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._call(method, url, **kwargs)
        self._raise_for_status(response, action=method.lower())
        try:
            data = response.json()
        except ValueError as exc:
            raise PublishError(f"CDN returned invalid JSON for {method} {url}") from exc
        if not isinstance(data, dict):
            raise PublishError(f"CDN returned unexpected payload for {method} {url}")
        return data

    async def _call(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        request_headers = {"Accept": "application/json", **(headers or {})}
        if authenticated:
            if not self.api_key or not self.library_id:
                raise PublishError(
                    f"CDN {self.zone} library is not configured (permission)",
                    category=ErrorCategory.SERVICE,
                )
            request_headers["AccessKey"] = self.api_key
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                return await client.request(
                    method, url, headers=request_headers, json=json, content=content
                )
        except httpx.TimeoutException as exc:
            raise PublishError(
                f"CDN {method} timeout: {exc}", category=ErrorCategory.NETWORK
            ) from exc
        except httpx.HTTPError as exc:
            raise PublishError(
                f"CDN {method} network error: {exc}", category=ErrorCategory.NETWORK
            ) from exc

    def _raise_for_status(self, response: httpx.Response, *, action: str) -> None:
        if 200 <= response.status_code < 300:
            return
        body_preview = (response.text or "")[:300]
        self.log.error(
            "cdn.response.error",
            extra={
                "zone": self.zone,
                "action": action,
                "status_code": response.status_code,
                "body_preview": body_preview,
            },
        )
        category = (
            ErrorCategory.SERVICE
            if response.status_code in {401, 403, 429} or response.status_code >= 500
            else ErrorCategory.TECHNICAL
        )
        raise PublishError(
            f"CDN {action} failed in {self.zone} library: {response.status_code} - {body_preview}",
            category=category,
        )


__all__ = ["CdnDriver"]
