"""Scripted stand-in for ``httpx.AsyncClient``."""

from __future__ import annotations

from typing import Any

import httpx


class ScriptedAsyncClient:
    """Replay queued responses (or raise queued exceptions) in order.

    Install with ``monkeypatch.setattr(httpx, "AsyncClient", ScriptedAsyncClient)``
    after calling :meth:`reset`.
    """

    script: list[Any] = []
    requests: list[dict[str, Any]] = []

    @classmethod
    def reset(cls, *steps: Any) -> None:
        cls.script = list(steps)
        cls.requests = []

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.timeout = kwargs.get("timeout")

    async def __aenter__(self) -> "ScriptedAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        cls = type(self)
        cls.requests.append(
            {"method": method, "url": url, "headers": headers or {}, "json": json, "content": content}
        )
        step = cls.script.pop(0)
        if isinstance(step, Exception):
            raise step
        status, payload = step
        request = httpx.Request(method, url)
        if isinstance(payload, (dict, list)):
            return httpx.Response(status, json=payload, request=request)
        return httpx.Response(status, text=payload or "", request=request)
