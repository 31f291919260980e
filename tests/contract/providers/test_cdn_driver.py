from __future__ import annotations

import httpx
import pytest

from src.clipgate.domain.models import CdnReadiness, ErrorCategory
from src.clipgate.ingest.ingest_errors import PublishError
from src.clipgate.providers.providers_cdn import CdnDriver
from tests.mocks.http import ScriptedAsyncClient


@pytest.fixture
def scripted(monkeypatch: pytest.MonkeyPatch) -> type[ScriptedAsyncClient]:
    ScriptedAsyncClient.reset()
    monkeypatch.setattr(httpx, "AsyncClient", ScriptedAsyncClient)
    return ScriptedAsyncClient


def _driver(**kwargs) -> CdnDriver:
    options = {
        "api_url": "https://video.cdn.test",
        "library_id": "lib-1",
        "api_key": "access",
        "hostname": "vz-1.cdn.test",
    }
    options.update(kwargs)
    return CdnDriver(**options)


@pytest.mark.contract
@pytest.mark.asyncio
async def test_create_upload_and_status(scripted) -> None:
    scripted.reset(
        (200, {"guid": "abc"}),
        (200, {"success": True}),
        (200, {"guid": "abc", "status": 4}),
    )
    driver = _driver()

    asset_id = await driver.create("Sunset")
    await driver.upload(asset_id, b"mp4-bytes")
    readiness = await driver.status(asset_id)

    assert asset_id == "abc"
    assert readiness is CdnReadiness.FINISHED
    create, upload, status = scripted.requests
    assert create["url"] == "https://video.cdn.test/library/lib-1/videos"
    assert create["json"] == {"title": "Sunset"}
    assert create["headers"]["AccessKey"] == "access"
    assert upload["method"] == "PUT"
    assert upload["content"] == b"mp4-bytes"
    assert upload["headers"]["Content-Type"] == "application/octet-stream"
    assert status["url"] == "https://video.cdn.test/library/lib-1/videos/abc"


@pytest.mark.contract
def test_urls_use_library_hostname() -> None:
    driver = _driver()

    assert driver.public_url("abc") == "https://vz-1.cdn.test/abc/playlist.m3u8"
    assert driver.thumbnail_url("abc") == "https://vz-1.cdn.test/abc/thumbnail.jpg"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_upload_server_error_is_service_failure(scripted) -> None:
    scripted.reset((500, "internal error"))

    with pytest.raises(PublishError, match="CDN upload failed in public library: 500") as excinfo:
        await _driver().upload("abc", b"data")

    assert excinfo.value.category is ErrorCategory.SERVICE


@pytest.mark.contract
@pytest.mark.asyncio
async def test_unknown_status_is_rejected(scripted) -> None:
    scripted.reset((200, {"status": 42}))

    with pytest.raises(PublishError, match="unknown status"):
        await _driver().status("abc")


@pytest.mark.contract
@pytest.mark.asyncio
async def test_delete_tolerates_missing_asset(scripted) -> None:
    scripted.reset((404, "not found"))

    await _driver(zone="quarantine").delete("abc")

    assert scripted.requests[0]["method"] == "DELETE"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_thumbnail_probe_is_unauthenticated(scripted) -> None:
    scripted.reset((200, ""), httpx.ConnectError("refused"))
    driver = _driver()

    assert await driver.thumbnail_available("abc")
    assert not await driver.thumbnail_available("abc")
    assert "AccessKey" not in scripted.requests[0]["headers"]
    assert scripted.requests[0]["method"] == "HEAD"


@pytest.mark.contract
@pytest.mark.asyncio
async def test_unconfigured_library_refuses_calls(scripted) -> None:
    with pytest.raises(PublishError, match="not configured") as excinfo:
        await _driver(api_key="").create("x")

    assert excinfo.value.category is ErrorCategory.SERVICE
    assert scripted.requests == []


@pytest.mark.contract
@pytest.mark.asyncio
async def test_network_error_is_typed(scripted) -> None:
    scripted.reset(httpx.ConnectTimeout("slow"))

    with pytest.raises(PublishError) as excinfo:
        await _driver().create("x")

    assert excinfo.value.category is ErrorCategory.NETWORK
