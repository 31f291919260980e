from __future__ import annotations

import asyncio

import pytest

from src.clipgate.workers.worker_pool import WorkerPool


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pool_processes_submitted_items() -> None:
    seen: list[str] = []

    async def run_item(item_id: str) -> None:
        seen.append(item_id)

    pool = WorkerPool(run_item, concurrency=2)
    pool.start()
    for item_id in ("a", "b", "c"):
        assert pool.submit(item_id)

    await asyncio.wait_for(pool.join(), timeout=2)
    await pool.stop()

    assert sorted(seen) == ["a", "b", "c"]
    assert not pool.running


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_submissions_are_refused_while_tracked() -> None:
    release = asyncio.Event()
    started = asyncio.Event()
    runs: list[str] = []

    async def run_item(item_id: str) -> None:
        runs.append(item_id)
        started.set()
        await release.wait()

    pool = WorkerPool(run_item, concurrency=2)
    pool.start()
    assert pool.submit("a")
    await asyncio.wait_for(started.wait(), timeout=2)

    assert not pool.submit("a")
    assert pool.is_tracked("a")

    release.set()
    await asyncio.wait_for(pool.join(), timeout=2)
    assert not pool.is_tracked("a")
    assert pool.submit("a")
    await asyncio.wait_for(pool.join(), timeout=2)
    await pool.stop()

    assert runs == ["a", "a"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    active = 0
    peak = 0

    async def run_item(item_id: str) -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    pool = WorkerPool(run_item, concurrency=2)
    pool.start()
    for index in range(6):
        pool.submit(f"item-{index}")
    await asyncio.wait_for(pool.join(), timeout=2)
    await pool.stop()

    assert peak == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_crashing_run_does_not_kill_worker() -> None:
    seen: list[str] = []

    async def run_item(item_id: str) -> None:
        if item_id == "bad":
            raise RuntimeError("boom")
        seen.append(item_id)

    pool = WorkerPool(run_item, concurrency=1)
    pool.start()
    pool.submit("bad")
    pool.submit("good")
    await asyncio.wait_for(pool.join(), timeout=2)
    await pool.stop()

    assert seen == ["good"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stop_cancels_in_flight_runs() -> None:
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def run_item(item_id: str) -> None:
        started.set()
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    pool = WorkerPool(run_item, concurrency=1)
    pool.start()
    pool.submit("slow")
    await asyncio.wait_for(started.wait(), timeout=2)

    await pool.stop()

    assert cancelled.is_set()
    assert not pool.running
