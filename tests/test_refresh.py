import asyncio

import pytest
from structlog.testing import capture_logs

from engine.domain import Category, Transaction
from engine.events import DATA_CHANGED, EventBus
from engine.refresh import RefreshCoordinator
from engine.services import Snapshot


def make_snapshot(*amounts):
    cats = (Category("food", "Food", "expense"),)
    trans = tuple(Transaction(f"t{i}", a, "2025-09-01", "food") for i, a in enumerate(amounts))
    return Snapshot.of(cats, trans)


@pytest.mark.asyncio
async def test_refresh_publishes_latest_report():
    async def load():
        return make_snapshot(10, 20)

    coord = RefreshCoordinator(load, 2025, 9)
    report = await coord.refresh()

    assert report is not None
    assert coord.latest is report
    assert coord.latest_generation == 1
    assert report.rollup.expense == 30


@pytest.mark.asyncio
async def test_superseded_refresh_is_discarded():
    release_slow = asyncio.Event()
    calls = {"n": 0}

    async def load():
        calls["n"] += 1
        if calls["n"] == 1:
            await release_slow.wait()
            return make_snapshot(1)
        return make_snapshot(1, 2)

    coord = RefreshCoordinator(load, 2025, 9)
    slow = asyncio.create_task(coord.refresh())
    await asyncio.sleep(0)
    fast = await coord.refresh()
    release_slow.set()
    stale = await slow

    assert stale is None
    assert coord.latest is fast
    assert coord.latest.rollup.expense == 3
    assert coord.latest_generation == 2


def test_complete_rejects_old_generation():
    async def load():
        return Snapshot()

    coord = RefreshCoordinator(load, 2025, 9)
    old = coord.begin()
    coord.begin()

    assert coord.complete(old, object()) is False
    assert coord.latest is None


@pytest.mark.asyncio
async def test_data_changed_signal_triggers_recompute():
    state = {"snapshot": make_snapshot(5)}

    async def load():
        return state["snapshot"]

    bus = EventBus()
    coord = RefreshCoordinator(load, 2025, 9)
    coord.attach(bus)

    state["snapshot"] = make_snapshot(5, 7)
    bus.publish(DATA_CHANGED, {"transaction_id": "t1"})
    await coord.wait_idle()
    assert coord.latest.rollup.expense == 12

    coord.detach(bus)
    assert bus.publish(DATA_CHANGED) == []


@pytest.mark.asyncio
async def test_failed_background_refresh_is_logged():
    async def load():
        raise RuntimeError("storage unavailable")

    bus = EventBus()
    coord = RefreshCoordinator(load, 2025, 9)
    coord.attach(bus)

    with capture_logs() as logs:
        [task] = bus.publish(DATA_CHANGED, {"transaction_id": "t1"})
        await asyncio.wait([task])

    assert coord.latest is None
    assert isinstance(coord.last_error, RuntimeError)
    failures = [e for e in logs if e["event"] == "refresh_failed"]
    assert len(failures) == 1
    assert failures[0]["log_level"] == "error"
    assert failures[0]["generation"] == 1
