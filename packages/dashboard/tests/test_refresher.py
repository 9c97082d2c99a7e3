import asyncio

from dashsync.events import ORDER_SCREEN_KINDS, InMemorySharedStorage, UpdateBus, UpdateKind
from dashsync.services import Refresher


def test_matching_update_triggers_refetch() -> None:
    storage = InMemorySharedStorage()
    admin = UpdateBus(storage, context_id="admin")
    orders = UpdateBus(storage, context_id="orders")
    calls = {"count": 0}
    applied = []

    async def fetch() -> int:
        calls["count"] += 1
        return calls["count"]

    async def scenario() -> None:
        async with Refresher(fetch, orders, ORDER_SCREEN_KINDS, on_update=applied.append) as refresher:
            assert refresher.running
            admin.publish(UpdateKind.DISH_UPDATED)
            admin.publish(UpdateKind.BILL_PAID, {"bill_id": 1})
            await asyncio.sleep(0.01)
        assert not refresher.running

    asyncio.run(scenario())
    assert calls["count"] == 2
    assert applied == [1, 2]


def test_slow_stale_response_is_discarded() -> None:
    bus = UpdateBus(context_id="orders")
    order = []

    async def scenario() -> Refresher:
        first_release = asyncio.Event()
        responses = iter([("old", first_release), ("new", None)])

        async def fetch() -> str:
            value, gate = next(responses)
            if gate is not None:
                await gate.wait()
            order.append(value)
            return value

        refresher = Refresher(fetch, bus)
        slow = asyncio.create_task(refresher.refresh())
        await asyncio.sleep(0)
        fast_applied = await refresher.refresh()
        first_release.set()
        slow_applied = await slow
        assert fast_applied is True
        assert slow_applied is False
        return refresher

    refresher = asyncio.run(scenario())
    assert order == ["new", "old"]
    assert refresher.latest == "new"
    assert refresher.stale_discarded == 1


def test_failed_fetch_keeps_previous_data() -> None:
    bus = UpdateBus(context_id="orders")
    results = iter(["first", RuntimeError("backend down")])

    async def fetch() -> str:
        value = next(results)
        if isinstance(value, Exception):
            raise value
        return value

    async def scenario() -> Refresher:
        refresher = Refresher(fetch, bus)
        assert await refresher.refresh() is True
        assert await refresher.refresh() is False
        return refresher

    refresher = asyncio.run(scenario())
    assert refresher.latest == "first"


def test_polling_refreshes_without_events() -> None:
    bus = UpdateBus(context_id="orders")
    calls = {"count": 0}

    async def fetch() -> int:
        calls["count"] += 1
        return calls["count"]

    async def scenario() -> None:
        refresher = Refresher(fetch, bus, poll_interval=0.01)
        await refresher.start(initial=False)
        await asyncio.sleep(0.05)
        await refresher.stop()

    asyncio.run(scenario())
    assert calls["count"] >= 2
    assert bus.subscriber_count == 0
