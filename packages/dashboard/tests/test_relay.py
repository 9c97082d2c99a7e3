import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from dashsync.config import refresh_settings
from dashsync.events import UpdateBus, UpdateEvent, UpdateKind
from dashsync.exceptions import RelayError
from dashsync.relay import RelayBridge, UpdateHub, create_app

RELAY_URL = "http://relay.test"


def _event(kind=UpdateKind.ORDER_CREATED, context="remote", **payload) -> UpdateEvent:
    return UpdateEvent(kind=kind, payload=payload, context_id=context)


def test_hub_fans_out_with_kind_filters() -> None:
    hub = UpdateHub(queue_size=4)
    everything = hub.subscribe()
    bills = hub.subscribe([UpdateKind.BILL_PAID])

    assert hub.publish(_event(order_id=1)) == 1
    assert hub.publish(_event(UpdateKind.BILL_PAID, bill_id=2)) == 2

    assert everything.queue.qsize() == 2
    assert bills.queue.get_nowait().payload == {"bill_id": 2}
    assert hub.published == 2


def test_hub_drops_events_for_full_subscribers() -> None:
    hub = UpdateHub(queue_size=1)
    subscriber = hub.subscribe()
    hub.publish(_event(order_id=1))
    assert hub.publish(_event(order_id=2)) == 0
    assert subscriber.dropped == 1

    hub.unsubscribe(subscriber)
    hub.unsubscribe(subscriber)
    assert hub.subscriber_count == 0


def test_hub_events_yield_none_on_idle_timeout() -> None:
    hub = UpdateHub()
    subscriber = hub.subscribe()

    async def scenario() -> list:
        received = []
        async for event in hub.events(subscriber, timeout=0.01):
            received.append(event)
            if event is None:
                hub.publish(_event(order_id=9))
            else:
                hub.unsubscribe(subscriber)
        return received

    received = asyncio.run(scenario())
    assert received[0] is None
    assert received[1].payload == {"order_id": 9}


def test_queue_size_comes_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("DASHSYNC_RELAY_QUEUE_SIZE", "3")
    refresh_settings()
    assert UpdateHub().queue_size == 3


def test_post_update_reaches_stream_subscribers() -> None:
    hub = UpdateHub()
    subscriber = hub.subscribe()
    client = TestClient(create_app(hub))

    response = client.post(
        "/api/updates",
        json={"type": "order_status_changed", "data": {"order_id": 4, "status": "ready"}, "source": "dashboard_sync"},
    )

    assert response.status_code == 202
    assert response.json() == {"accepted": True, "delivered": 1}
    event = subscriber.queue.get_nowait()
    assert event.kind is UpdateKind.ORDER_STATUS_CHANGED
    assert event.payload["status"] == "ready"


def test_post_rejects_foreign_and_invalid_events() -> None:
    client = TestClient(create_app(UpdateHub()))

    foreign = client.post("/api/updates", json={"type": "order_created", "source": "somebody"})
    assert foreign.status_code == 422

    unknown = client.post("/api/updates", json={"type": "pizza_ready"})
    assert unknown.status_code == 422


def test_stream_rejects_unknown_kinds_and_health_reports_counts() -> None:
    hub = UpdateHub()
    client = TestClient(create_app(hub))

    response = client.get("/api/updates/stream", params={"kinds": "order_created,pizza_ready"})
    assert response.status_code == 400
    assert "pizza_ready" in response.json()["detail"]

    hub.subscribe()
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json() == {"status": "ok", "subscribers": 1, "published": 0}


def test_bridge_requires_a_relay_url() -> None:
    with pytest.raises(RelayError):
        RelayBridge(UpdateBus(context_id="orders"))


def test_bridge_forwards_only_own_publications() -> None:
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(json.loads(request.content))
        return httpx.Response(202, json={"accepted": True, "delivered": 0})

    bus = UpdateBus(context_id="admin")
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def scenario() -> RelayBridge:
        bridge = RelayBridge(bus, RELAY_URL, client=http)
        bridge.attach()
        bus.publish(UpdateKind.TABLE_UPDATED, {"table_id": 3})
        bus.deliver(_event(order_id=1))
        await bridge.aclose()
        await http.aclose()
        return bridge

    bridge = asyncio.run(scenario())
    assert [body["type"] for body in posted] == ["table_updated"]
    assert posted[0]["context"] == "admin"
    assert bridge.forwarded == 1
    assert not bridge.attached


def test_bridge_listen_delivers_remote_events_locally() -> None:
    bus = UpdateBus(context_id="kitchen")
    received = []
    bus.subscribe(received.append)
    requested = {}
    stream = "".join(
        [
            ": connected\n\n",
            _event(order_id=1).to_sse(),
            ": keepalive\n\n",
            _event(order_id=2, context="kitchen").to_sse(),
            "data: not-json\n\n",
            _event(UpdateKind.BILL_PAID, bill_id=5).to_sse(),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        requested["path"] = request.url.path
        requested["kinds"] = request.url.params.get("kinds")
        return httpx.Response(200, content=stream.encode(), headers={"Content-Type": "text/event-stream"})

    async def scenario() -> int:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            bridge = RelayBridge(bus, RELAY_URL, client=http, kinds=["order_created", "bill_paid"])
            return await bridge.listen()

    delivered = asyncio.run(scenario())
    assert delivered == 2
    assert [event.kind for event in received] == [UpdateKind.ORDER_CREATED, UpdateKind.BILL_PAID]
    assert requested == {"path": "/api/updates/stream", "kinds": "bill_paid,order_created"}


def test_bridge_listen_raises_on_bad_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    async def scenario() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await RelayBridge(UpdateBus(context_id="kitchen"), RELAY_URL, client=http).listen()

    with pytest.raises(RelayError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.status_code == 503
