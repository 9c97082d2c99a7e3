import asyncio
import json

import httpx

from dashsync.api import ApiSession, BackendClient
from dashsync.events import InMemorySharedStorage, UpdateBus, UpdateKind
from dashsync.services import OrderService

BASE_URL = "http://backend.test/api"


def _service(handler, bus=None, session=None, **kwargs) -> OrderService:
    transport = httpx.MockTransport(handler)
    client = BackendClient(BASE_URL, session=session, client=httpx.AsyncClient(transport=transport))
    return OrderService(client, bus, **kwargs)


def _listening():
    storage = InMemorySharedStorage()
    accountant = UpdateBus(storage, context_id="accountant")
    kitchen = UpdateBus(storage, context_id="kitchen")
    heard = []
    kitchen.subscribe(heard.append)
    return accountant, heard


def _body(request: httpx.Request) -> dict:
    return json.loads(request.content) if request.content else {}


def test_list_orders_sends_scope_as_query_and_maps_records() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "orders": [
                    {
                        "order_id": 12,
                        "order_status": "Running",
                        "g_total_amount": "1500",
                        "net_total_amount": "0",
                        "discount_amount": "100",
                        "hall_name": "Roof",
                    },
                    {"customer_name": "no id"},
                ]
            },
        )

    session = ApiSession(token="t", role="accountant", branch_id=3)
    listing = asyncio.run(_service(handler, session=session).list_orders(status="Running"))

    assert seen == {
        "method": "GET",
        "params": {"terminal": "1", "branch_id": "3", "status": "Running"},
    }
    assert listing.error is None
    assert listing.dropped == 1
    order = listing.items[0]
    assert order["order_number"] == "ORD-12"
    assert order["status"] == "running"
    assert order["order_status"] == "Running"
    assert order["total"] == 1500.0
    assert order["net_total"] == 1500.0
    assert order["discount"] == 100.0
    assert order["order_type"] == "Dine In"
    assert order["payment_mode"] == "Cash"


def test_list_orders_reports_backend_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Terminal not found"})

    listing = asyncio.run(_service(handler).list_orders())
    assert listing.items == []
    assert listing.error == "Terminal not found"


def test_create_order_announces_new_order() -> None:
    bus, heard = _listening()
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append((request.url.path, _body(request)))
        return httpx.Response(200, json={"success": True, "order_id": 77})

    outcome = asyncio.run(_service(handler, bus=bus).create_order({"table_id": 4, "items": [{"dish_id": 1}]}))

    assert outcome.success
    assert outcome.identifier == 77
    assert bodies[0][0] == "/api/create_order_with_kitchen.php"
    assert bodies[0][1]["terminal"] == 1
    assert bodies[0][1]["table_id"] == 4
    assert [(event.kind, event.payload) for event in heard] == [(UpdateKind.ORDER_CREATED, {"order_id": 77})]


def test_create_order_without_identifier_is_not_announced() -> None:
    bus, heard = _listening()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "message": "Order placed"})

    outcome = asyncio.run(_service(handler, bus=bus).create_order({"table_id": 4}))
    assert outcome.success
    assert outcome.identifier is None
    assert heard == []


def test_failed_create_order_publishes_nothing() -> None:
    bus, heard = _listening()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Table is occupied"})

    outcome = asyncio.run(_service(handler, bus=bus).create_order({"table_id": 4}))
    assert not outcome.success
    assert outcome.message == "Table is occupied"
    assert heard == []


def test_update_order_requires_success_flag() -> None:
    bus, heard = _listening()
    replies = iter(
        [
            {"message": "Order updated successfully"},
            {"success": True, "message": "Order updated"},
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=next(replies))

    service = _service(handler, bus=bus)
    first = asyncio.run(service.update_order(5, {"order_status": "Running", "discount_amount": 50}))
    second = asyncio.run(service.update_order(5, {"order_status": "Running", "discount_amount": 50}))

    assert not first.success
    assert second.success
    assert [(event.kind, event.payload) for event in heard] == [(UpdateKind.ORDER_UPDATED, {"order_id": 5})]


def test_change_status_posts_order_number_and_announces() -> None:
    bus, heard = _listening()
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = _body(request)
        return httpx.Response(200, json={"status": "success"})

    outcome = asyncio.run(_service(handler, bus=bus).change_status(9, "Complete"))

    assert outcome.success
    assert outcome.message == "Order status updated successfully!"
    assert captured == {
        "path": "/api/chnageorder_status.php",
        "body": {"status": "Complete", "order_id": 9, "orderid": "ORD-9"},
    }
    assert heard[0].kind is UpdateKind.ORDER_STATUS_CHANGED
    assert heard[0].payload == {"order_id": 9, "status": "Complete"}


def test_delete_order_sends_json_body_with_delete() -> None:
    bus, heard = _listening()
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = _body(request)
        return httpx.Response(200, json={"success": True})

    outcome = asyncio.run(_service(handler, bus=bus).delete_order(31))

    assert outcome.success
    assert outcome.message == "Order deleted successfully!"
    assert captured == {"method": "DELETE", "body": {"order_id": 31, "orderid": "ORD-31"}}
    assert [(event.kind, event.payload) for event in heard] == [(UpdateKind.ORDER_DELETED, {"order_id": 31})]


def test_failed_delete_order_publishes_nothing() -> None:
    bus, heard = _listening()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"success": False, "message": "Order already billed"})

    outcome = asyncio.run(_service(handler, bus=bus).delete_order(31))
    assert not outcome.success
    assert outcome.message == "Order already billed"
    assert heard == []


def test_generate_bill_announces_bill_and_status() -> None:
    bus, heard = _listening()
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(_body(request))
        return httpx.Response(200, json={"success": True, "data": {"bill": {"bill_id": 501}}})

    outcome = asyncio.run(_service(handler, bus=bus).generate_bill(14, 1000.0, service_charge=50.0, discount=100.0))

    assert outcome.success
    assert outcome.identifier == 501
    assert bodies[0]["grand_total"] == 950.0
    assert bodies[0]["payment_status"] == "Unpaid"
    assert [(event.kind, event.payload) for event in heard] == [
        (UpdateKind.BILL_CREATED, {"bill_id": 501, "order_id": 14}),
        (UpdateKind.ORDER_STATUS_CHANGED, {"order_id": 14, "status": "Bill Generated"}),
    ]


def test_pay_bill_announces_payment_then_completes_order() -> None:
    bus, heard = _listening()
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.url.path, _body(request)))
        if request.url.path.endswith("bills_management.php"):
            return httpx.Response(200, json={"success": True, "message": "Payment updated"})
        return httpx.Response(200, json={"success": True})

    outcome = asyncio.run(
        _service(handler, bus=bus).pay_bill(14, "Cash", bill_id=501, cash_received=1000.0, change=50.0)
    )

    assert outcome.success
    bill_body = requests[0][1]
    assert bill_body["payment_status"] == "Paid"
    assert bill_body["cash_received"] == 1000.0
    assert "total_amount" not in bill_body
    assert requests[1] == ("/api/chnageorder_status.php", {"status": "Complete", "order_id": 14, "orderid": "ORD-14"})
    assert [event.kind for event in heard] == [UpdateKind.BILL_PAID, UpdateKind.ORDER_STATUS_CHANGED]
    assert heard[0].payload == {"bill_id": 501, "order_id": 14, "payment_status": "Paid"}


def test_credit_payment_keeps_order_billed() -> None:
    bus, heard = _listening()
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(_body(request))
        return httpx.Response(200, json={"success": True})

    outcome = asyncio.run(_service(handler, bus=bus).pay_bill(14, "Credit", bill_id=501, customer_id=8))

    assert outcome.success
    assert requests[0]["payment_status"] == "Credit"
    assert requests[0]["customer_id"] == 8
    assert requests[0]["is_credit"] is True
    assert "cash_received" not in requests[0]
    assert requests[1]["status"] == "Bill Generated"


def test_failed_payment_leaves_order_alone() -> None:
    bus, heard = _listening()
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"success": False, "message": "Bill not found"})

    outcome = asyncio.run(_service(handler, bus=bus).pay_bill(14, "Card", bill_id=999))

    assert not outcome.success
    assert outcome.message == "Bill not found"
    assert calls == ["/api/bills_management.php"]
    assert heard == []


def test_update_bill_announces_bill_update() -> None:
    bus, heard = _listening()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "Bill updated successfully"})

    outcome = asyncio.run(_service(handler, bus=bus).update_bill(501, {"order_id": 14, "discount": 20}))

    assert outcome.success
    assert heard[0].kind is UpdateKind.BILL_UPDATED
    assert heard[0].payload == {"bill_id": 501, "order_id": 14}


def test_get_bill_queries_by_order() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"success": True, "data": {"bill_id": 501}})

    result = asyncio.run(_service(handler).get_bill(14))
    assert result.success
    assert seen["params"] == {"order_id": "14"}
