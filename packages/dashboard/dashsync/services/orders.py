"""Orders and bills: the screens that drive most cross-dashboard traffic.

Every successful mutation announces its order or bill kind so the order
screens of other dashboards refetch.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..api.client import ApiResult, BackendClient
from ..api.session import ApiSession
from ..config import get_settings
from ..events.bus import UpdateBus
from ..events.types import UpdateKind
from ..normalizer import EmptyPolicy, normalize, pick
from .resources import MutationOutcome, ResourceListing, _as_float, mutation_succeeded

logger = logging.getLogger(__name__)

ORDER_ID_ALIASES = ("order_id", "id", "OrderID", "orderid")
BILL_GENERATED = "Bill Generated"


def order_number(order_id: Any) -> Optional[str]:
    if order_id is None or order_id == "":
        return None
    text = str(order_id)
    return text if text.upper().startswith("ORD") else f"ORD-{text}"


def map_order(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    order_id = pick(record, "order_id", "id", "OrderID")
    number = order_number(record.get("order_id")) or pick(record, "orderid", "order_number") or order_number(order_id)
    gross = _as_float(pick(record, "g_total_amount", "total", "grand_total"))
    net = _as_float(pick(record, "net_total_amount", "net_total", "netTotal", "grand_total"))
    if net == 0 and gross > 0:
        net = gross
    raw_status = pick(record, "order_status", "status", "Status", default="Pending")
    return {
        "id": order_id,
        "order_id": order_id,
        "order_number": number,
        "orderid": record.get("orderid") or number,
        "order_type": record.get("order_type") or "Dine In",
        "table_id": pick(record, "table_id", "tableid", default="-"),
        "hall_id": record.get("hall_id") or "-",
        "hall_name": record.get("hall_name") or "-",
        "customer_name": pick(record, "customer_name", "customer", default="-"),
        "total": gross,
        "discount": _as_float(pick(record, "discount_amount", "discount")),
        "service_charge": _as_float(record.get("service_charge")),
        "net_total": net,
        "status": str(raw_status).strip().lower(),
        "order_status": raw_status,
        "payment_mode": record.get("payment_mode") or "Cash",
        "created_at": pick(record, "created_at", "date", default=""),
        "terminal": record.get("terminal") or session.terminal,
    }


def _response_field(result: ApiResult, *keys: str) -> Any:
    """First usable value under the body, ``data`` or ``data.bill``."""
    body = result.data if isinstance(result.data, dict) else {}
    holders = [body]
    nested = body.get("data")
    if isinstance(nested, dict):
        holders.append(nested)
        if isinstance(nested.get("bill"), dict):
            holders.append(nested["bill"])
    if isinstance(body.get("order"), dict):
        holders.append(body["order"])
    for holder in holders:
        value = pick(holder, *keys)
        if value is not None:
            return value
    return None


class OrderService:
    def __init__(
        self,
        client: BackendClient,
        bus: Optional[UpdateBus] = None,
        *,
        empty_policy: EmptyPolicy | str | None = None,
    ) -> None:
        self.client = client
        self.bus = bus
        self.empty_policy = empty_policy or get_settings().empty_policy

    @property
    def session(self) -> ApiSession:
        return self.client.session

    async def list_orders(self, status: Optional[str] = None) -> ResourceListing:
        params: dict[str, Any] = {"terminal": self.session.terminal}
        if self.session.branch_id is not None:
            params["branch_id"] = self.session.branch_id
        if status and status != "all":
            params["status"] = status
        result = await self.client.get("/order_management.php", params)
        if result.status == 0:
            return ResourceListing(error=result.message("Network error"))

        normalized = normalize(result, ("orders",), id_aliases=ORDER_ID_ALIASES, empty_policy=self.empty_policy)
        if normalized.is_error_shape:
            return ResourceListing(error=normalized.error_message or "Failed to load orders")
        if not normalized.items and not result.success:
            return ResourceListing(error=result.message("Failed to load orders. Please check your connection."))
        return ResourceListing(
            items=[map_order(record, self.session) for record in normalized.items],
            empty_warning=normalized.empty_warning,
            dropped=normalized.dropped,
        )

    async def create_order(self, order: dict[str, Any]) -> MutationOutcome:
        body = {"terminal": self.session.terminal, **order}
        if self.session.branch_id is not None:
            body.setdefault("branch_id", self.session.branch_id)
        result = await self.client.post("/create_order_with_kitchen.php", body)
        order_id = _response_field(result, "order_id")
        if not result.success or (not result.body_success and order_id is None):
            return MutationOutcome(success=False, message=result.message("Failed to place order"))
        if order_id is not None:
            self._announce(UpdateKind.ORDER_CREATED, {"order_id": order_id})
        else:
            logger.warning("Order created without an order_id in the response; not announcing it")
        return MutationOutcome(
            success=True,
            message=result.message("Order placed successfully!"),
            identifier=order_id,
        )

    async def update_order(self, order_id: Any, fields: dict[str, Any]) -> MutationOutcome:
        body = {"terminal": self.session.terminal, **fields, "order_id": order_id}
        result = await self.client.post("/order_management.php", body)
        if not (result.success and result.body_success):
            return MutationOutcome(
                success=False,
                message=result.message("Failed to update order details"),
                identifier=order_id,
            )
        self._announce(UpdateKind.ORDER_UPDATED, {"order_id": order_id})
        return MutationOutcome(
            success=True,
            message=result.message("Order updated successfully!"),
            identifier=order_id,
        )

    async def change_status(self, order_id: Any, status: str) -> MutationOutcome:
        body: dict[str, Any] = {"status": status, "order_id": order_id}
        number = order_number(order_id)
        if number:
            body["orderid"] = number
        result = await self.client.post("/chnageorder_status.php", body)
        if not mutation_succeeded(result):
            return MutationOutcome(
                success=False,
                message=result.message("Failed to update order status"),
                identifier=order_id,
            )
        self._announce(UpdateKind.ORDER_STATUS_CHANGED, {"order_id": order_id, "status": status})
        return MutationOutcome(
            success=True,
            message=result.message("Order status updated successfully!"),
            identifier=order_id,
        )

    async def delete_order(self, order_id: Any) -> MutationOutcome:
        body = {"order_id": order_id, "orderid": order_number(order_id) or order_id}
        result = await self.client.delete("/order_management.php", body)
        if not (result.success and result.body_success):
            return MutationOutcome(
                success=False,
                message=result.message("Failed to delete order"),
                identifier=order_id,
            )
        self._announce(UpdateKind.ORDER_DELETED, {"order_id": order_id})
        return MutationOutcome(
            success=True,
            message=result.message("Order deleted successfully!"),
            identifier=order_id,
        )

    async def get_bill(self, order_id: Any) -> ApiResult:
        return await self.client.get("/bills_management.php", {"order_id": order_id})

    async def generate_bill(
        self,
        order_id: Any,
        subtotal: float,
        *,
        service_charge: float = 0.0,
        discount: float = 0.0,
        payment_method: str = "Cash",
    ) -> MutationOutcome:
        """Create an unpaid bill for an order and mark the order as billed."""
        body = {
            "order_id": order_id,
            "total_amount": subtotal,
            "service_charge": service_charge,
            "discount": discount,
            "grand_total": subtotal + service_charge - discount,
            "payment_method": payment_method,
            "payment_status": "Unpaid",
        }
        result = await self.client.post("/bills_management.php", body)
        if not (result.success and result.body_success):
            return MutationOutcome(
                success=False,
                message=result.message("Failed to generate bill"),
                identifier=order_id,
            )
        bill_id = _response_field(result, "bill_id")
        self._announce(UpdateKind.BILL_CREATED, {"bill_id": bill_id, "order_id": order_id})
        self._announce(UpdateKind.ORDER_STATUS_CHANGED, {"order_id": order_id, "status": BILL_GENERATED})
        return MutationOutcome(
            success=True,
            message=result.message("Bill generated successfully!"),
            identifier=bill_id,
        )

    async def update_bill(self, bill_id: Any, fields: dict[str, Any]) -> MutationOutcome:
        body = {**fields, "bill_id": bill_id}
        result = await self.client.post("/bills_management.php", body)
        if not mutation_succeeded(result):
            return MutationOutcome(success=False, message=result.message("Failed to update bill"), identifier=bill_id)
        self._announce(UpdateKind.BILL_UPDATED, {"bill_id": bill_id, "order_id": fields.get("order_id")})
        return MutationOutcome(
            success=True,
            message=result.message("Bill updated successfully!"),
            identifier=bill_id,
        )

    async def pay_bill(
        self,
        order_id: Any,
        payment_method: str,
        *,
        bill_id: Any = None,
        cash_received: Optional[float] = None,
        change: Optional[float] = None,
        customer_id: Any = None,
    ) -> MutationOutcome:
        """Record payment of a bill, then complete the order.

        Credit payments keep the order at "Bill Generated"; the amounts are not
        resent so the backend treats the call as a payment update.
        """
        credit = payment_method == "Credit"
        payment_status = "Credit" if credit else "Paid"
        body: dict[str, Any] = {
            "payment_status": payment_status,
            "payment_method": payment_method,
            "order_id": order_id,
        }
        if bill_id is not None:
            body["bill_id"] = bill_id
        if credit and customer_id is not None:
            body["customer_id"] = customer_id
            body["is_credit"] = True
        if payment_method == "Cash":
            if cash_received is not None:
                body["cash_received"] = cash_received
            if change is not None:
                body["change"] = change

        result = await self.client.post("/bills_management.php", body)
        if not (mutation_succeeded(result) or _response_field(result, "payment_status") == payment_status):
            return MutationOutcome(
                success=False,
                message=result.message("Failed to update bill payment"),
                identifier=bill_id,
            )
        bill_id = bill_id if bill_id is not None else _response_field(result, "bill_id")
        self._announce(
            UpdateKind.BILL_PAID,
            {"bill_id": bill_id, "order_id": order_id, "payment_status": payment_status},
        )

        status = await self.change_status(order_id, BILL_GENERATED if credit else "Complete")
        if not status.success:
            logger.warning("Bill %s paid but order %s status update failed: %s", bill_id, order_id, status.message)
        return MutationOutcome(
            success=True,
            message=result.message("Payment recorded successfully!"),
            identifier=bill_id,
        )

    def _announce(self, kind: UpdateKind, payload: dict[str, Any]) -> None:
        if self.bus is None:
            return
        self.bus.publish(kind, payload)


__all__ = ["OrderService", "map_order", "order_number"]
