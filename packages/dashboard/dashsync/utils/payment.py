from __future__ import annotations

from typing import Any, Mapping, Optional

from ..normalizer import js_truthy


def _text(sale: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = sale.get(key)
        if js_truthy(value):
            return str(value).strip()
    return ""


def _payment_mode(sale: Mapping[str, Any]) -> str:
    return _text(sale, "payment_mode", "paymentMethod", "paymentMode")


def _payment_method(sale: Mapping[str, Any]) -> str:
    return _text(sale, "payment_method", "paymentMethod")


def _payment_status(sale: Mapping[str, Any]) -> str:
    return _text(sale, "payment_status", "paymentStatus")


def _customer_id(sale: Mapping[str, Any]) -> Any:
    for key in ("customer_id", "customerId"):
        if js_truthy(sale.get(key)):
            return sale[key]
    return None


def _positive(value: Any) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def is_credit_payment(sale: Optional[Mapping[str, Any]]) -> bool:
    """True when any of the payment fields or the credit flag marks the sale as credit."""
    if not sale:
        return False
    mode = _payment_mode(sale).lower()
    method = _payment_method(sale).lower()
    status = _payment_status(sale).lower()
    flag = sale.get("is_credit") if js_truthy(sale.get("is_credit")) else sale.get("isCredit")

    if "credit" in (status, method, mode):
        return True
    if flag is True or (not isinstance(flag, bool) and flag in (1, "1")):
        return True
    customer = _customer_id(sale)
    return bool(customer) and _positive(customer) and status == "unpaid" and method == "credit"


def payment_method_display(sale: Optional[Mapping[str, Any]]) -> str:
    if not sale:
        return "N/A"
    if is_credit_payment(sale):
        return "Credit"
    return _payment_mode(sale) or _payment_method(sale) or _payment_status(sale) or "N/A"


def payment_fields(sale: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not sale:
        return {
            "payment_mode": "",
            "payment_method": "",
            "payment_status": "",
            "is_credit": False,
            "customer_id": None,
        }
    is_credit = sale.get("is_credit") if js_truthy(sale.get("is_credit")) else sale.get("isCredit")
    return {
        "payment_mode": _payment_mode(sale),
        "payment_method": _payment_method(sale),
        "payment_status": _payment_status(sale),
        "is_credit": is_credit if js_truthy(is_credit) else False,
        "customer_id": _customer_id(sale),
    }


__all__ = ["is_credit_payment", "payment_fields", "payment_method_display"]
