from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _to_number(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if match is None:
            return None
        number = float(match.group(0))
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_pkr(amount: Any, show_symbol: bool = True) -> str:
    """Format an amount as Pakistani Rupees, e.g. ``PKR 1,234.50``."""
    number = _to_number(amount)
    formatted = f"{number:,.2f}" if number is not None else "0.00"
    return f"PKR {formatted}" if show_symbol else formatted


def format_price(amount: Any) -> str:
    return format_pkr(amount, show_symbol=False)


def parse_price(price: Any) -> float:
    if not price:
        return 0.0
    cleaned = re.sub(r"pkr", "", str(price), flags=re.IGNORECASE).replace(",", "").strip()
    number = _to_number(cleaned)
    return number if number is not None else 0.0


def format_datetime(value: Any) -> str:
    """Render a backend timestamp as ``Jan 15, 2024 12:30 PM``; unparseable input is returned as is."""
    if not value:
        return ""
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return str(value)
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{moment:%b} {moment.day}, {moment.year} {hour}:{moment:%M} {meridiem}"


__all__ = ["format_datetime", "format_pkr", "format_price", "parse_price"]
