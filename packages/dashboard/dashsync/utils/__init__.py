from .format import format_datetime, format_pkr, format_price, parse_price
from .payment import is_credit_payment, payment_fields, payment_method_display

__all__ = [
    "format_datetime",
    "format_pkr",
    "format_price",
    "is_credit_payment",
    "parse_price",
    "payment_fields",
    "payment_method_display",
]
