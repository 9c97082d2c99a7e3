from enum import Enum


class UpdateKind(str, Enum):
    # Orders
    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"
    ORDER_DELETED = "order_deleted"
    ORDER_STATUS_CHANGED = "order_status_changed"

    # Bills
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_PAID = "bill_paid"

    # Catalogue and floor
    TABLE_UPDATED = "table_updated"
    DISH_UPDATED = "dish_updated"
    CATEGORY_UPDATED = "category_updated"


ORDER_KINDS = frozenset(
    {
        UpdateKind.ORDER_CREATED,
        UpdateKind.ORDER_UPDATED,
        UpdateKind.ORDER_DELETED,
        UpdateKind.ORDER_STATUS_CHANGED,
    }
)

BILL_KINDS = frozenset(
    {
        UpdateKind.BILL_CREATED,
        UpdateKind.BILL_UPDATED,
        UpdateKind.BILL_PAID,
    }
)

# What the order screens refetch on.
ORDER_SCREEN_KINDS = ORDER_KINDS | BILL_KINDS

UPDATE_ORIGIN = "dashboard_sync"
