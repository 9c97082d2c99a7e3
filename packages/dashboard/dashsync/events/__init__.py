from .bus import KindFilter, Subscription, UpdateBus, UpdateCallback
from .models import UpdateEvent
from .storage import InMemorySharedStorage, SharedStorage, StorageChange
from .types import (
    BILL_KINDS,
    ORDER_KINDS,
    ORDER_SCREEN_KINDS,
    UPDATE_ORIGIN,
    UpdateKind,
)

__all__ = [
    "UpdateBus",
    "Subscription",
    "UpdateCallback",
    "KindFilter",
    "UpdateEvent",
    "UpdateKind",
    "UPDATE_ORIGIN",
    "ORDER_KINDS",
    "BILL_KINDS",
    "ORDER_SCREEN_KINDS",
    "SharedStorage",
    "InMemorySharedStorage",
    "StorageChange",
]
