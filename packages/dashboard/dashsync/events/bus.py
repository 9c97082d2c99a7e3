from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..config import get_settings
from ..exceptions import UpdateEventDecodeError
from ..log import log_broadcast
from .models import UpdateEvent, now_millis
from .storage import InMemorySharedStorage, SharedStorage, StorageChange
from .types import UpdateKind

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[UpdateEvent], Any]
KindFilter = Union[UpdateKind, str, Iterable[Union[UpdateKind, str]], None]


def coerce_kinds(kinds: KindFilter) -> Optional[frozenset[str]]:
    if kinds is None:
        return None
    if isinstance(kinds, (UpdateKind, str)):
        kinds = [kinds]
    return frozenset(kind.value if isinstance(kind, UpdateKind) else str(kind) for kind in kinds)


class Subscription:
    """Handle returned by ``UpdateBus.subscribe``; calling it unsubscribes."""

    def __init__(self, bus: UpdateBus, callback: UpdateCallback, kinds: Optional[frozenset[str]]) -> None:
        self._bus = bus
        self.callback = callback
        self.kinds = kinds
        self._remove_storage_listener: Optional[Callable[[], None]] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def accepts(self, event: UpdateEvent) -> bool:
        if not event.is_update:
            return False
        return self.kinds is None or event.kind.value in self.kinds

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._remove_storage_listener is not None:
            self._remove_storage_listener()
            self._remove_storage_listener = None
        self._bus._discard(self)

    def __call__(self) -> None:
        self.unsubscribe()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()

    def _deliver(self, event: UpdateEvent) -> bool:
        if not self._active or not self.accepts(event):
            return False
        try:
            self.callback(event.detached())
        except Exception:
            logger.exception("Update listener failed for %s", event.kind.value)
        return True

    def _on_storage(self, change: StorageChange) -> None:
        if not change.key.startswith(self._bus.key_prefix) or change.new_value is None:
            return
        try:
            event = UpdateEvent.from_storage_value(change.new_value)
        except UpdateEventDecodeError as exc:
            logger.debug("Ignoring storage write %s: %s", change.key, exc)
            return
        self._deliver(event)


class UpdateBus:
    """One dashboard context on the update bus.

    ``publish`` reaches this context's subscribers directly and every other
    context sharing ``storage`` through a transient storage key. Delivery is
    best effort: nothing is queued for contexts that are not listening.
    """

    def __init__(
        self,
        storage: Optional[SharedStorage] = None,
        *,
        context_id: Optional[str] = None,
        key_prefix: Optional[str] = None,
        ttl_ms: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.storage: SharedStorage = storage if storage is not None else InMemorySharedStorage()
        self.context_id = context_id or uuid.uuid4().hex
        self.key_prefix = key_prefix or settings.storage_key_prefix
        self.ttl_ms = settings.transient_ttl_ms if ttl_ms is None else ttl_ms
        self._subscriptions: List[Subscription] = []
        self._last_millis = 0
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: UpdateCallback, kinds: KindFilter = None) -> Subscription:
        if self._closed:
            raise RuntimeError("Cannot subscribe to a closed update bus")
        subscription = Subscription(self, callback, coerce_kinds(kinds))
        subscription._remove_storage_listener = self.storage.add_listener(
            subscription._on_storage, context=self.context_id
        )
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, kind: Union[UpdateKind, str], payload: Optional[dict[str, Any]] = None) -> Optional[UpdateEvent]:
        """Announce a change; returns the event, or None if it could not be built."""
        try:
            event = UpdateEvent(
                kind=kind,
                payload=payload,
                emitted_at_millis=self._next_millis(),
                context_id=self.context_id,
            )
        except ValidationError as exc:
            logger.warning("Dropping update %r: %s", kind, exc.errors()[0].get("msg", "invalid"))
            return None

        key = f"{self.key_prefix}{event.emitted_at_millis}"
        try:
            self.storage.set_item(key, event.to_storage_value(), writer=self.context_id)
        except Exception:
            logger.exception("Failed to write update %s to shared storage", key)
        else:
            self._schedule_removal(key)

        delivered = self._dispatch(event)
        log_broadcast(event.kind.value, event.payload, delivered)
        return event

    def deliver(self, event: UpdateEvent) -> int:
        """Hand an event received from outside (e.g. the relay) to local subscribers."""
        return self._dispatch(event)

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        self._closed = True

    def _dispatch(self, event: UpdateEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription._deliver(event):
                delivered += 1
        return delivered

    def _discard(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def _next_millis(self) -> int:
        millis = now_millis()
        if millis <= self._last_millis:
            millis = self._last_millis + 1
        self._last_millis = millis
        return millis

    def _schedule_removal(self, key: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is None or self.ttl_ms <= 0:
            self._remove_key(key)
            return
        loop.call_later(self.ttl_ms / 1000.0, self._remove_key, key)

    def _remove_key(self, key: str) -> None:
        try:
            self.storage.remove_item(key, writer=self.context_id)
        except Exception:
            logger.exception("Failed to remove transient update key %s", key)


__all__ = ["KindFilter", "Subscription", "UpdateBus", "UpdateCallback", "coerce_kinds"]
