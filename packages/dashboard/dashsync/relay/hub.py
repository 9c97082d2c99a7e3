from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from ..config import get_settings
from ..events.bus import KindFilter, coerce_kinds
from ..events.models import UpdateEvent

logger = logging.getLogger(__name__)


@dataclass
class HubSubscriber:
    subscriber_id: int
    queue: asyncio.Queue
    kinds: Optional[frozenset[str]] = None
    dropped: int = field(default=0)

    def accepts(self, event: UpdateEvent) -> bool:
        return self.kinds is None or event.kind.value in self.kinds


class UpdateHub:
    """Fan update events out to every connected relay stream.

    Each stream has a bounded queue; a stream that falls behind loses events
    rather than slowing the publishers down.
    """

    def __init__(self, queue_size: Optional[int] = None) -> None:
        self.queue_size = queue_size if queue_size is not None else get_settings().relay_queue_size
        self._subscribers: dict[int, HubSubscriber] = {}
        self._ids = itertools.count(1)
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, kinds: KindFilter = None) -> HubSubscriber:
        subscriber = HubSubscriber(
            subscriber_id=next(self._ids),
            queue=asyncio.Queue(maxsize=self.queue_size),
            kinds=coerce_kinds(kinds),
        )
        self._subscribers[subscriber.subscriber_id] = subscriber
        logger.debug("Relay subscriber %s connected", subscriber.subscriber_id)
        return subscriber

    def unsubscribe(self, subscriber: HubSubscriber) -> None:
        if self._subscribers.pop(subscriber.subscriber_id, None) is not None:
            logger.debug("Relay subscriber %s disconnected", subscriber.subscriber_id)

    def publish(self, event: UpdateEvent) -> int:
        self.published += 1
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if not subscriber.accepts(event):
                continue
            try:
                subscriber.queue.put_nowait(event)
            except asyncio.QueueFull:
                subscriber.dropped += 1
                logger.warning(
                    "Relay subscriber %s is full; dropped %s",
                    subscriber.subscriber_id,
                    event.kind.value,
                )
                continue
            delivered += 1
        return delivered

    async def events(
        self,
        subscriber: HubSubscriber,
        *,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[Optional[UpdateEvent]]:
        """Yield queued events; yields None whenever ``timeout`` passes without one."""
        while subscriber.subscriber_id in self._subscribers:
            try:
                if timeout is None:
                    event = await subscriber.queue.get()
                else:
                    event = await asyncio.wait_for(subscriber.queue.get(), timeout)
            except asyncio.TimeoutError:
                yield None
                continue
            yield event


__all__ = ["HubSubscriber", "UpdateHub"]
