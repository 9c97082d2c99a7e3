from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from ..events.bus import KindFilter, Subscription, UpdateBus
from ..events.models import UpdateEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Refresher(Generic[T]):
    """Refetch a view when matching updates arrive, optionally polling as a backstop.

    Refreshes may overlap. Each one takes a generation number and its result
    is applied only if no newer refresh has already been applied, so a slow
    response can never overwrite fresher data.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        bus: UpdateBus,
        kinds: KindFilter = None,
        *,
        on_update: Optional[Callable[[T], Any]] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        self._fetch = fetch
        self._bus = bus
        self._kinds = kinds
        self._on_update = on_update
        self.poll_interval = poll_interval
        self._generation = 0
        self._applied_generation = 0
        self._subscription: Optional[Subscription] = None
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._pending: set[asyncio.Task[Any]] = set()
        self.latest: Optional[T] = None
        self.stale_discarded = 0

    @property
    def running(self) -> bool:
        return self._subscription is not None

    async def start(self, *, initial: bool = True) -> None:
        if self.running:
            return
        self._subscription = self._bus.subscribe(self._on_event, self._kinds)
        if self.poll_interval:
            self._poll_task = asyncio.create_task(self._poll_loop())
        if initial:
            await self.refresh()

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

    async def __aenter__(self) -> Refresher[T]:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def refresh(self) -> bool:
        """Fetch once; returns True if the result was applied."""
        self._generation += 1
        generation = self._generation
        try:
            data = await self._fetch()
        except Exception:
            logger.exception("Refresh %s failed", generation)
            return False
        if generation < self._applied_generation:
            self.stale_discarded += 1
            logger.debug("Discarding stale refresh %s (applied %s)", generation, self._applied_generation)
            return False
        self._applied_generation = generation
        self.latest = data
        if self._on_update is not None:
            try:
                self._on_update(data)
            except Exception:
                logger.exception("Refresh callback failed")
        return True

    def _on_event(self, event: UpdateEvent) -> None:
        logger.debug("Refreshing after %s", event.kind.value)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Update %s arrived outside an event loop; skipping refresh", event.kind.value)
            return
        task = loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _poll_loop(self) -> None:
        interval = float(self.poll_interval or 0)
        while True:
            await asyncio.sleep(interval)
            await self.refresh()


__all__ = ["Refresher"]
