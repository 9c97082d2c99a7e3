from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..config import get_settings
from ..events.bus import KindFilter, Subscription, UpdateBus, coerce_kinds
from ..events.models import UpdateEvent
from ..exceptions import RelayError, UpdateEventDecodeError

logger = logging.getLogger(__name__)


class RelayBridge:
    """Carry update events between a local bus and a remote relay.

    Events published on the local bus are pushed to the relay; events read
    from the relay stream are handed to local subscribers. Events that came
    from this bus's own context are never echoed back into it.
    """

    def __init__(
        self,
        bus: UpdateBus,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        kinds: KindFilter = None,
    ) -> None:
        settings = get_settings()
        url = base_url or settings.relay_url
        if not url:
            raise RelayError("No relay URL configured (set DASHSYNC_RELAY_URL)")
        self.bus = bus
        self.base_url = url.rstrip("/")
        self.kinds = coerce_kinds(kinds)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self._subscription: Optional[Subscription] = None
        self._pending: set[asyncio.Task[Any]] = set()
        self.forwarded = 0
        self.received = 0

    async def __aenter__(self) -> RelayBridge:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def attached(self) -> bool:
        return self._subscription is not None

    def attach(self) -> None:
        """Forward this context's own publications to the relay."""
        if self._subscription is not None:
            return
        self._subscription = self.bus.subscribe(self._on_local_event, self.kinds)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def aclose(self) -> None:
        self.detach()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
            self._pending.clear()
        if self._owns_client:
            await self._client.aclose()

    async def push(self, event: UpdateEvent) -> bool:
        url = f"{self.base_url}/api/updates"
        try:
            response = await self._client.post(
                url,
                content=event.to_storage_value(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Relay push of %s failed: %s", event.kind.value, exc)
            return False
        if response.status_code >= 400:
            logger.warning("Relay rejected %s with HTTP %s", event.kind.value, response.status_code)
            return False
        self.forwarded += 1
        return True

    async def listen(self, *, max_events: Optional[int] = None) -> int:
        """Read the relay stream into the local bus; returns the number of events delivered."""
        url = f"{self.base_url}/api/updates/stream"
        params = {"kinds": ",".join(sorted(self.kinds))} if self.kinds else None
        delivered = 0
        try:
            async with self._client.stream("GET", url, params=params, timeout=None) as response:
                if response.status_code != 200:
                    raise RelayError(
                        f"Relay stream returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    event = self._parse_line(line)
                    if event is None or event.context_id == self.bus.context_id:
                        continue
                    self.received += 1
                    self.bus.deliver(event)
                    delivered += 1
                    if max_events is not None and delivered >= max_events:
                        break
        except httpx.HTTPError as exc:
            raise RelayError(f"Relay stream failed: {exc}") from exc
        return delivered

    @staticmethod
    def _parse_line(line: str) -> Optional[UpdateEvent]:
        if not line.startswith("data:"):
            return None
        body = line[len("data:"):].strip()
        try:
            return UpdateEvent.from_storage_value(body)
        except UpdateEventDecodeError as exc:
            logger.debug("Skipping relay line: %s", exc)
            return None

    def _on_local_event(self, event: UpdateEvent) -> None:
        if event.context_id != self.bus.context_id:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Cannot forward %s outside an event loop", event.kind.value)
            return
        task = loop.create_task(self.push(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


__all__ = ["RelayBridge"]
