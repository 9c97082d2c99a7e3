from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..config import get_settings
from ..events.models import UpdateEvent
from ..events.types import UpdateKind
from .hub import UpdateHub

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

router = APIRouter(prefix="/api", tags=["updates"])


class PublishResponse(BaseModel):
    accepted: bool
    delivered: int


def get_hub(request: Request) -> UpdateHub:
    return request.app.state.hub


def _parse_kinds(kinds: Optional[str]) -> Optional[list[str]]:
    if not kinds:
        return None
    parsed = [item.strip() for item in kinds.split(",") if item.strip()]
    known = {kind.value for kind in UpdateKind}
    unknown = [item for item in parsed if item not in known]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown update kinds: {', '.join(unknown)}")
    return parsed or None


@router.post("/updates", response_model=PublishResponse, status_code=202)
async def publish_update(event: UpdateEvent, hub: UpdateHub = Depends(get_hub)) -> PublishResponse:
    if not event.is_update:
        raise HTTPException(status_code=422, detail="Not a dashboard update event")
    delivered = hub.publish(event)
    logger.info("Relayed %s to %s stream(s)", event.kind.value, delivered)
    return PublishResponse(accepted=True, delivered=delivered)


@router.get("/updates/stream")
async def stream_updates(
    request: Request,
    kinds: Optional[str] = Query(None, description="Comma separated update kinds"),
    hub: UpdateHub = Depends(get_hub),
) -> StreamingResponse:
    kind_filter = _parse_kinds(kinds)
    return StreamingResponse(
        _stream_events(request, hub, kind_filter),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _stream_events(
    request: Request,
    hub: UpdateHub,
    kinds: Optional[list[str]],
) -> AsyncGenerator[str, None]:
    subscriber = hub.subscribe(kinds)
    try:
        yield ": connected\n\n"
        async for event in hub.events(subscriber, timeout=KEEPALIVE_SECONDS):
            if await request.is_disconnected():
                return
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield event.to_sse()
    finally:
        hub.unsubscribe(subscriber)


def create_app(hub: Optional[UpdateHub] = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Dashboard Update Relay")
    app.state.hub = hub or UpdateHub()

    allow_origins = settings.cors_allow_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, Any]:
        current: UpdateHub = app.state.hub
        return {
            "status": "ok",
            "subscribers": current.subscriber_count,
            "published": current.published,
        }

    return app


__all__ = ["create_app", "get_hub", "router"]
