"""
Server-sent events endpoint for live dashboard updates.

Each connection subscribes to the ``EventBroadcaster``.  A
``connected`` frame is sent first, then every published change, with
a ``heartbeat`` frame whenever nothing happened for
``SSE_HEARTBEAT_SECONDS``.
"""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from hackathon_registration_api.app.api.deps import get_state
from hackathon_registration_api.app.core.state import AppState
from hackathon_registration_api.app.services.notification_service import format_sse


router = APIRouter()


@router.get("/events")
async def stream_events(request: Request, state: AppState = Depends(get_state)) -> StreamingResponse:
    broadcaster = state.broadcaster
    queue = broadcaster.subscribe()
    heartbeat = state.settings.sse_heartbeat_seconds

    async def event_stream():
        try:
            yield format_sse({"type": "connected", "message": "Real-time updates enabled"})
            while not await request.is_disconnected():
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    message = {"type": "heartbeat", "timestamp": datetime.now(timezone.utc).isoformat()}
                yield format_sse(message)
        finally:
            broadcaster.unsubscribe(queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
