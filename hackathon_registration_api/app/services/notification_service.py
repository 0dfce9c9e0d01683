"""
Best-effort fan-out of change events to live subscribers.

Each subscriber (one per open server‑sent‑events connection) owns a
bounded ``asyncio.Queue``.  ``publish`` never raises: a subscriber
whose queue is full is dropped without affecting the others or the
request that triggered the event.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from fastapi.concurrency import run_in_threadpool


logger = logging.getLogger(__name__)


def format_sse(message: Dict[str, Any]) -> str:
    """Encode a message as a single SSE ``data:`` frame."""
    return f"data: {json.dumps(message, default=str)}\n\n"


class EventBroadcaster:
    """In-process publish/subscribe hub for change notifications."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event_type: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Queue an event for every subscriber; returns how many received it."""
        message = {
            "type": event_type,
            "data": data or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping slow event subscriber (queue full)")
                self._subscribers.discard(queue)
        return delivered


async def broadcast_snapshot(state, event_type: str, **extra: Any) -> None:
    """Publish ``event_type`` with fresh registration and catalog lists.

    Fire-and-forget: failures are logged and never reach the caller.
    Skips the storage reads entirely when nobody is listening.
    """
    broadcaster = state.broadcaster
    if not broadcaster.subscriber_count:
        return
    try:
        registrations = await run_in_threadpool(state.storage.get_all_registrations)
        problems = await run_in_threadpool(state.storage.get_all_problem_statements)
        problems.sort(key=lambda p: str(p.get("id")))
        broadcaster.publish(event_type, {"registrations": registrations, "problems": problems, **extra})
    except Exception:
        logger.exception("Failed to broadcast %s event", event_type)
