"""
Service layer for the release flag.

The flag lives on ``AppState`` so every request sees the same value
without a storage round trip, and is persisted through the backend's
settings record so it survives restarts.  A failure to persist is
logged; the in‑memory value still applies for this process.
"""

import logging
from typing import TYPE_CHECKING

from fastapi.concurrency import run_in_threadpool

from hackathon_registration_api.app.core.exceptions import StorageError

if TYPE_CHECKING:
    from hackathon_registration_api.app.core.state import AppState


logger = logging.getLogger(__name__)


class ReleaseService:
    """Read and toggle public visibility of the problem catalog."""

    def __init__(self, state: "AppState"):
        self.state = state

    def get_released(self) -> bool:
        return self.state.problems_released is True

    async def set_released(self, released: bool) -> bool:
        released = bool(released)
        self.state.problems_released = released
        try:
            await run_in_threadpool(self.state.storage.set_settings, {"problemsReleased": released})
        except StorageError:
            logger.exception("Could not persist release flag; keeping in-memory value %s", released)
        logger.info("Problem statements %s", "released" if released else "hidden")
        self.state.broadcaster.publish("release", {"released": released})
        return released
