"""
Process-wide application state.

``AppState`` owns everything that used to be ambient global state: the
active storage backend, the release flag and the event broadcaster.
It is created in ``main.create_app``, stored on ``app.state`` and
handed to the services explicitly.
"""

import logging
from typing import Optional

from .config import Settings
from .db import build_file_storage, can_fall_back
from .exceptions import StorageConnectivityError
from hackathon_registration_api.app.services.notification_service import EventBroadcaster
from hackathon_registration_api.app.storage.base import StorageBackend
from hackathon_registration_api.app.storage.json_store import JSONFileStorage


logger = logging.getLogger(__name__)


class AppState:
    """Explicitly owned runtime state shared by the services."""

    def __init__(self, settings: Settings, storage: StorageBackend, broadcaster: Optional[EventBroadcaster] = None):
        self.settings = settings
        self.storage = storage
        self.broadcaster = broadcaster or EventBroadcaster()
        self.problems_released = False
        self.fell_back = False

    def load_settings(self) -> None:
        """Read the persisted release flag into memory."""
        stored = self.storage.get_settings()
        if isinstance(stored.get("problemsReleased"), bool):
            self.problems_released = stored["problemsReleased"]

    def fall_back(self, error: StorageConnectivityError) -> StorageBackend:
        """Switch to the JSON file backend once, or re-raise ``error``.

        Only allowed outside managed environments and only while the
        transactional backend is active.  Once switched, later calls
        return the file backend already in use.
        """
        if self.fell_back and isinstance(self.storage, JSONFileStorage):
            return self.storage
        if self.fell_back or not can_fall_back(self.storage, self.settings):
            raise error
        fallback = build_file_storage(self.settings)
        fallback.init()
        logger.warning("Switching to JSON file storage at %s after: %s", fallback.data_file, error)
        previous, self.storage = self.storage, fallback
        self.fell_back = True
        previous.close()
        return fallback
