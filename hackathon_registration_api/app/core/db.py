"""
Storage backend selection and startup initialisation.

``build_storage`` picks the backend from configuration: MongoDB when
``MONGODB_URI`` is set, otherwise the JSON file.  ``init_storage``
initialises it and, when MongoDB cannot be reached, falls back once
to the JSON file, but only outside managed environments.  Any other
initialisation failure, such as bad credentials, is raised as is.  A
managed deployment (serverless, read-only filesystem) cannot persist a
local file, so there the connectivity error propagates as well and
startup fails.
"""

import logging
import os
from pathlib import Path

from pymongo.errors import ConnectionFailure, PyMongoError

from .config import Settings
from .exceptions import StorageConnectivityError, StorageError
from hackathon_registration_api.app.storage.base import StorageBackend
from hackathon_registration_api.app.storage.json_store import JSONFileStorage


logger = logging.getLogger(__name__)


def get_data_file_path(settings: Settings) -> str:
    """Compute the path to the JSON data file.

    If ``settings.data_file`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    data_file = settings.data_file
    if os.path.isabs(data_file):
        return data_file
    base_dir = Path(__file__).resolve().parent.parent.parent  # hackathon_registration_api/
    return str((base_dir / data_file).resolve())


def build_file_storage(settings: Settings) -> JSONFileStorage:
    return JSONFileStorage(
        get_data_file_path(settings),
        lock_retries=settings.lock_retries,
        lock_retry_delay=settings.lock_retry_delay,
        lock_stale_seconds=settings.lock_stale_seconds,
        display_timezone=settings.display_timezone,
        display_timezone_label=settings.display_timezone_label,
    )


def build_storage(settings: Settings) -> StorageBackend:
    """Instantiate the configured backend without touching the network."""
    if settings.mongodb_uri:
        from hackathon_registration_api.app.storage.mongo_store import MongoStorage

        return MongoStorage(
            settings.mongodb_uri,
            db_name=settings.mongodb_db,
            collection_prefix=settings.mongodb_collection_prefix,
            server_selection_timeout_ms=settings.mongodb_timeout_ms,
            display_timezone=settings.display_timezone,
            display_timezone_label=settings.display_timezone_label,
        )
    return build_file_storage(settings)


def can_fall_back(storage: StorageBackend, settings: Settings) -> bool:
    return not isinstance(storage, JSONFileStorage) and not settings.managed_environment


def _fall_back(settings: Settings, storage: StorageBackend, error: StorageConnectivityError) -> StorageBackend:
    logger.error("Storage backend %s unreachable during initialisation: %s", storage.name, error)
    if not can_fall_back(storage, settings):
        raise error
    fallback = build_file_storage(settings)
    fallback.init()
    try:
        storage.close()
    except PyMongoError:
        logger.debug("Ignoring error while closing failed backend", exc_info=True)
    logger.warning("Fell back to JSON file storage at %s after %s failure", fallback.data_file, storage.name)
    return fallback


def init_storage(settings: Settings, storage: StorageBackend | None = None) -> StorageBackend:
    """Initialise the configured backend.

    Only connectivity failures may switch to the JSON file.  Errors that
    a retry against the same server would not cure are re-raised.
    """
    storage = storage or build_storage(settings)
    try:
        storage.init()
    except StorageConnectivityError as e:
        return _fall_back(settings, storage, e)
    except ConnectionFailure as e:
        error = StorageConnectivityError(f"Storage initialisation failed: {e}", cause=e)
        return _fall_back(settings, storage, error)
    except StorageError as e:
        logger.error("Storage initialisation failed for %s backend: %s", storage.name, e)
        raise
    except PyMongoError as e:
        logger.error("Storage initialisation failed for %s backend: %s", storage.name, e)
        raise StorageError(f"Storage initialisation failed: {e}", cause=e) from e
    logger.info("Storage backend %s initialised", storage.name)
    return storage
