"""
Persistence backends.

``StorageBackend`` in ``base`` defines the contract; ``JSONFileStorage``
and ``MongoStorage`` implement it.  The backend is chosen at startup
by ``core.db.build_storage``.
"""

from .base import StorageBackend  # noqa: F401
from .json_store import JSONFileStorage  # noqa: F401
