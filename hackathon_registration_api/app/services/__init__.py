"""
Service layer.

Each service encapsulates business logic for one concern and receives
the ``AppState`` it works on explicitly, so request handlers stay thin
and the storage backend can be swapped without touching them.
"""
