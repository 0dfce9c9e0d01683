"""
Application package initializer.

The project is organised into logical pieces: ``core`` holds
configuration, logging, errors and application state; ``storage``
holds the two interchangeable persistence backends; ``services``
holds the business logic called by the HTTP handlers defined in
``api/v1/endpoints``.
"""

from .main import app  # noqa: F401
