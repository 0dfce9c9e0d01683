"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts with the JSON file backend and no further setup.  Set
``MONGODB_URI`` to switch to the MongoDB backend.
"""

import os
from dataclasses import dataclass


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Hackathon Registration API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")

    # Admin credentials.  When either is empty the admin login is
    # disabled and every admin route answers 401.
    admin_user: str = os.getenv("ADMIN_USER", "")
    admin_password: str = os.getenv("ADMIN_PASS", "")
    admin_session_minutes: int = int(os.getenv("ADMIN_SESSION_MINUTES", str(60 * 12)))

    # JSON file backend.  Relative paths are resolved against the project
    # root by the ``db`` module.
    data_file: str = os.getenv("DATA_FILE", "data.json")
    # Optional catalog document used by ``/admin/replace-with-data-file``.
    catalog_file: str = os.getenv("CATALOG_FILE", "")
    lock_retries: int = int(os.getenv("LOCK_RETRIES", "10"))
    lock_retry_delay_ms: int = int(os.getenv("LOCK_RETRY_DELAY_MS", "50"))
    lock_stale_seconds: float = float(os.getenv("LOCK_STALE_SECONDS", "30"))

    # MongoDB backend.  Empty URI selects the JSON file backend.
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    mongodb_db: str = os.getenv("MONGODB_DB", "hackathon")
    mongodb_collection_prefix: str = os.getenv("MONGODB_COLLECTION_PREFIX", "")
    mongodb_timeout_ms: int = int(os.getenv("MONGODB_TIMEOUT_MS", "10000"))

    # Registration timestamps are stored in UTC and additionally rendered
    # in this zone for admin listings and exports.
    display_timezone: str = os.getenv("DISPLAY_TIMEZONE", "Asia/Kolkata")
    display_timezone_label: str = os.getenv("DISPLAY_TIMEZONE_LABEL", "IST")

    # Managed (serverless, read-only filesystem) deployments must never
    # fall back to the file backend because it cannot persist there.
    managed_environment: bool = (
        _flag("MANAGED_ENV") or _flag("READ_ONLY_FS") or os.getenv("VERCEL", "") == "1" or bool(os.getenv("VERCEL_ENV"))
    )
    auto_reset: bool = _flag("AUTO_RESET")
    sse_heartbeat_seconds: float = float(os.getenv("SSE_HEARTBEAT_SECONDS", "30"))

    @property
    def lock_retry_delay(self) -> float:
        return self.lock_retry_delay_ms / 1000.0


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
