"""
Logging setup for the registration service.

``setup_logging`` attaches a console handler (and, when ``LOG_FILE`` is
set, a size-rotated file handler) to the root logger.  Handlers it
installs are tagged so that a second call, from tests or a second
``create_app``, only adjusts the level instead of duplicating output.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Driver and server loggers that flood the output below INFO.
NOISY_LOGGERS = ("pymongo", "pymongo.serverSelection", "pymongo.connection", "uvicorn.access")

_HANDLER_TAG = "_registration_api_handler"


def _tag(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    noisy_loggers: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"DEBUG"``), case insensitive.
        Unknown names fall back to ``INFO``.
    logfile : Optional[str]
        Path of a log file, rotated at 5 MB with three backups.
    noisy_loggers : Iterable[str]
        Loggers held at ``INFO`` or above even when ``level`` is
        ``DEBUG``.
    """
    root = logging.getLogger()
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    root.setLevel(numeric_level)

    for name in noisy_loggers:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))

    if any(getattr(h, _HANDLER_TAG, False) for h in root.handlers):
        return

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = _tag(logging.StreamHandler())
    console.setFormatter(formatter)
    root.addHandler(console)

    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = _tag(RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"))
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
