"""
Logging setup for the Logos client.

Handlers are attached to the ``logos_client`` package logger only, so an
embedding host keeps control of its own root logger. File output, when
enabled, goes to one rotating log per session under ``logs/sessions``.
"""

import logging
import logging.handlers
import sys
import uuid
from datetime import datetime
from typing import List, Optional

from logos_client.config import settings

PACKAGE_LOGGER = "logos_client"

# Rotation limits for session log files
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class LoggingManager:
    """Configures the package logger once per process, or again on request."""

    _configured = False
    _session_id: Optional[str] = None

    @classmethod
    def get_session_id(cls) -> str:
        """Identifier of the current run, e.g. ``20240101_120000_1a2b3c4d``."""
        if cls._session_id is None:
            cls._session_id = f"{datetime.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"
        return cls._session_id

    @classmethod
    def set_session_id(cls, session_id: str) -> None:
        cls._session_id = session_id

    @classmethod
    def setup_logging(cls, level: Optional[str] = None, session_id: Optional[str] = None) -> None:
        """
        (Re)install the package log handlers.

        Args:
            level: Level name overriding ``settings.logging.level``
            session_id: Session identifier used to name the log file
        """
        if session_id:
            cls.set_session_id(session_id)

        level_name = (level or settings.logging.level).upper()
        numeric_level = getattr(logging, level_name, logging.INFO)

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(numeric_level)
        for old in list(package_logger.handlers):
            package_logger.removeHandler(old)
            old.close()

        for handler in cls._build_handlers():
            handler.setLevel(numeric_level)
            package_logger.addHandler(handler)

        cls._configured = True
        package_logger.debug(f"Logging configured: level={level_name}, session_id={cls.get_session_id()}")

    @classmethod
    def _build_handlers(cls) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if settings.logging.console_enabled:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(logging.Formatter(settings.logging.format))
            handlers.append(console)

        if settings.logging.file_enabled:
            log_path = settings.get_session_log_path(cls.get_session_id())
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
            )
            file_handler.setFormatter(logging.Formatter(settings.logging.detailed_format))
            handlers.append(file_handler)

        return handlers

    @classmethod
    def get_logger(cls, name: str, level: Optional[str] = None) -> logging.Logger:
        """Return ``logging.getLogger(name)``, configuring the package first if needed."""
        if not cls._configured:
            cls.setup_logging()

        logger = logging.getLogger(name)
        if level:
            logger.setLevel(getattr(logging, level.upper(), logging.NOTSET))
        return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the package configuration.

    Args:
        name: Logger name, usually ``__name__``
        level: Optional level for this logger alone
    """
    return LoggingManager.get_logger(name, level)
