"""
Error types for the Logos client.

Every failure a host application can observe is an ``AppError`` subclass,
delivered through the ``error`` event or raised from a public call. Errors
carry a code and optional details; details whose keys look like credentials
are never logged or serialized.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Type

from logos_client.config.logging_config import get_logger

logger = get_logger(__name__)

SENSITIVE_MARKERS = (
    "password", "secret", "key", "token", "auth", "cred",
    "private", "security", "cert", "signature",
)


class ErrorSeverity(Enum):
    """How loudly an error is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return getattr(logging, self.name)


class AppError(Exception):
    """Base class for every error the client reports."""

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Args:
            message: Text suitable for showing to a user
            severity: Level used when the error is logged
            error_code: Stable code; subclasses supply a default
            details: Extra context, redacted before output
            cause: The lower-level exception being wrapped
        """
        self.message = message
        self.severity = severity
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.cause = cause

        text = message
        if cause is not None and str(cause) not in message:
            text = f"{message}: {cause}"
        super().__init__(text)

    @property
    def safe_details(self) -> Dict[str, Any]:
        return {k: v for k, v in self.details.items() if not _is_sensitive_key(k)}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form with credentials stripped from the details."""
        result: Dict[str, Any] = {"message": self.message, "severity": self.severity.value}
        if self.error_code:
            result["code"] = self.error_code
        if self.safe_details:
            result["details"] = self.safe_details
        return result

    def log(self, include_traceback: bool = True) -> None:
        """
        Write the error to the package log at its severity.

        The wrapped cause's traceback is attached for ERROR and CRITICAL.
        """
        level = self.severity.log_level
        code = f" [Code: {self.error_code}]" if self.error_code else ""
        details = f" {self.safe_details}" if self.safe_details else ""

        exc_info = None
        if include_traceback and level >= logging.ERROR and self.cause is not None:
            exc_info = self.cause

        logger.log(level, f"{type(self).__name__}: {self.message}{code}{details}", exc_info=exc_info)


class ConfigError(AppError):
    """Invalid client options or settings."""
    default_code = "CONFIG_ERROR"


class AudioError(AppError):
    """Audio capture or encoding failed."""
    default_code = "AUDIO_ERROR"


class MicrophoneError(AudioError):
    """Microphone access was denied or no input device is available."""
    default_code = "MICROPHONE_ERROR"


class ChannelError(AppError):
    """The realtime channel could not be established or was lost."""
    default_code = "CONNECTION_ERROR"


class AuthError(ChannelError):
    """The backend rejected the client's credentials."""
    default_code = "AUTH_ERROR"


class ServerError(AppError):
    """Error reported by the backend over the channel."""
    default_code = "SERVER_ERROR"


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    error_class: Type[AppError] = AppError,
    log_exception: bool = True
) -> AppError:
    """
    Wrap an arbitrary exception as an ``error_class`` instance.

    An ``AppError`` passes through unchanged apart from picking up any
    context keys it does not already have.

    Args:
        exception: The exception that was caught
        context: Extra details to attach
        error_class: Type used when wrapping a foreign exception
        log_exception: Log the result before returning it

    Returns:
        AppError: The wrapped or original error
    """
    if isinstance(exception, AppError):
        error = exception
        for key, value in (context or {}).items():
            error.details.setdefault(key, value)
    else:
        error = error_class(
            message=str(exception) or f"An {type(exception).__name__} occurred",
            cause=exception,
            details={**(context or {}), "exception_type": type(exception).__name__},
        )

    if log_exception:
        error.log()
    return error


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)
