"""
Event interface for the Logos client.

This module defines the typed event surface exposed to host applications
(text, audio-to-speak, settings, status, errors and connection edges) and the
ordered publish/subscribe registry that delivers it.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from logos_client.config.logging_config import get_logger

logger = get_logger(__name__)


class EventType(Enum):
    """Kinds of events a host application can subscribe to."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STATUS = "status"
    TEXT = "text"
    AUDIO = "audio"
    SETTINGS = "settings"
    ERROR = "error"

    @classmethod
    def from_string(cls, event_type_str: str) -> 'EventType':
        """
        Convert a string to an EventType enum value.

        Raises:
            ValueError: If the string names no event kind
        """
        try:
            return cls(event_type_str)
        except ValueError:
            raise ValueError(f"Unknown event type: {event_type_str}") from None


@dataclass(frozen=True)
class TextEvent:
    """Streaming AI response text."""

    ai_text: str
    is_final: bool
    # User speech (only present on the first chunk of a reply)
    user_text: Optional[str] = None
    is_filler: Optional[bool] = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> 'TextEvent':
        """Create a text event from a ``live_text`` payload."""
        return cls(
            ai_text=data.get("text", ""),
            is_final=bool(data.get("isFinal", False)),
            user_text=data.get("userText"),
            is_filler=data.get("isFiller"),
        )


@dataclass(frozen=True)
class AudioEvent:
    """Text the host should speak aloud."""

    text: str
    # Higher number means higher priority
    priority: int
    user_text: Optional[str] = None
    # Guardian intercom message
    is_intercom: Optional[bool] = None
    is_filler: Optional[bool] = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> 'AudioEvent':
        """Create an audio event from an ``audio_output`` payload."""
        return cls(
            text=data.get("text", ""),
            priority=data.get("priority", 0),
            user_text=data.get("userText"),
            is_intercom=data.get("isIntercom"),
            is_filler=data.get("isFiller"),
        )


@dataclass(frozen=True)
class SettingsEvent:
    """Partial settings update; ``None`` fields are left unchanged."""

    mode: Optional[str] = None
    vad_sensitivity: Optional[int] = None
    vad_auto_calibrate: Optional[bool] = None
    vad_timeout: Optional[int] = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> 'SettingsEvent':
        """Create a settings event from a ``set_settings`` payload."""
        return cls(
            mode=data.get("mode"),
            vad_sensitivity=data.get("vadSensitivity"),
            vad_auto_calibrate=data.get("vadAutoCalibrate"),
            vad_timeout=data.get("vadTimeout"),
        )

    def to_wire(self) -> Dict[str, Any]:
        """Convert to the camelCase wire shape, omitting unset fields."""
        wire = {
            "mode": self.mode,
            "vadSensitivity": self.vad_sensitivity,
            "vadAutoCalibrate": self.vad_auto_calibrate,
            "vadTimeout": self.vad_timeout,
        }
        return {k: v for k, v in wire.items() if v is not None}


# Handlers receive the event payload; CONNECTED and DISCONNECTED carry none.
EventHandler = Callable[..., Any]


class EventBus:
    """
    Ordered publish/subscribe registry keyed by event kind.

    Handlers are called in registration order. A handler that raises is
    logged and does not prevent later handlers from running. Coroutine
    handlers are scheduled on the running loop.
    """

    def __init__(self):
        """Initialize the event bus."""
        self._handlers: Dict[EventType, List[EventHandler]] = {}

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        """
        Register a handler for a specific event type.

        Registering the same handler twice for one kind has no effect.

        Args:
            event_type: The type of event to handle
            handler: The handler function to call when the event occurs
        """
        if isinstance(event_type, str):
            event_type = EventType.from_string(event_type)

        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Registered handler for event type: {event_type.name}")

    def off(self, event_type: Union[EventType, str], handler: Optional[EventHandler] = None) -> None:
        """
        Remove a handler for a specific event type.

        Args:
            event_type: The type of event
            handler: The handler to remove. If None, removes all handlers for the event type.
        """
        if isinstance(event_type, str):
            event_type = EventType.from_string(event_type)

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        if handler is None:
            handlers.clear()
            logger.debug(f"Removed all handlers for event type: {event_type.name}")
            return

        for index, registered in enumerate(handlers):
            if registered is handler or registered == handler:
                del handlers[index]
                logger.debug(f"Removed handler for event type: {event_type.name}")
                break

    def handlers(self, event_type: EventType) -> List[EventHandler]:
        """Return a snapshot of the handlers registered for a kind."""
        return list(self._handlers.get(event_type, []))

    def emit(self, event_type: EventType, *args: Any) -> None:
        """
        Emit an event to all registered handlers.

        Args:
            event_type: The event kind
            *args: Payload passed to each handler
        """
        # Snapshot so handlers may unsubscribe while being called
        for handler in self.handlers(event_type):
            self._call_handler(handler, event_type, args)

    def _call_handler(self, handler: EventHandler, event_type: EventType, args: tuple) -> None:
        """
        Call an event handler, handling both sync and async handlers.

        Args:
            handler: The handler to call
            event_type: The kind being dispatched (for logging)
            args: The payload
        """
        try:
            if asyncio.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    logger.warning(f"Cannot run async handler {handler.__name__}: no event loop")
                    return
                loop.create_task(self._call_async_handler(handler, event_type, args))
            else:
                handler(*args)
        except Exception as e:
            logger.error(f"Error in event handler for {event_type.name}: {e}", exc_info=True)

    async def _call_async_handler(self, handler: EventHandler, event_type: EventType, args: tuple) -> None:
        """
        Call an async event handler.

        Args:
            handler: The async handler to call
            event_type: The kind being dispatched (for logging)
            args: The payload
        """
        try:
            await handler(*args)
        except Exception as e:
            logger.error(f"Error in async event handler for {event_type.name}: {e}", exc_info=True)
