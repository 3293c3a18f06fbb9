"""
Connection and translation layer.

This module sits between the realtime channel and the rest of the client.
It performs the handshake, maps inbound wire messages to session transitions
and typed events, and turns outbound requests into wire messages.
"""

import base64
from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional

from logos_client.config.logging_config import get_logger
from logos_client.domain.capabilities import Channel
from logos_client.domain.session.state import PersonaMode, SessionStateMachine
from logos_client.events.event_interface import (
    AudioEvent,
    EventBus,
    EventType,
    SettingsEvent,
    TextEvent,
)
from logos_client.utils.async_helpers import TaskManager
from logos_client.utils.error_handling import (
    AppError,
    AuthError,
    ChannelError,
    ServerError,
    handle_exception,
)

logger = get_logger(__name__)

AI_ROLE = "ai"


class ConnectionLayer:
    """
    Translator between wire messages and the client's domain.

    Inbound messages are looked up in a dispatch table; names without an
    entry never reach this layer. Outbound audio is sent fire-and-forget.
    """

    def __init__(
        self,
        channel: Channel,
        state: SessionStateMachine,
        event_bus: EventBus,
        task_manager: TaskManager,
        on_channel_lost: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the connection layer.

        Args:
            channel: Realtime channel capability
            state: Session state machine
            event_bus: Bus delivering events to the host
            task_manager: Tracks outbound transmissions
            on_channel_lost: Called before the session is marked disconnected
        """
        self.channel = channel
        self.state = state
        self.event_bus = event_bus
        self.task_manager = task_manager
        self.on_channel_lost = on_channel_lost

        self.message_handlers: Dict[str, Callable[[Mapping[str, Any]], None]] = {
            "status": self.handle_status,
            "set_settings": self.handle_set_settings,
            "live_text": self.handle_live_text,
            "audio_output": self.handle_audio_output,
            "error": self.handle_server_error,
            "auth_error": self.handle_auth_error,
        }

        self.channel.on("connect", self.handle_connect)
        self.channel.on("disconnect", self.handle_disconnect)
        self.channel.on("connect_error", self.handle_connect_error)
        for name in self.message_handlers:
            self.channel.on(name, partial(self.handle_message, name))

    @property
    def connected(self) -> bool:
        return self.channel.connected

    @property
    def session(self):
        return self.state.session

    async def connect(self) -> bool:
        """
        Open the channel.

        Returns:
            bool: True if the first connection attempt succeeded
        """
        if self.channel.connecting:
            logger.warning("Cannot connect: a connection attempt is already running")
            return False

        self.state.connect_requested()
        return await self.channel.connect()

    async def disconnect(self) -> None:
        await self.channel.disconnect()

    # Outbound

    async def send_text(self, text: str) -> bool:
        """
        Send a typed message to the backend.

        Args:
            text: Message text

        Returns:
            bool: True if the message was written to the channel
        """
        if not self.connected:
            logger.warning("Cannot send text: not connected")
            return False

        return await self.channel.emit("text_input", {
            "text": text,
            "mode": self.session.mode.value,
        })

    def send_audio(self, audio: bytes, mime_type: str, mode: PersonaMode) -> None:
        """
        Transmit a finalized utterance without waiting for the result.

        Args:
            audio: Encoded audio
            mime_type: Mime type of the audio
            mode: Persona mode the utterance belongs to
        """
        payload = {
            "audio": base64.b64encode(audio).decode("ascii"),
            "mimeType": mime_type,
            "mode": mode.value,
        }
        self.task_manager.create_task(self._transmit("audio_input", payload), "audio_input")

    async def _transmit(self, name: str, payload: Dict[str, Any]) -> None:
        try:
            sent = await self.channel.emit(name, payload)
        except Exception as e:
            logger.error(f"Error sending {name}: {e}")
            return

        if not sent:
            logger.error(f"Failed to send {name}")

    # Channel lifecycle

    async def handle_connect(self) -> None:
        """Identify the device, then report the session as ready."""
        logger.info(f"Connected as {self.session.role.value} ({self.session.device_id})")
        await self.channel.emit("handshake", {
            "role": self.session.role.value,
            "deviceId": self.session.device_id,
        })
        self.state.channel_established()
        self.event_bus.emit(EventType.CONNECTED)

    def handle_disconnect(self) -> None:
        logger.info("Disconnected")
        self._channel_lost()
        self.event_bus.emit(EventType.DISCONNECTED)

    def handle_connect_error(self, error: Exception) -> None:
        """
        Report a failed connection attempt.

        Args:
            error: Error from the channel
        """
        if not isinstance(error, AppError):
            error = handle_exception(error, error_class=ChannelError, log_exception=False)
        logger.error(f"Connection error: {error}")
        self._channel_lost()
        self.event_bus.emit(EventType.ERROR, error)

    def _channel_lost(self) -> None:
        if self.on_channel_lost is not None:
            self.on_channel_lost()
        self.state.channel_lost()

    # Inbound

    def handle_message(self, name: str, payload: Any) -> None:
        """
        Dispatch an inbound message to its handler.

        Args:
            name: Message name
            payload: Decoded message payload
        """
        if not isinstance(payload, Mapping):
            logger.warning(f"Dropping malformed {name} message")
            return

        handler = self.message_handlers.get(name)
        if handler is None:
            logger.debug(f"No handler for message: {name}")
            return

        try:
            handler(payload)
        except Exception as e:
            logger.error(f"Error handling message {name}: {e}", exc_info=True)

    def handle_status(self, data: Mapping[str, Any]) -> None:
        self.state.backend_status(data.get("status"))

    def handle_set_settings(self, data: Mapping[str, Any]) -> None:
        settings = SettingsEvent.from_wire(data)
        self.session.apply_settings(settings)
        logger.info(f"Settings updated by server: {settings.to_wire()}")
        self.event_bus.emit(EventType.SETTINGS, settings)

    def handle_live_text(self, data: Mapping[str, Any]) -> None:
        # User transcripts arrive on the AI reply; other roles are echoes
        if data.get("role") != AI_ROLE:
            return
        self.event_bus.emit(EventType.TEXT, TextEvent.from_wire(data))

    def handle_audio_output(self, data: Mapping[str, Any]) -> None:
        self.event_bus.emit(EventType.AUDIO, AudioEvent.from_wire(data))

    def handle_server_error(self, data: Mapping[str, Any]) -> None:
        message = data.get("message") or "Unknown server error"
        logger.error(f"Server error: {message}")
        self.event_bus.emit(EventType.ERROR, ServerError(message, details=dict(data)))

    def handle_auth_error(self, data: Mapping[str, Any]) -> None:
        code = data.get("code")
        message = data.get("message")
        logger.error(f"Auth error: {code} {message}")
        self._channel_lost()
        self.event_bus.emit(
            EventType.ERROR,
            AuthError(f"Auth failed: {message} ({code})", details={"server_code": code})
        )
