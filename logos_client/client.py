"""
Public client for the Logos voice backend.

``LogosClient`` wires the session, VAD engine, capture controller and
connection layer together from a single ``ClientOptions`` object and exposes
the operations and events a host application uses.

Example:
    client = LogosClient(ClientOptions(server_url="https://logos.example"))
    client.on(EventType.TEXT, lambda event: print(event.ai_text))
    await client.connect()
    await client.start_listening()
"""

import time
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from logos_client.config.logging_config import get_logger
from logos_client.config.options import ClientOptions
from logos_client.domain.capabilities import (
    Channel,
    EncoderFactory,
    KeyValueStore,
    MicrophoneProvider,
)
from logos_client.domain.capture.controller import CaptureController
from logos_client.domain.session.state import (
    DeviceRole,
    PersonaMode,
    Session,
    SessionStateMachine,
    SessionStatus,
    VadConfig,
)
from logos_client.domain.vad.engine import VadEngine
from logos_client.events.event_interface import EventBus, EventHandler, EventType, SettingsEvent
from logos_client.services.audio_service import PyAudioMicrophone, WavEncoder
from logos_client.services.channel import WebSocketChannel
from logos_client.services.connection import ConnectionLayer
from logos_client.services.storage import MemoryStore, resolve_device_id
from logos_client.utils.async_helpers import TaskManager
from logos_client.utils.error_handling import ConfigError

logger = get_logger(__name__)


class LogosClient:
    """
    Voice interaction client.

    Capabilities default to PyAudio capture, WAV encoding, an in-memory
    device-id store and a WebSocket channel; any of them can be injected.
    """

    def __init__(
        self,
        options: Union[ClientOptions, Mapping[str, Any]],
        microphone: Optional[MicrophoneProvider] = None,
        encoder_factory: Optional[EncoderFactory] = None,
        store: Optional[KeyValueStore] = None,
        channel: Optional[Channel] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            options: Client options, or a mapping of option fields
            microphone: Microphone capability
            encoder_factory: Creates an encoder for each capture
            store: Key-value store holding the generated device id
            channel: Realtime channel capability
            clock: Monotonic clock in seconds

        Raises:
            ConfigError: If the options are invalid
        """
        if not isinstance(options, ClientOptions):
            try:
                options = ClientOptions(**options)
            except ValidationError as e:
                raise ConfigError(f"Invalid client options: {e}", cause=e)

        self.options = options
        self.store = store or MemoryStore()

        self.session = Session(
            device_id=options.device_id or resolve_device_id(self.store),
            role=DeviceRole(options.role),
            mode=PersonaMode(options.mode),
            vad=VadConfig(
                sensitivity=options.vad.sensitivity,
                auto_calibrate=options.vad.auto_calibrate,
                timeout=options.vad.timeout,
            ),
        )

        self.event_bus = EventBus()
        self.task_manager = TaskManager("logos_client")
        self.state = SessionStateMachine(self.session, self.event_bus)
        self.engine = VadEngine(self.session)

        self.channel = channel or WebSocketChannel(
            options.server_url,
            api_key=options.api_key,
            auto_reconnect=options.auto_reconnect,
            reconnect_attempts=options.reconnect_attempts,
            reconnect_delay=options.reconnect_delay,
        )
        self.connection = ConnectionLayer(
            self.channel,
            self.state,
            self.event_bus,
            self.task_manager,
            on_channel_lost=self._on_channel_lost,
        )
        self.capture = CaptureController(
            self.state,
            self.engine,
            microphone or PyAudioMicrophone(),
            encoder_factory or WavEncoder,
            self.connection,
            self.event_bus,
            self.task_manager,
            clock=clock,
        )

        logger.debug(f"LogosClient initialized: {options!r}")

    # Connection

    async def connect(self) -> bool:
        """
        Connect to the backend.

        Returns:
            bool: True if the first connection attempt succeeded
        """
        if self.connection.connected:
            logger.warning("Already connected")
            return True

        return await self.connection.connect()

    async def disconnect(self) -> None:
        """Drop any in-progress capture and close the connection."""
        self.capture.shutdown()
        await self.connection.disconnect()
        self.state.channel_lost()
        await self.task_manager.cancel_all()

    def _on_channel_lost(self) -> None:
        self.capture.shutdown()

    # Capture

    async def start_listening(self) -> bool:
        """
        Start listening for an utterance.

        Returns:
            bool: True if listening started
        """
        return await self.capture.start_listening()

    def stop_listening(self) -> None:
        """Stop listening; a captured utterance is evaluated and possibly sent."""
        self.capture.stop_listening()

    # Requests

    async def send_text(self, text: str) -> bool:
        return await self.connection.send_text(text)

    def update_settings(self, settings: Union[SettingsEvent, Mapping[str, Any]]) -> None:
        """
        Apply a partial settings update locally.

        Args:
            settings: A ``SettingsEvent`` or a wire-style dict
                (``mode``, ``vadSensitivity``, ``vadAutoCalibrate``, ``vadTimeout``)
        """
        if not isinstance(settings, SettingsEvent):
            settings = SettingsEvent.from_wire(settings)
        self.session.apply_settings(settings)

    def set_speaking(self, active: bool) -> None:
        """
        Report whether the host is playing back speech.

        Args:
            active: True while speech is playing
        """
        if not self.connection.connected:
            logger.warning("Cannot change speaking state: not connected")
            return
        self.state.speaking(active)

    def calibrate(self, readings: Iterable[float]) -> float:
        """Learn the noise floor from ambient energy readings."""
        return self.engine.calibrate(readings)

    # Events

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self.event_bus.on(event_type, handler)

    def off(self, event_type: Union[EventType, str], handler: Optional[EventHandler] = None) -> None:
        self.event_bus.off(event_type, handler)

    # State

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def current_mode(self) -> PersonaMode:
        return self.session.mode

    @property
    def is_connected(self) -> bool:
        return self.connection.connected

    @property
    def device_id(self) -> str:
        return self.session.device_id

    @property
    def noise_floor(self) -> float:
        return self.engine.noise_floor

    @noise_floor.setter
    def noise_floor(self, value: Optional[float]) -> None:
        self.session.noise_floor = value
