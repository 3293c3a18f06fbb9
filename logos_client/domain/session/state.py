"""
Session state for the Logos client.

This module holds the client's live configuration (role, persona mode, VAD
settings, noise floor) and the single authoritative status value together
with the rules for moving between statuses.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from logos_client.config.logging_config import get_logger
from logos_client.config.options import VadOptions
from logos_client.events.event_interface import EventBus, EventType, SettingsEvent

logger = get_logger(__name__)


class SessionStatus(Enum):
    """Possible statuses of a client session."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    THINKING = "THINKING"
    SPEAKING = "SPEAKING"


class DeviceRole(Enum):
    """Role the device announces in the handshake."""

    DOLL = "doll"
    DEV = "dev"
    GUARDIAN = "guardian"


class PersonaMode(Enum):
    """Persona the backend should use."""

    CHILD = "child"
    SENIOR = "senior"


# Backend status strings the client reacts to; anything else is ignored
BACKEND_STATUSES = {
    "thinking": SessionStatus.THINKING,
    "idle": SessionStatus.IDLE,
}

# SettingsEvent attribute -> VadConfig field
VAD_SETTING_FIELDS = {
    "vad_sensitivity": "sensitivity",
    "vad_auto_calibrate": "auto_calibrate",
    "vad_timeout": "timeout",
}


@dataclass(frozen=True)
class VadConfig:
    """Voice activity detection configuration."""

    sensitivity: int = 5
    auto_calibrate: bool = True
    # Silence duration (ms) before concluding speech
    timeout: int = 700


@dataclass
class Session:
    """Client-owned configuration and status."""

    device_id: str
    role: DeviceRole = DeviceRole.DOLL
    mode: PersonaMode = PersonaMode.CHILD
    vad: VadConfig = field(default_factory=VadConfig)
    status: SessionStatus = SessionStatus.DISCONNECTED
    noise_floor: Optional[float] = None

    def apply_settings(self, settings: SettingsEvent) -> None:
        """
        Merge a partial settings update into the session.

        VAD values go through the same checks as ``VadOptions`` at
        construction: sensitivity is clamped to 1-10, strings are coerced where
        they parse, and a value that fails validation is ignored with a
        warning. Unknown persona modes are ignored too. Fields left as ``None``
        keep their current value.

        Args:
            settings: The partial update
        """
        if settings.mode is not None:
            try:
                self.mode = PersonaMode(settings.mode)
            except ValueError:
                logger.warning(f"Ignoring unknown persona mode: {settings.mode}")

        changes = {}
        for attr, name in VAD_SETTING_FIELDS.items():
            value = getattr(settings, attr)
            if value is None:
                continue
            try:
                checked = VadOptions(**{name: value})
            except ValidationError as e:
                logger.warning(f"Ignoring invalid VAD {name} {value!r}: {e.errors()[0]['msg']}")
                continue
            changes[name] = getattr(checked, name)

        if changes:
            self.vad = replace(self.vad, **changes)
            logger.debug(f"VAD configuration updated: {self.vad}")


class SessionStateMachine:
    """
    Owner of the session status.

    Every status change goes through ``set_status``, which emits a ``STATUS``
    event only when the value actually changes. The named transition methods
    document which trigger produces which status.
    """

    def __init__(self, session: Session, event_bus: EventBus):
        self.session = session
        self.event_bus = event_bus

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    def set_status(self, status: SessionStatus) -> bool:
        """
        Move to a new status.

        Args:
            status: The new status

        Returns:
            bool: True if the status changed and an event was emitted
        """
        if self.session.status == status:
            return False

        previous = self.session.status
        self.session.status = status
        logger.debug(f"Status {previous.value} -> {status.value}")
        self.event_bus.emit(EventType.STATUS, status)
        return True

    # Connection triggers

    def connect_requested(self) -> None:
        self.set_status(SessionStatus.CONNECTING)

    def channel_established(self) -> None:
        self.set_status(SessionStatus.IDLE)

    def channel_lost(self) -> None:
        """Channel dropped, connect() failed or authentication was rejected."""
        self.set_status(SessionStatus.DISCONNECTED)

    # Capture triggers

    def listening_started(self) -> None:
        self.set_status(SessionStatus.LISTENING)

    def utterance_sent(self) -> None:
        self.set_status(SessionStatus.THINKING)

    def no_speech(self) -> None:
        """Finalize found no valid utterance, or the microphone was denied."""
        self.set_status(SessionStatus.IDLE)

    # Backend and host triggers

    def backend_status(self, value: str) -> None:
        """
        Apply a status reported by the backend.

        Args:
            value: Backend status string ("thinking" or "idle")
        """
        status = BACKEND_STATUSES.get(value)
        if status is None:
            logger.debug(f"Ignoring unrecognized backend status: {value}")
            return
        self.set_status(status)

    def speaking(self, active: bool) -> None:
        """Host-driven playback signal; the only way in or out of SPEAKING."""
        self.set_status(SessionStatus.SPEAKING if active else SessionStatus.IDLE)
