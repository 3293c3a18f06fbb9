"""
Domain logic module for the Logos client.

This package contains the core client logic organized by domain areas:
- capabilities: Abstract interfaces for hardware, storage and transport
- vad: Energy-based voice activity detection
- capture: Capture lifecycle and utterance detection
- session: Session configuration and the status state machine

The domain layer is independent of concrete devices and transports; those
are injected through the capability interfaces.
"""

from logos_client.domain.capture.controller import CaptureController, CaptureSession
from logos_client.domain.session.state import (
    DeviceRole, PersonaMode, Session, SessionStateMachine, SessionStatus, VadConfig
)
from logos_client.domain.vad.engine import VadDecision, VadEngine, VadThresholds

__all__ = [
    # Capture
    'CaptureController',
    'CaptureSession',

    # Session
    'DeviceRole',
    'PersonaMode',
    'Session',
    'SessionStateMachine',
    'SessionStatus',
    'VadConfig',

    # VAD
    'VadDecision',
    'VadEngine',
    'VadThresholds',
]
