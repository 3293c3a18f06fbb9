"""
Logos Client Package.

This package provides a voice interaction client for the Logos backend:
microphone capture with energy-based voice activity detection, a realtime
connection, and a typed event stream for host applications.
"""

__version__ = "0.1.0"
__author__ = "Logos Team"
__description__ = "Voice interaction client for the Logos backend"

from logos_client.client import LogosClient
from logos_client.config.options import ClientOptions, VadOptions
from logos_client.domain.session.state import PersonaMode, SessionStatus
from logos_client.events.event_interface import AudioEvent, EventType, SettingsEvent, TextEvent

__all__ = [
    "LogosClient",
    "ClientOptions",
    "VadOptions",
    "EventType",
    "SessionStatus",
    "PersonaMode",
    "TextEvent",
    "AudioEvent",
    "SettingsEvent",
]
