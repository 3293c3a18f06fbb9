"""
Services module for the default capability adapters.

This package contains the concrete implementations of the capabilities the
client core consumes (microphone, encoder, storage, realtime channel) and the
connection layer that translates between the channel and the domain.
"""

from logos_client.services.audio_service import FftEnergySampler, PyAudioMicrophone, WavEncoder
from logos_client.services.channel import WebSocketChannel
from logos_client.services.connection import ConnectionLayer
from logos_client.services.storage import JsonFileStore, MemoryStore

__all__ = [
    "ConnectionLayer",
    "FftEnergySampler",
    "JsonFileStore",
    "MemoryStore",
    "PyAudioMicrophone",
    "WavEncoder",
    "WebSocketChannel",
]
