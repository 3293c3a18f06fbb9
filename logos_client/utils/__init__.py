"""
Utility modules for the Logos client.

This package contains various utility modules for common functionality,
including error handling, async operations and audio processing.
"""

from logos_client.utils.error_handling import (
    ErrorSeverity,
    AppError,
    AudioError,
    AuthError,
    ChannelError,
    ConfigError,
    MicrophoneError,
    ServerError,
    handle_exception
)

from logos_client.utils.async_helpers import (
    TaskManager,
    Timer,
    PeriodicTask,
    run_with_timeout,
    wait_for_event
)

from logos_client.utils.audio_utilities import (
    frequency_energy,
    get_audio_duration,
    pcm16_to_float,
    pcm16_to_wav
)

__all__ = [
    # Error handling
    "ErrorSeverity",
    "AppError",
    "AudioError",
    "AuthError",
    "ChannelError",
    "ConfigError",
    "MicrophoneError",
    "ServerError",
    "handle_exception",

    # Async utilities
    "TaskManager",
    "Timer",
    "PeriodicTask",
    "run_with_timeout",
    "wait_for_event",

    # Audio utilities
    "frequency_energy",
    "get_audio_duration",
    "pcm16_to_float",
    "pcm16_to_wav"
]
