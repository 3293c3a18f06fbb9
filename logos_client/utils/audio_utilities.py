"""
Audio utility functions for the Logos client.

This module provides helper functions for working with PCM16 audio: sample
conversion, the frequency-domain energy measure used for voice activity
detection, and WAV wrapping.
"""

import io
import wave
from typing import Optional, Tuple, Union

import numpy as np

from logos_client.config.logging_config import get_logger
from logos_client.utils.error_handling import AudioError

logger = get_logger(__name__)

DEFAULT_FFT_SIZE = 256
DEFAULT_SMOOTHING = 0.8
DEFAULT_MIN_DB = -100.0
DEFAULT_MAX_DB = -30.0


def pcm16_to_float(audio_data: Union[bytes, np.ndarray]) -> np.ndarray:
    """
    Convert PCM16 audio to float samples in [-1.0, 1.0).

    Args:
        audio_data: Little-endian PCM16 bytes or an int16 array

    Returns:
        np.ndarray: float32 samples
    """
    if isinstance(audio_data, (bytes, bytearray, memoryview)):
        samples = np.frombuffer(audio_data, dtype=np.int16)
    else:
        samples = np.asarray(audio_data, dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


def frequency_energy(
    samples: np.ndarray,
    previous: Optional[np.ndarray] = None,
    smoothing: float = DEFAULT_SMOOTHING,
    min_db: float = DEFAULT_MIN_DB,
    max_db: float = DEFAULT_MAX_DB,
) -> Tuple[float, np.ndarray]:
    """
    Compute the average byte-scaled frequency magnitude of a sample window.

    The window is Blackman-weighted and transformed with a real FFT. Bin
    magnitudes are smoothed over time against ``previous``, converted to dB
    and mapped linearly from ``[min_db, max_db]`` onto 0-255.

    Args:
        samples: Float samples; the FFT size is the window length
        previous: Smoothed magnitudes from the last call, or None
        smoothing: Time-smoothing constant between 0 and 1
        min_db: Magnitude mapped to 0
        max_db: Magnitude mapped to 255

    Returns:
        Tuple[float, np.ndarray]: The energy (0-255) and the smoothed
            magnitudes to pass back in on the next call
    """
    fft_size = len(samples)
    if fft_size == 0:
        raise AudioError("Cannot compute energy of an empty window")

    windowed = np.asarray(samples, dtype=np.float64) * np.blackman(fft_size)
    magnitudes = np.abs(np.fft.rfft(windowed))[: fft_size // 2] / fft_size

    if previous is not None and previous.shape == magnitudes.shape:
        magnitudes = smoothing * previous + (1.0 - smoothing) * magnitudes

    with np.errstate(divide="ignore"):
        decibels = 20.0 * np.log10(magnitudes)

    scaled = (decibels - min_db) * (255.0 / (max_db - min_db))
    byte_values = np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    return float(byte_values.mean()), magnitudes


def pcm16_to_wav(
    audio_data: bytes,
    sample_rate: int,
    channels: int = 1,
    sample_width: int = 2
) -> bytes:
    """
    Wrap raw PCM audio in a WAV container.

    Args:
        audio_data: Raw PCM bytes
        sample_rate: Sample rate in Hz
        channels: Number of audio channels
        sample_width: Sample width in bytes

    Returns:
        bytes: The complete WAV file

    Raises:
        AudioError: If the WAV container cannot be written
    """
    buffer = io.BytesIO()
    try:
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(sample_width)
            wf.setframerate(sample_rate)
            wf.writeframes(audio_data)
    except wave.Error as e:
        raise AudioError(f"Failed to write WAV data: {str(e)}", cause=e)

    return buffer.getvalue()


def get_audio_duration(
    audio_data: bytes,
    sample_rate: int,
    channels: int = 1,
    sample_width: int = 2
) -> float:
    """
    Calculate the duration of raw PCM audio in seconds.

    Args:
        audio_data: Raw PCM bytes
        sample_rate: Sample rate in Hz
        channels: Number of audio channels
        sample_width: Sample width in bytes

    Returns:
        float: Duration in seconds
    """
    num_frames = len(audio_data) // (channels * sample_width)
    return num_frames / sample_rate
