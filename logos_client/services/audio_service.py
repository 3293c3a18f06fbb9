"""
Default audio capabilities for the Logos client.

This module implements the microphone, energy sampler and encoder
capabilities on top of PyAudio and numpy. PyAudio delivers audio on its own
callback thread; that thread only updates a lock-protected analysis window
and hands raw frames to the active encoder. Everything else runs on the
event loop.
"""

import asyncio
import threading
from typing import Callable, List, Optional

import numpy as np

from logos_client.config.logging_config import get_logger
from logos_client.domain.capabilities import (
    AudioEncoder,
    AudioStream,
    EnergySampler,
    MicrophoneProvider,
)
from logos_client.utils.audio_utilities import (
    DEFAULT_FFT_SIZE,
    DEFAULT_MAX_DB,
    DEFAULT_MIN_DB,
    DEFAULT_SMOOTHING,
    frequency_energy,
    get_audio_duration,
    pcm16_to_float,
    pcm16_to_wav,
)
from logos_client.utils.error_handling import AudioError, MicrophoneError

logger = get_logger(__name__)

WAV_MIME_TYPE = "audio/wav"

DEFAULT_SAMPLE_RATE = 16000
DEFAULT_CHANNELS = 1
DEFAULT_FRAMES_PER_BUFFER = 1024


class PcmStream(AudioStream):
    """
    Live PCM16 stream fed by a capture source.

    Keeps the most recent samples of the first channel for analysis and
    forwards every raw buffer to the registered sinks.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
        window_size: int = DEFAULT_FFT_SIZE,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = 2
        self.released = False

        self._lock = threading.Lock()
        self._window = np.zeros(window_size, dtype=np.int16)
        self._sinks: List[Callable[[bytes], None]] = []

    def feed(self, data: bytes) -> None:
        """
        Push a raw PCM16 buffer into the stream.

        Args:
            data: Interleaved little-endian PCM16 frames
        """
        samples = np.frombuffer(data, dtype=np.int16)[::self.channels]
        size = len(self._window)

        with self._lock:
            if len(samples) >= size:
                self._window = samples[-size:].copy()
            elif len(samples):
                self._window = np.concatenate((self._window[len(samples):], samples))
            sinks = list(self._sinks)

        for sink in sinks:
            sink(data)

    def latest_samples(self) -> np.ndarray:
        """Return a copy of the analysis window as float samples."""
        with self._lock:
            window = self._window.copy()
        return pcm16_to_float(window)

    def add_sink(self, sink: Callable[[bytes], None]) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: Callable[[bytes], None]) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def create_sampler(self) -> EnergySampler:
        return FftEnergySampler(self, fft_size=len(self._window))

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        with self._lock:
            self._sinks.clear()
        self._close()

    def _close(self) -> None:
        """Free the underlying device."""


class PyAudioStream(PcmStream):
    """Microphone stream backed by a PyAudio input stream."""

    def __init__(
        self,
        pyaudio,
        py_audio,
        sample_rate: int,
        channels: int,
        frames_per_buffer: int,
        input_device_index: Optional[int] = None,
    ):
        super().__init__(sample_rate=sample_rate, channels=channels)
        self._py_audio = py_audio
        self._continue = pyaudio.paContinue
        self._stream = py_audio.open(
            format=pyaudio.paInt16,
            channels=channels,
            rate=sample_rate,
            input=True,
            input_device_index=input_device_index,
            frames_per_buffer=frames_per_buffer,
            stream_callback=self._audio_callback
        )
        self._stream.start_stream()

    def _audio_callback(self, in_data, frame_count, time_info, status):
        """
        Callback for the PyAudio input stream, called on PyAudio's thread.

        Returns:
            tuple: (None, pyaudio.paContinue)
        """
        if status:
            logger.warning(f"Audio input status: {status}")

        if in_data:
            self.feed(in_data)

        return (None, self._continue)

    def _close(self) -> None:
        try:
            self._stream.stop_stream()
            self._stream.close()
        except OSError as e:
            logger.error(f"Error closing input stream: {str(e)}")
        finally:
            self._py_audio.terminate()
        logger.debug("Microphone released")


def import_pyaudio():
    """
    Import PyAudio on first use.

    Raises:
        MicrophoneError: If PyAudio is not installed
    """
    try:
        import pyaudio
    except ImportError as e:
        raise MicrophoneError(
            "PyAudio is not installed; install the 'audio' extra to use the microphone",
            cause=e
        )
    return pyaudio


class PyAudioMicrophone(MicrophoneProvider):
    """Opens the system microphone through PyAudio."""

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
        frames_per_buffer: int = DEFAULT_FRAMES_PER_BUFFER,
        input_device_index: Optional[int] = None,
    ):
        """
        Initialize the microphone provider.

        Args:
            sample_rate: Capture rate in Hz
            channels: Number of input channels
            frames_per_buffer: Frames per PyAudio callback
            input_device_index: Index of the input device (None for default)
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames_per_buffer = frames_per_buffer
        self.input_device_index = input_device_index

    async def open(self) -> AudioStream:
        """
        Open a live microphone stream.

        Device lookup and stream start block, so they run in a worker thread.

        Raises:
            MicrophoneError: If no input device can be opened
        """
        return await asyncio.to_thread(self._open_device)

    def _open_device(self) -> AudioStream:
        pyaudio = import_pyaudio()
        py_audio = pyaudio.PyAudio()

        try:
            if self.input_device_index is None:
                device = py_audio.get_default_input_device_info()
            else:
                device = py_audio.get_device_info_by_index(self.input_device_index)
            logger.info(f"Selected input device: {device['name']} (index: {device['index']})")

            stream = PyAudioStream(
                pyaudio,
                py_audio,
                sample_rate=self.sample_rate,
                channels=self.channels,
                frames_per_buffer=self.frames_per_buffer,
                input_device_index=device['index'],
            )
        except (IOError, OSError) as e:
            py_audio.terminate()
            raise MicrophoneError(f"Failed to open microphone: {str(e)}", cause=e)

        return stream


class FftEnergySampler(EnergySampler):
    """
    Energy reading over the most recent FFT window of a ``PcmStream``.

    Readings follow analyser-node conventions: Blackman window, 0.8 time
    smoothing, and -100 to -30 dB mapped onto 0-255.
    """

    def __init__(
        self,
        stream: PcmStream,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = DEFAULT_SMOOTHING,
        min_db: float = DEFAULT_MIN_DB,
        max_db: float = DEFAULT_MAX_DB,
    ):
        self.stream = stream
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self._previous: Optional[np.ndarray] = None

    def read_energy(self) -> float:
        samples = self.stream.latest_samples()[-self.fft_size:]
        energy, self._previous = frequency_energy(
            samples,
            previous=self._previous,
            smoothing=self.smoothing,
            min_db=self.min_db,
            max_db=self.max_db,
        )
        return energy


class WavEncoder(AudioEncoder):
    """
    Records a ``PcmStream`` into a single WAV fragment.

    Raw PCM is buffered while recording; ``stop`` wraps it in a WAV container,
    delivers it through ``on_data`` and then calls ``on_stop``.
    """

    def __init__(self):
        self._recording = False
        self._lock = threading.Lock()
        self._buffer = bytearray()
        self._stream: Optional[PcmStream] = None
        self._on_data: Optional[Callable[[bytes], None]] = None
        self._on_stop: Optional[Callable[[], None]] = None

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def mime_type(self) -> str:
        return WAV_MIME_TYPE

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type.split(";")[0].strip().lower() == WAV_MIME_TYPE

    def start(
        self,
        stream: AudioStream,
        mime_type: str,
        on_data: Callable[[bytes], None],
        on_stop: Callable[[], None],
    ) -> None:
        if self._recording:
            raise AudioError("Encoder is already recording")
        if not isinstance(stream, PcmStream):
            raise AudioError(f"WavEncoder cannot record {type(stream).__name__}")
        if mime_type and not self.is_type_supported(mime_type):
            raise AudioError(f"Unsupported mime type: {mime_type}")

        self._stream = stream
        self._on_data = on_data
        self._on_stop = on_stop
        with self._lock:
            self._buffer = bytearray()

        stream.add_sink(self._collect)
        self._recording = True
        logger.debug("WAV encoder started")

    def _collect(self, data: bytes) -> None:
        with self._lock:
            self._buffer.extend(data)

    def stop(self) -> None:
        if not self._recording:
            return
        self._recording = False

        stream = self._stream
        stream.remove_sink(self._collect)
        with self._lock:
            pcm = bytes(self._buffer)
            self._buffer = bytearray()

        duration = get_audio_duration(pcm, stream.sample_rate, stream.channels, stream.sample_width)
        logger.debug(f"WAV encoder stopped: {len(pcm)} bytes, {duration:.2f}s")

        if pcm:
            self._on_data(pcm16_to_wav(pcm, stream.sample_rate, stream.channels, stream.sample_width))
        self._on_stop()
