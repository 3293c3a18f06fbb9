"""
Capability interfaces consumed by the client core.

The core never touches hardware, storage or sockets directly. It talks to
these abstract collaborators, which are injected into ``LogosClient``.
Default implementations live in ``logos_client.services``.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional


class EnergySampler(ABC):
    """Periodic energy reading over a live audio stream."""

    @abstractmethod
    def read_energy(self) -> float:
        """
        Return the current energy reading.

        Returns:
            float: Average frequency-domain magnitude in the range 0-255
        """


class AudioStream(ABC):
    """A live microphone stream."""

    @abstractmethod
    def create_sampler(self) -> EnergySampler:
        """Build the analysis graph used for voice activity detection."""

    @abstractmethod
    def release(self) -> None:
        """Stop the stream and free the device. Must be idempotent."""


class MicrophoneProvider(ABC):
    """Grants access to the microphone."""

    @abstractmethod
    async def open(self) -> AudioStream:
        """
        Acquire a live microphone stream.

        Raises:
            MicrophoneError: If permission is denied or no device is available
        """


class AudioEncoder(ABC):
    """Records a stream into encoded audio fragments."""

    @abstractmethod
    def is_type_supported(self, mime_type: str) -> bool:
        """Whether this encoder can produce the given mime type."""

    @abstractmethod
    def start(
        self,
        stream: AudioStream,
        mime_type: str,
        on_data: Callable[[bytes], None],
        on_stop: Callable[[], None],
    ) -> None:
        """
        Begin encoding the stream.

        Args:
            stream: Stream to encode
            mime_type: Requested output format (empty for the encoder default)
            on_data: Receives each encoded fragment
            on_stop: Called once after the last fragment when encoding stops
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop encoding, flush remaining fragments, then call ``on_stop``."""

    @property
    @abstractmethod
    def recording(self) -> bool:
        """Whether the encoder is currently recording."""

    @property
    @abstractmethod
    def mime_type(self) -> str:
        """Mime type of the produced fragments."""


class KeyValueStore(ABC):
    """Small persistent key-value facility."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Persist a value."""


ChannelHandler = Callable[..., Any]


class Channel(ABC):
    """
    Realtime bidirectional channel carrying named messages.

    Besides backend message names, implementations emit three lifecycle
    names to registered handlers: ``connect`` (no arguments), ``disconnect``
    (no arguments) and ``connect_error`` (the exception).
    """

    @abstractmethod
    async def connect(self) -> bool:
        """
        Open the channel.

        Returns:
            bool: True if the first connection attempt succeeded
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the channel and stop any reconnection."""

    @abstractmethod
    async def emit(self, name: str, payload: Dict[str, Any]) -> bool:
        """
        Send a named message.

        Returns:
            bool: True if the message was written to the channel
        """

    @abstractmethod
    def on(self, name: str, handler: ChannelHandler) -> None:
        """Register a handler for a named inbound or lifecycle message."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the channel is currently open."""

    @property
    def connecting(self) -> bool:
        """Whether a connection attempt or retry cycle is still running."""
        return False


EncoderFactory = Callable[[], AudioEncoder]
