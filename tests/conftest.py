"""
Shared fixtures for the Logos client tests.

Every capability the client consumes has an in-memory fake here so the core
can be exercised without audio hardware or a network.
"""

import inspect
from typing import Any, Callable, Dict, List, Optional

import pytest

from logos_client.domain.capabilities import (
    AudioEncoder,
    AudioStream,
    Channel,
    EnergySampler,
    MicrophoneProvider,
)
from logos_client.domain.session.state import Session, SessionStateMachine
from logos_client.events.event_interface import EventBus
from logos_client.utils.error_handling import MicrophoneError


class FakeSampler(EnergySampler):
    """Returns whatever energy the test sets."""

    def __init__(self, energy: float = 0.0):
        self.energy = energy
        self.reads = 0

    def read_energy(self) -> float:
        self.reads += 1
        return self.energy


class FakeStream(AudioStream):
    """Counts releases so tests can check resources are freed exactly once."""

    def __init__(self):
        self.sampler = FakeSampler()
        self.release_count = 0

    def create_sampler(self) -> EnergySampler:
        return self.sampler

    def release(self) -> None:
        self.release_count += 1


class FakeMicrophone(MicrophoneProvider):
    """Hands out fake streams, or raises when access is denied."""

    def __init__(self, denied: bool = False):
        self.denied = denied
        self.streams: List[FakeStream] = []

    async def open(self) -> AudioStream:
        if self.denied:
            raise MicrophoneError("Microphone access denied")
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    @property
    def last_stream(self) -> Optional[FakeStream]:
        return self.streams[-1] if self.streams else None


class FakeEncoder(AudioEncoder):
    """
    Records nothing; delivers ``payload`` when stopped.

    ``stop`` is synchronous, like an encoder that flushes immediately.
    """

    def __init__(self, supported=("audio/webm;codecs=opus", "audio/webm"), payload: bytes = b""):
        self.supported = set(supported)
        self.payload = payload
        self.started_with: Optional[str] = None
        self.stop_count = 0
        self._recording = False
        self._mime_type = ""
        self._on_data: Optional[Callable[[bytes], None]] = None
        self._on_stop: Optional[Callable[[], None]] = None

    def is_type_supported(self, mime_type: str) -> bool:
        return mime_type in self.supported

    def start(self, stream, mime_type, on_data, on_stop) -> None:
        self.started_with = mime_type
        self._mime_type = mime_type
        self._on_data = on_data
        self._on_stop = on_stop
        self._recording = True

    def stop(self) -> None:
        self.stop_count += 1
        self._recording = False
        if self.payload:
            self._on_data(self.payload)
        self._on_stop()

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def mime_type(self) -> str:
        return self._mime_type


class EncoderFactory:
    """Builds fake encoders that all deliver the same payload."""

    def __init__(self, payload: bytes = b"\x00" * 3000, supported=("audio/webm;codecs=opus", "audio/webm")):
        self.payload = payload
        self.supported = supported
        self.encoders: List[FakeEncoder] = []

    def __call__(self) -> FakeEncoder:
        encoder = FakeEncoder(supported=self.supported, payload=self.payload)
        self.encoders.append(encoder)
        return encoder

    @property
    def last(self) -> Optional[FakeEncoder]:
        return self.encoders[-1] if self.encoders else None


class FakeChannel(Channel):
    """In-memory channel; tests drive inbound traffic with ``deliver``."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.handlers: Dict[str, List[Callable]] = {}
        self.emitted: List[tuple] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._connected = False
        # Set by tests to simulate a retry cycle that is still running
        self.retrying = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def connecting(self) -> bool:
        return self.retrying

    def on(self, name: str, handler: Callable) -> None:
        self.handlers.setdefault(name, []).append(handler)

    async def connect(self) -> bool:
        self.connect_calls += 1
        if not self.accept:
            await self.deliver("connect_error", ConnectionRefusedError("refused"))
            return False
        self._connected = True
        await self.deliver("connect")
        return True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self._connected:
            await self.drop()

    async def drop(self) -> None:
        """Simulate the connection going away."""
        self._connected = False
        await self.deliver("disconnect")

    async def emit(self, name: str, payload: Dict[str, Any]) -> bool:
        if not self._connected:
            return False
        self.emitted.append((name, payload))
        return True

    async def deliver(self, name: str, *args: Any) -> None:
        for handler in list(self.handlers.get(name, [])):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    def sent(self, name: str) -> List[Dict[str, Any]]:
        return [payload for sent_name, payload in self.emitted if sent_name == name]


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def session():
    return Session(device_id="logos_test_device")


@pytest.fixture
def state(session, event_bus):
    return SessionStateMachine(session, event_bus)


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def encoder_factory():
    return EncoderFactory()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def clock():
    return FakeClock()
