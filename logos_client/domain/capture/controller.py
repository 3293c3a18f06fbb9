"""
Capture controller for the Logos client.

This module owns the capture lifecycle: acquire the microphone, record,
evaluate voice activity on a fixed cadence, finalize the recording and
release the device. A finalized recording is either handed to the
connection layer as an utterance or discarded, in which case listening
restarts after a short debounce.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from logos_client.config.logging_config import get_logger
from logos_client.domain.capabilities import (
    AudioEncoder,
    AudioStream,
    EncoderFactory,
    EnergySampler,
    MicrophoneProvider,
)
from logos_client.domain.session.state import SessionStateMachine, SessionStatus
from logos_client.domain.vad.engine import VadDecision, VadEngine
from logos_client.events.event_interface import EventBus, EventType
from logos_client.utils.async_helpers import PeriodicTask, TaskManager, Timer
from logos_client.utils.error_handling import AudioError, MicrophoneError, handle_exception

logger = get_logger(__name__)

# Preferred encodings, best first
PREFERRED_MIME_TYPES = (
    "audio/webm;codecs=opus",
    "audio/webm",
    "audio/mp4",
    "audio/ogg",
    "audio/wav",
)
FALLBACK_MIME_TYPE = "audio/webm"

# Recordings this small carry no usable speech
MIN_AUDIO_BYTES = 2000

SAMPLE_INTERVAL_MS = 100
RESTART_DELAY_MS = 500


def select_mime_type(encoder: AudioEncoder) -> str:
    """
    Pick the first preferred mime type the encoder supports.

    Returns:
        str: The mime type, or an empty string to let the encoder choose
    """
    return next((t for t in PREFERRED_MIME_TYPES if encoder.is_type_supported(t)), "")


@dataclass
class CaptureSession:
    """State of one listening cycle, from start of listening to finalize."""

    stream: AudioStream
    sampler: EnergySampler
    encoder: AudioEncoder
    mime_type: str
    fragments: List[bytes] = field(default_factory=list)
    # Utterance start, in ms on the controller clock
    start_time: float = 0.0
    voice_detected: bool = False
    silence_timer: Optional[Timer] = None
    sampling: Optional[PeriodicTask] = None
    stopping: bool = False
    released: bool = False
    finalized: bool = False
    # Set when the capture is torn down without transmitting (disconnect)
    discard: bool = False

    def add_fragment(self, data: bytes) -> None:
        if data:
            self.fragments.append(data)

    def assemble(self) -> bytes:
        return b"".join(self.fragments)


class CaptureController:
    """
    Drives microphone capture and utterance detection.

    The controller is the only writer of the active ``CaptureSession`` and
    of its timer handles. The transport it hands utterances to must expose a
    ``connected`` property and a fire-and-forget
    ``send_audio(audio, mime_type, mode)`` method.
    """

    def __init__(
        self,
        state: SessionStateMachine,
        engine: VadEngine,
        microphone: MicrophoneProvider,
        encoder_factory: EncoderFactory,
        transport,
        event_bus: EventBus,
        task_manager: TaskManager,
        clock: Callable[[], float] = time.monotonic,
        sample_interval_ms: float = SAMPLE_INTERVAL_MS,
        restart_delay_ms: float = RESTART_DELAY_MS,
    ):
        """
        Initialize the capture controller.

        Args:
            state: Session state machine receiving capture transitions
            engine: VAD engine evaluating energy readings
            microphone: Microphone capability
            encoder_factory: Creates a fresh encoder for each capture
            transport: Connection layer that transmits utterances
            event_bus: Bus used to report capture errors
            task_manager: Tracks the controller's timers
            clock: Monotonic clock in seconds
            sample_interval_ms: VAD evaluation cadence
            restart_delay_ms: Debounce before listening resumes after a discarded recording
        """
        self.state = state
        self.engine = engine
        self.microphone = microphone
        self.encoder_factory = encoder_factory
        self.transport = transport
        self.event_bus = event_bus
        self.task_manager = task_manager
        self.clock = clock
        self.sample_interval_ms = sample_interval_ms
        self.restart_delay_ms = restart_delay_ms

        self._capture: Optional[CaptureSession] = None
        self._restart_timer: Optional[Timer] = None
        self._starting = False

        self.event_bus.on(EventType.STATUS, self._on_status)

    @property
    def capture(self) -> Optional[CaptureSession]:
        """The active capture session, if any."""
        return self._capture

    @property
    def restart_pending(self) -> bool:
        return self._restart_timer is not None and self._restart_timer.active

    def _now_ms(self) -> float:
        return self.clock() * 1000.0

    async def start_listening(self) -> bool:
        """
        Start capturing and detecting an utterance.

        Returns:
            bool: True if listening started
        """
        if not self.transport.connected:
            logger.warning("Cannot start listening: not connected")
            return False

        if self.state.status == SessionStatus.LISTENING:
            logger.warning("Already listening")
            return False

        if self._capture is not None or self._starting:
            logger.warning("Cannot start listening: previous capture still active")
            return False

        self._starting = True
        try:
            stream = await self.microphone.open()
        except Exception as e:
            error = handle_exception(e, context={"operation": "open_microphone"}, error_class=MicrophoneError)
            logger.error(f"Microphone error: {error}")
            self.event_bus.emit(EventType.ERROR, error)
            self.state.no_speech()
            return False
        finally:
            self._starting = False

        if not self.transport.connected:
            logger.warning("Connection lost while acquiring the microphone")
            stream.release()
            return False

        try:
            capture = self._begin_capture(stream)
        except Exception as e:
            stream.release()
            error = handle_exception(e, context={"operation": "start_encoder"}, error_class=AudioError)
            self.event_bus.emit(EventType.ERROR, error)
            self.state.no_speech()
            return False

        self._cancel_restart()
        self.state.listening_started()
        capture.sampling = PeriodicTask(
            self.task_manager,
            self.sample_interval_ms / 1000.0,
            self._sample,
            name="vad_sampling",
        )

        logger.info("Listening started")
        return True

    def _begin_capture(self, stream: AudioStream) -> CaptureSession:
        sampler = stream.create_sampler()
        encoder = self.encoder_factory()
        mime_type = select_mime_type(encoder)

        capture = CaptureSession(stream=stream, sampler=sampler, encoder=encoder, mime_type=mime_type)
        self._capture = capture

        try:
            encoder.start(
                stream,
                mime_type,
                on_data=capture.add_fragment,
                on_stop=lambda: self._finalize(capture),
            )
        except Exception:
            self._capture = None
            raise

        return capture

    def stop_listening(self, discard: bool = False) -> bool:
        """
        Stop capturing. Safe to call at any time; repeated calls do nothing.

        Args:
            discard: Drop the recording instead of evaluating it, and cancel
                any pending restart

        Returns:
            bool: True if an active capture was stopped
        """
        if discard:
            self._cancel_restart()

        capture = self._capture
        if capture is None or capture.stopping:
            return False

        capture.stopping = True
        capture.discard = capture.discard or discard

        # Timers go first so none can fire against a released stream
        self._cancel_schedules(capture)

        if capture.encoder.recording:
            capture.encoder.stop()
        else:
            self._finalize(capture)

        self._release(capture)
        return True

    def shutdown(self) -> None:
        """Tear down any capture without transmitting and cancel pending restarts."""
        self.stop_listening(discard=True)

    def _on_status(self, status: SessionStatus) -> None:
        """
        End a live capture once something else moves the status off LISTENING.

        The backend reporting "thinking" (a typed message) or the host starting
        playback takes the turn away from the microphone, so the recording is
        dropped and its stream released.
        """
        capture = self._capture
        if status == SessionStatus.LISTENING or capture is None or capture.stopping:
            return
        logger.info(f"Status moved to {status.value} while listening, discarding capture")
        self.stop_listening(discard=True)

    def _sample(self) -> None:
        """Evaluate one energy reading against the VAD thresholds."""
        capture = self._capture
        if capture is None or capture.stopping or not capture.encoder.recording:
            return
        if self.state.status != SessionStatus.LISTENING:
            return

        energy = capture.sampler.read_energy()
        decision = self.engine.evaluate(
            energy,
            voice_detected=capture.voice_detected,
            silence_pending=capture.silence_timer is not None,
        )

        if decision is VadDecision.VOICE_START:
            logger.info("Voice detected")
            capture.voice_detected = True
            capture.start_time = self._now_ms()
            self._cancel_silence_timer(capture)
        elif decision is VadDecision.VOICE_CONTINUE:
            self._cancel_silence_timer(capture)
        elif decision is VadDecision.SILENCE_START:
            capture.silence_timer = Timer(
                self.task_manager,
                self.state.session.vad.timeout / 1000.0,
                lambda: self._silence_elapsed(capture),
                name="vad_silence",
            )

    def _silence_elapsed(self, capture: CaptureSession) -> None:
        capture.silence_timer = None
        if capture is not self._capture or capture.stopping:
            return

        speech_duration = self._now_ms() - capture.start_time
        logger.info(f"Silence detected. Duration: {speech_duration:.0f}ms")

        if self.engine.is_utterance(speech_duration):
            self.stop_listening()
        else:
            # Noise blip: keep recording and wait for real speech
            capture.voice_detected = False

    def _finalize(self, capture: CaptureSession) -> None:
        """Decide what to do with a recording once the encoder has stopped."""
        if capture.finalized:
            return
        capture.finalized = True

        self._cancel_schedules(capture)
        self._release(capture)
        if self._capture is capture:
            self._capture = None

        if capture.discard:
            logger.debug("Capture discarded")
            return

        audio = capture.assemble()
        mime_type = capture.encoder.mime_type or capture.mime_type or FALLBACK_MIME_TYPE
        speech_duration = self._now_ms() - capture.start_time

        if (
            capture.voice_detected
            and len(audio) > MIN_AUDIO_BYTES
            and self.engine.is_utterance(speech_duration)
        ):
            logger.info(f"Sending audio: {len(audio)} bytes")
            self.state.utterance_sent()
            self.transport.send_audio(audio, mime_type, self.state.session.mode)
        else:
            logger.info("No valid speech, resuming")
            self.state.no_speech()
            self._schedule_restart()

    def _schedule_restart(self) -> None:
        self._cancel_restart()
        self._restart_timer = Timer(
            self.task_manager,
            self.restart_delay_ms / 1000.0,
            self._restart,
            name="listen_restart",
        )

    async def _restart(self) -> None:
        self._restart_timer = None
        await self.start_listening()

    def _cancel_restart(self) -> None:
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None

    def _cancel_silence_timer(self, capture: CaptureSession) -> None:
        if capture.silence_timer is not None:
            capture.silence_timer.cancel()
            capture.silence_timer = None

    def _cancel_schedules(self, capture: CaptureSession) -> None:
        if capture.sampling is not None:
            capture.sampling.cancel()
            capture.sampling = None
        self._cancel_silence_timer(capture)

    def _release(self, capture: CaptureSession) -> None:
        if not capture.released:
            capture.released = True
            capture.stream.release()
