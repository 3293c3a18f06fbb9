"""
Energy-based voice activity detection.

The engine turns periodic energy readings (0-255, average frequency-domain
magnitude) into decisions. It only reads configuration; the capture
controller owns the capture state and applies the decisions.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable

from logos_client.config.logging_config import get_logger
from logos_client.domain.session.state import Session

logger = get_logger(__name__)

# Shortest utterance (ms) worth sending to the backend
MIN_SPEECH_DURATION_MS = 400

DEFAULT_NOISE_FLOOR = 10.0
CALIBRATION_MARGIN = 15.0
HYSTERESIS = 5.0

MIN_FIXED_THRESHOLD = 5.0
FIXED_THRESHOLD_BASE = 35.0
SENSITIVITY_STEP = 3.0


class VadDecision(Enum):
    """What the capture controller should do after a tick."""

    NONE = auto()
    # Energy rose above the voice threshold for the first time
    VOICE_START = auto()
    # Energy is above the voice threshold while voice is already detected
    VOICE_CONTINUE = auto()
    # Energy dropped below the silence threshold; arm the silence timer
    SILENCE_START = auto()


@dataclass(frozen=True)
class VadThresholds:
    """Derived threshold pair; readings between the two change nothing."""

    silence_threshold: float
    voice_threshold: float


class VadEngine:
    """
    Voice activity detector driven by the session's VAD configuration.

    With auto-calibration disabled the thresholds come from the sensitivity
    alone. With it enabled they sit a fixed margin above the noise floor,
    which defaults to 10 until one is learned.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    def noise_floor(self) -> float:
        if self.session.noise_floor is None:
            return DEFAULT_NOISE_FLOOR
        return self.session.noise_floor

    def thresholds(self) -> VadThresholds:
        """Compute the thresholds for the current configuration."""
        vad = self.session.vad

        if not vad.auto_calibrate:
            base = max(MIN_FIXED_THRESHOLD, FIXED_THRESHOLD_BASE - vad.sensitivity * SENSITIVITY_STEP)
            return VadThresholds(silence_threshold=base, voice_threshold=base + HYSTERESIS)

        silence = self.noise_floor + CALIBRATION_MARGIN
        return VadThresholds(silence_threshold=silence, voice_threshold=silence + HYSTERESIS)

    def evaluate(self, energy: float, voice_detected: bool, silence_pending: bool) -> VadDecision:
        """
        Classify one energy reading.

        Args:
            energy: Current energy reading
            voice_detected: Whether voice was already detected in this capture
            silence_pending: Whether a silence timer is already armed

        Returns:
            VadDecision: The action the controller should take
        """
        thresholds = self.thresholds()

        if energy > thresholds.voice_threshold:
            return VadDecision.VOICE_CONTINUE if voice_detected else VadDecision.VOICE_START

        if energy < thresholds.silence_threshold and voice_detected and not silence_pending:
            return VadDecision.SILENCE_START

        return VadDecision.NONE

    @staticmethod
    def is_utterance(speech_duration_ms: float) -> bool:
        """Whether speech of this length counts as an utterance rather than a blip."""
        return speech_duration_ms >= MIN_SPEECH_DURATION_MS

    def calibrate(self, readings: Iterable[float]) -> float:
        """
        Learn the noise floor from ambient energy readings.

        Args:
            readings: Energy readings taken while nobody is speaking

        Returns:
            float: The learned noise floor

        Raises:
            ValueError: If no readings are given
        """
        values = list(readings)
        if not values:
            raise ValueError("At least one reading is required to calibrate")

        noise_floor = sum(values) / len(values)
        self.session.noise_floor = noise_floor
        logger.info(f"Calibrated noise floor: {noise_floor:.1f}")
        return noise_floor
