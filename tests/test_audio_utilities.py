"""
Tests for the audio utilities and the default audio capabilities.
"""

import io
import threading
import wave
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from logos_client.services.audio_service import (
    FftEnergySampler,
    PcmStream,
    PyAudioMicrophone,
    PyAudioStream,
    WavEncoder,
    WAV_MIME_TYPE,
)
from logos_client.utils.audio_utilities import (
    frequency_energy,
    get_audio_duration,
    pcm16_to_float,
    pcm16_to_wav,
)
from logos_client.utils.error_handling import AudioError, MicrophoneError


def tone(frequency=440.0, amplitude=0.5, sample_rate=16000, size=256):
    """Generate a float sine window."""
    t = np.arange(size) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t)


def tone_pcm(frequency=440.0, amplitude=0.5, sample_rate=16000, size=1024):
    return (tone(frequency, amplitude, sample_rate, size) * 32767).astype(np.int16).tobytes()


def test_pcm16_to_float():
    """Test conversion from PCM16 to float."""
    data = np.array([0, 16384, -32768], dtype=np.int16).tobytes()

    samples = pcm16_to_float(data)

    assert samples.dtype == np.float32
    assert samples.tolist() == pytest.approx([0.0, 0.5, -1.0])


def test_silence_has_zero_energy():
    """A silent window maps to 0."""
    energy, _ = frequency_energy(np.zeros(256))

    assert energy == 0.0


def test_tone_has_energy():
    """A loud tone produces a clearly positive reading within range."""
    energy, magnitudes = frequency_energy(tone())

    assert 0 < energy <= 255
    assert magnitudes.shape == (128,)


def test_louder_is_more_energetic():
    """Energy grows with amplitude."""
    quiet, _ = frequency_energy(tone(amplitude=0.01))
    loud, _ = frequency_energy(tone(amplitude=0.8))

    assert loud > quiet


def test_smoothing_carries_previous_magnitudes():
    """A silent window right after a tone still reads some energy."""
    _, previous = frequency_energy(tone())

    energy, _ = frequency_energy(np.zeros(256), previous=previous)

    assert energy > 0


def test_empty_window_rejected():
    """An empty window is an audio error."""
    with pytest.raises(AudioError):
        frequency_energy(np.zeros(0))


def test_pcm16_to_wav_header():
    """Test WAV wrapping."""
    pcm = b"\x00\x01" * 1600

    wav_data = pcm16_to_wav(pcm, sample_rate=16000)

    with wave.open(io.BytesIO(wav_data), "rb") as wf:
        assert wf.getnchannels() == 1
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 16000
        assert wf.readframes(wf.getnframes()) == pcm


def test_get_audio_duration():
    """Test duration calculation."""
    assert get_audio_duration(b"\x00" * 32000, sample_rate=16000) == pytest.approx(1.0)
    assert get_audio_duration(b"\x00" * 32000, sample_rate=16000, channels=2) == pytest.approx(0.5)


def test_stream_window_and_sinks():
    """Fed audio updates the analysis window and reaches every sink."""
    stream = PcmStream(window_size=4)
    sink = MagicMock()
    stream.add_sink(sink)

    data = np.array([1, 2, 3, 4, 5, 6], dtype=np.int16).tobytes()
    stream.feed(data)

    sink.assert_called_once_with(data)
    assert stream.latest_samples().tolist() == pytest.approx(
        (np.array([3, 4, 5, 6]) / 32768.0).tolist()
    )


def test_stream_release_is_idempotent():
    """Releasing twice closes the device once and drops sinks."""
    stream = PcmStream()
    stream._close = MagicMock()
    sink = MagicMock()
    stream.add_sink(sink)

    stream.release()
    stream.release()

    stream._close.assert_called_once()
    stream.feed(b"\x00\x00" * 10)
    sink.assert_not_called()


def test_sampler_reads_stream():
    """The sampler reports energy for audio fed to its stream."""
    stream = PcmStream()
    sampler = stream.create_sampler()
    assert isinstance(sampler, FftEnergySampler)

    assert sampler.read_energy() == 0.0

    stream.feed(tone_pcm())
    assert sampler.read_energy() > 0


def test_wav_encoder_records_stream():
    """The encoder delivers one WAV fragment, then signals stop."""
    stream = PcmStream()
    encoder = WavEncoder()
    fragments = []
    order = []

    encoder.start(
        stream,
        "",
        on_data=lambda data: (fragments.append(data), order.append("data")),
        on_stop=lambda: order.append("stop"),
    )
    assert encoder.recording is True

    pcm = tone_pcm(size=800)
    stream.feed(pcm)
    encoder.stop()

    assert encoder.recording is False
    assert order == ["data", "stop"]
    with wave.open(io.BytesIO(fragments[0]), "rb") as wf:
        assert wf.readframes(wf.getnframes()) == pcm


def test_wav_encoder_without_audio():
    """Stopping with nothing recorded only signals stop."""
    encoder = WavEncoder()
    on_data = MagicMock()
    on_stop = MagicMock()

    encoder.start(PcmStream(), WAV_MIME_TYPE, on_data=on_data, on_stop=on_stop)
    encoder.stop()

    on_data.assert_not_called()
    on_stop.assert_called_once()


def test_wav_encoder_supported_types():
    """Only WAV output is supported."""
    encoder = WavEncoder()

    assert encoder.is_type_supported("audio/wav") is True
    assert encoder.is_type_supported("audio/webm;codecs=opus") is False
    assert encoder.mime_type == WAV_MIME_TYPE


def test_wav_encoder_rejects_unsupported_start():
    """Starting with an unsupported type or twice is an audio error."""
    encoder = WavEncoder()

    with pytest.raises(AudioError):
        encoder.start(PcmStream(), "audio/ogg", on_data=MagicMock(), on_stop=MagicMock())

    encoder.start(PcmStream(), "", on_data=MagicMock(), on_stop=MagicMock())
    with pytest.raises(AudioError):
        encoder.start(PcmStream(), "", on_data=MagicMock(), on_stop=MagicMock())


def fake_pyaudio_module():
    """A stand-in pyaudio module with one default input device."""
    module = MagicMock()
    module.PyAudio.return_value.get_default_input_device_info.return_value = {"name": "Test Mic", "index": 3}
    return module


@pytest.mark.asyncio
async def test_microphone_opens_device_off_the_event_loop():
    """PyAudio is created and started in a worker thread."""
    module = fake_pyaudio_module()
    opened_on = []
    py_audio = module.PyAudio.return_value

    def create():
        opened_on.append(threading.current_thread())
        return py_audio

    module.PyAudio.side_effect = create

    with patch("logos_client.services.audio_service.import_pyaudio", return_value=module):
        stream = await PyAudioMicrophone().open()

    assert isinstance(stream, PyAudioStream)
    assert opened_on and opened_on[0] is not threading.main_thread()
    assert py_audio.open.call_args.kwargs["input_device_index"] == 3

    stream.release()
    py_audio.terminate.assert_called_once()


@pytest.mark.asyncio
async def test_microphone_open_failure():
    """A device error becomes a MicrophoneError and PyAudio is shut down."""
    module = fake_pyaudio_module()
    py_audio = module.PyAudio.return_value
    py_audio.get_default_input_device_info.side_effect = OSError("no default input device")

    with patch("logos_client.services.audio_service.import_pyaudio", return_value=module):
        with pytest.raises(MicrophoneError, match="no default input device"):
            await PyAudioMicrophone().open()

    py_audio.terminate.assert_called_once()
