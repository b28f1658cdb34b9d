"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

import threading
import time
import wave
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from errors import CaptureIOError, NoInputDeviceError
from recorder import SoundDeviceRecorder


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

CHUNK = b"\x01\x00\x02\x00" * 1024  # 4096 bytes = 1024 stereo frames


class _FakeStream:
    """Blocking-read stream: hands out ``chunks`` then idles or fails."""

    def __init__(self, chunks: list[bytes] | None = None, fail_with: Exception | None = None) -> None:
        self._chunks = list(chunks or [])
        self._fail_with = fail_with
        self.drained = threading.Event()
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def read(self, frames: int):  # noqa: ANN201
        if self._chunks:
            return self._chunks.pop(0), False
        self.drained.set()
        if self._fail_with is not None:
            raise self._fail_with
        time.sleep(0.005)
        return b"", False

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True


def _devices() -> list[dict]:
    return [
        {"name": "speakers", "max_input_channels": 0},
        {"name": "mono mic", "max_input_channels": 1},
        {"name": "usb mic", "max_input_channels": 2},
    ]


def _setup(mock_sd: MagicMock, stream: _FakeStream) -> None:
    mock_sd.query_devices.return_value = _devices()
    mock_sd.check_input_settings.return_value = None
    mock_sd.RawInputStream.return_value = stream


# ---------------------------------------------------------------
# Device selection
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_opens_first_compatible_device(mock_sd: MagicMock) -> None:
    stream = _FakeStream()
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()

    mock_sd.RawInputStream.assert_called_once_with(
        device=2, samplerate=44100, channels=2, dtype="int16", blocksize=1024
    )
    assert stream.started is True
    assert recorder.is_capturing is True

    recorder.abort()


@patch("recorder.sd")
def test_device_rejecting_format_is_skipped(mock_sd: MagicMock) -> None:
    stream = _FakeStream()
    _setup(mock_sd, stream)
    mock_sd.query_devices.return_value = _devices() + [{"name": "good mic", "max_input_channels": 2}]

    def _check(device: int, **kwargs) -> None:  # noqa: ANN003
        if device == 2:
            raise ValueError("Invalid sample rate")

    mock_sd.check_input_settings.side_effect = _check

    recorder = SoundDeviceRecorder()
    recorder.start()

    assert mock_sd.RawInputStream.call_args.kwargs["device"] == 3
    recorder.abort()


@patch("recorder.sd")
def test_no_compatible_device_raises(mock_sd: MagicMock) -> None:
    mock_sd.query_devices.return_value = [{"name": "speakers", "max_input_channels": 0}]

    recorder = SoundDeviceRecorder()
    with pytest.raises(NoInputDeviceError):
        recorder.start()

    mock_sd.RawInputStream.assert_not_called()
    assert recorder.is_capturing is False


@patch("recorder.sd")
def test_stream_open_failure_leaves_clean_state(mock_sd: MagicMock) -> None:
    stream = MagicMock()
    stream.start.side_effect = OSError("device busy")
    mock_sd.query_devices.return_value = _devices()
    mock_sd.RawInputStream.return_value = stream

    recorder = SoundDeviceRecorder()
    with pytest.raises(CaptureIOError, match="device busy"):
        recorder.start()

    stream.close.assert_called_once()
    assert recorder.is_capturing is False


def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(CaptureIOError, match="sounddevice is not installed"):
        recorder.start()


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    _setup(mock_sd, _FakeStream())

    recorder = SoundDeviceRecorder()
    recorder.start()
    recorder.start()  # second call should be no-op

    assert mock_sd.RawInputStream.call_count == 1
    recorder.abort()


# ---------------------------------------------------------------
# Stop / WAV output
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_stop_writes_wav_file(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream(chunks=[CHUNK, CHUNK])
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert stream.drained.wait(2.0)

    destination = tmp_path / "recording_1.wav"
    assert recorder.stop(destination) == destination

    assert stream.stopped is True
    assert stream.closed is True
    assert recorder.is_capturing is False
    with wave.open(str(destination), "rb") as wf:
        assert wf.getnchannels() == 2
        assert wf.getsampwidth() == 2
        assert wf.getframerate() == 44100
        assert wf.getnframes() == 2048
        assert wf.readframes(1024) == CHUNK


@patch("recorder.sd")
def test_stop_without_audio_writes_nothing(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream()
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert stream.drained.wait(2.0)

    destination = tmp_path / "recording_1.wav"
    assert recorder.stop(destination) is None
    assert not destination.exists()
    assert stream.closed is True


def test_stop_when_not_capturing_is_noop(tmp_path: Path) -> None:
    recorder = SoundDeviceRecorder()
    assert recorder.stop(tmp_path / "x.wav") is None
    assert not (tmp_path / "x.wav").exists()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream(chunks=[CHUNK])
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert stream.drained.wait(2.0)

    assert recorder.stop(tmp_path / "a.wav") is not None
    assert recorder.stop(tmp_path / "b.wav") is None
    assert not (tmp_path / "b.wav").exists()


@patch("recorder.sd")
def test_wav_write_failure_is_reported_after_release(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream(chunks=[CHUNK])
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert stream.drained.wait(2.0)

    with pytest.raises(CaptureIOError):
        recorder.stop(tmp_path / "missing-dir" / "recording.wav")

    assert stream.closed is True
    assert recorder.is_capturing is False


@patch("recorder.sd")
def test_buffer_is_cleared_between_sessions(mock_sd: MagicMock, tmp_path: Path) -> None:
    first = _FakeStream(chunks=[CHUNK])
    _setup(mock_sd, first)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert first.drained.wait(2.0)
    recorder.stop(tmp_path / "first.wav")

    second = _FakeStream()
    mock_sd.RawInputStream.return_value = second
    recorder.start()
    assert second.drained.wait(2.0)

    assert recorder.stop(tmp_path / "second.wav") is None


# ---------------------------------------------------------------
# Faults and abort
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_capture_loop_fault_is_reported(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream(chunks=[CHUNK], fail_with=OSError("device unplugged"))
    _setup(mock_sd, stream)
    faults: list[Exception] = []
    reported = threading.Event()

    def on_fault(exc: Exception) -> None:
        faults.append(exc)
        reported.set()

    recorder = SoundDeviceRecorder()
    recorder.start(on_fault=on_fault)
    assert reported.wait(2.0)

    assert isinstance(faults[0], CaptureIOError)
    assert "device unplugged" in str(faults[0])

    with pytest.raises(CaptureIOError):
        recorder.stop(tmp_path / "recording.wav")
    assert stream.closed is True
    assert not (tmp_path / "recording.wav").exists()


@patch("recorder.sd")
def test_abort_discards_audio(mock_sd: MagicMock, tmp_path: Path) -> None:
    stream = _FakeStream(chunks=[CHUNK])
    _setup(mock_sd, stream)

    recorder = SoundDeviceRecorder()
    recorder.start()
    assert stream.drained.wait(2.0)
    recorder.abort()

    assert stream.closed is True
    assert recorder.is_capturing is False
    assert recorder.stop(tmp_path / "recording.wav") is None


class _SlowStream(_FakeStream):
    """First read blocks past the stop grace period, then yields or fails."""

    def __init__(self, delay: float, fail_with: Exception | None = None) -> None:
        super().__init__()
        self._delay = delay
        self._late_error = fail_with
        self.woke = threading.Event()

    def read(self, frames: int):  # noqa: ANN201
        time.sleep(self._delay)
        self.woke.set()
        if self._late_error is not None:
            raise self._late_error
        return CHUNK, False


@pytest.mark.parametrize("late_error", [None, OSError("stream closed")])
@patch("recorder.sd")
def test_straggling_thread_cannot_touch_next_session(
    mock_sd: MagicMock, tmp_path: Path, late_error: Exception | None
) -> None:
    slow = _SlowStream(delay=0.3, fail_with=late_error)
    _setup(mock_sd, slow)
    recorder = SoundDeviceRecorder(stop_grace_s=0.05)
    first_faults: list[Exception] = []

    recorder.start(on_fault=first_faults.append)
    # read is still blocked when the grace period runs out
    assert recorder.stop(tmp_path / "first.wav") is None
    assert slow.woke.is_set() is False

    quiet = _FakeStream()
    mock_sd.RawInputStream.return_value = quiet
    second_faults: list[Exception] = []
    recorder.start(on_fault=second_faults.append)
    assert slow.woke.wait(2.0)
    assert quiet.drained.wait(2.0)
    time.sleep(0.05)

    assert recorder.is_capturing is True
    assert recorder.stop(tmp_path / "second.wav") is None
    assert not (tmp_path / "second.wav").exists()
    assert first_faults == []
    assert second_faults == []
