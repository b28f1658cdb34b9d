"""Microphone recorder adapter."""

from __future__ import annotations

import logging
import threading
import wave
from pathlib import Path
from typing import Any, Optional

from errors import CaptureIOError, NoInputDeviceError
from interfaces import FaultCallback
from models import CAPTURE_FORMAT, CHUNK_BYTES, AudioFormat

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class _CaptureSession:
    """State owned by one start/stop cycle and its capture thread."""

    def __init__(self, stream: Any, on_fault: Optional[FaultCallback]) -> None:
        self.stream = stream
        self.on_fault = on_fault
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.overflows = 0
        self._lock = threading.Lock()
        self._buffer = bytearray()
        self._sealed = False
        self._fault: Optional[CaptureIOError] = None

    def append(self, data: bytes) -> None:
        with self._lock:
            if not self._sealed:
                self._buffer.extend(data)

    def fail(self, fault: CaptureIOError) -> bool:
        """Record ``fault`` unless the session was already stopped."""
        with self._lock:
            if self._sealed or self.stop_event.is_set():
                return False
            self._fault = fault
            return True

    def seal(self) -> tuple[bytes, Optional[CaptureIOError]]:
        """Freeze the buffer; anything a straggling thread reads later is dropped."""
        with self._lock:
            self._sealed = True
            audio = bytes(self._buffer)
            self._buffer = bytearray()
            return audio, self._fault


class SoundDeviceRecorder:
    """Captures raw PCM from the first compatible input device.

    Each ``start()`` opens a fresh stream and spawns a thread that does
    blocking reads of ``chunk_bytes`` into that session's own buffer.
    ``stop()`` sets the session's stop event, gives the thread
    ``stop_grace_s`` to finish its last chunk, seals the buffer, releases
    the stream and writes a WAV file. A thread still stuck in ``read``
    after the grace period only ever touches its own sealed session.
    """

    def __init__(
        self,
        audio_format: AudioFormat = CAPTURE_FORMAT,
        chunk_bytes: int = CHUNK_BYTES,
        stop_grace_s: float = 0.1,
    ) -> None:
        self.audio_format = audio_format
        self.chunk_bytes = chunk_bytes
        self.stop_grace_s = stop_grace_s
        self._lock = threading.Lock()
        self._session: Optional[_CaptureSession] = None

    @property
    def is_capturing(self) -> bool:
        return self._session is not None

    def start(self, on_fault: Optional[FaultCallback] = None) -> None:
        with self._lock:
            if self._session is not None:
                return
            if sd is None:
                raise CaptureIOError("sounddevice is not installed")
            device = self._select_device()
            fmt = self.audio_format
            stream = None
            try:
                stream = sd.RawInputStream(
                    device=device,
                    samplerate=fmt.sample_rate,
                    channels=fmt.channels,
                    dtype=fmt.dtype,
                    blocksize=self.chunk_bytes // fmt.frame_size,
                )
                stream.start()
            except Exception as exc:
                if stream is not None:
                    self._close_quietly(stream)
                raise CaptureIOError(f"Failed to open input device: {exc}") from exc

            session = _CaptureSession(stream, on_fault)
            session.thread = threading.Thread(
                target=self._capture_loop,
                args=(session,),
                name="audio-capture",
                daemon=True,
            )
            self._session = session
            session.thread.start()
            logger.info("Capture started on device %s", device)

    def stop(self, destination: Path) -> Optional[Path]:
        """Stop capturing; return the WAV path, or None if nothing was captured.

        Raises:
            CaptureIOError: if the capture loop faulted or the WAV file
                could not be written. The stream is released either way.
        """
        with self._lock:
            session = self._session
            if session is None:
                return None
            audio, fault = self._halt(session)

        if fault is not None:
            raise fault
        if not audio:
            logger.info("Capture stopped with no audio")
            return None

        fmt = self.audio_format
        try:
            with wave.open(str(destination), "wb") as wf:
                wf.setnchannels(fmt.channels)
                wf.setsampwidth(fmt.sample_width)
                wf.setframerate(fmt.sample_rate)
                wf.writeframes(audio)
        except (OSError, wave.Error) as exc:
            raise CaptureIOError(f"Failed to write {destination}: {exc}") from exc
        logger.info(
            "Captured %.2fs of audio to %s",
            len(audio) / (fmt.frame_size * fmt.sample_rate),
            destination,
        )
        return destination

    def abort(self) -> None:
        """Stop capturing and discard audio without writing a file."""
        with self._lock:
            session = self._session
            if session is None:
                return
            self._halt(session)
            logger.info("Capture aborted")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _select_device(self) -> int:
        fmt = self.audio_format
        try:
            devices = sd.query_devices()
        except Exception as exc:
            raise NoInputDeviceError(f"Cannot enumerate audio devices: {exc}") from exc

        for index, info in enumerate(devices):
            if info.get("max_input_channels", 0) < fmt.channels:
                continue
            try:
                sd.check_input_settings(
                    device=index,
                    channels=fmt.channels,
                    dtype=fmt.dtype,
                    samplerate=fmt.sample_rate,
                )
            except Exception as exc:
                logger.debug("Device %s rejected: %s", index, exc)
                continue
            logger.debug("Selected input device %s: %s", index, info.get("name"))
            return index
        raise NoInputDeviceError()

    def _halt(self, session: _CaptureSession) -> tuple[bytes, Optional[CaptureIOError]]:
        # Caller holds self._lock.
        session.stop_event.set()
        thread = session.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.stop_grace_s)
            if thread.is_alive():
                logger.warning("Capture thread still blocked after %.2fs", self.stop_grace_s)
        captured = session.seal()
        self._close_quietly(session.stream)
        self._session = None
        return captured

    def _capture_loop(self, session: _CaptureSession) -> None:
        frames = self.chunk_bytes // self.audio_format.frame_size
        stream = session.stream
        try:
            while not session.stop_event.is_set():
                data, overflowed = stream.read(frames)
                if overflowed:
                    session.overflows += 1
                    logger.warning("Input overflow while capturing")
                if data:
                    session.append(bytes(data))
        except Exception as exc:
            fault = CaptureIOError(f"Audio capture failed: {exc}")
            if not session.fail(fault):
                # Stream closed under us by stop()/abort().
                return
            logger.error("Capture loop failed: %s", exc)
            if session.on_fault is not None:
                try:
                    session.on_fault(fault)
                except Exception:
                    logger.exception("Capture fault handler failed")

    @staticmethod
    def _close_quietly(stream: Any) -> None:
        try:
            stream.stop()
        except Exception as exc:
            logger.warning("Stream stop failed: %s", exc)
        try:
            stream.close()
        except Exception as exc:
            logger.warning("Stream close failed: %s", exc)
