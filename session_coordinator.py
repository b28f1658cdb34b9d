"""State-machine based session orchestration."""

from __future__ import annotations

import logging
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from errors import BUSY, ERROR_MESSAGES, TRANSCRIPTION_FAILED, CaptureIOError, FileCleanupError, WhisprerError
from interfaces import AudioCapture, ResultSink, TranscriptionClient
from models import SessionState, ToggleOutcome, TranscriptionResult

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionCoordinator:
    """Single owner of the record/transcribe lifecycle.

    Every trigger source calls ``toggle()``; transitions happen under one
    lock, as does the completion of the background transcription job, so
    two captures can never overlap. Outcomes go to the registered sinks
    only, never to a UI directly.
    """

    def __init__(
        self,
        capture: AudioCapture,
        client: TranscriptionClient,
        sinks: Iterable[ResultSink] = (),
        recordings_dir: Optional[Path] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._capture = capture
        self._client = client
        self._sinks: List[ResultSink] = list(sinks)
        self._recordings_dir = recordings_dir or Path(tempfile.gettempdir())
        self._clock = clock

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session_id = 0
        self._active_capture: Optional[AudioCapture] = None
        self._pending_job: Optional[threading.Thread] = None
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def add_sink(self, sink: ResultSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: ResultSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def toggle(self) -> ToggleOutcome:
        with self._lock:
            if self._closed:
                return ToggleOutcome.CLOSED
            if self._state == SessionState.IDLE:
                return self._start_recording()
            if self._state == SessionState.RECORDING:
                return self._stop_recording()
            logger.info("Toggle rejected: transcription in progress")
            self._emit("on_error", BUSY, ERROR_MESSAGES[BUSY])
            return ToggleOutcome.BUSY

    def wait_until_idle(self, timeout_s: Optional[float] = None) -> bool:
        return self._idle.wait(timeout=timeout_s)

    def shutdown(self, timeout_s: float = 5.0) -> None:
        """Refuse further toggles, drop any capture, wait briefly for the job.

        A job still running after ``timeout_s`` is left to finish on its
        daemon thread; it then only deletes its audio file.
        """
        with self._lock:
            if not self._closed:
                self._closed = True
                if self._state == SessionState.RECORDING:
                    self._abort_capture()
                    self._transition(SessionState.IDLE)
            job = self._pending_job

        if job is not None and job.is_alive():
            job.join(timeout=timeout_s)
            if job.is_alive():
                logger.warning("Abandoning transcription still running after %.1fs", timeout_s)

    # ------------------------------------------------------------------
    # Transitions (caller holds self._lock)
    # ------------------------------------------------------------------

    def _start_recording(self) -> ToggleOutcome:
        self._session_id += 1
        session_id = self._session_id
        try:
            self._capture.start(on_fault=lambda exc: self._handle_capture_fault(session_id, exc))
        except WhisprerError as exc:
            self._report(exc)
            return ToggleOutcome.FAILED
        except Exception as exc:
            self._report(CaptureIOError(f"Failed to start recording: {exc}"))
            return ToggleOutcome.FAILED

        self._active_capture = self._capture
        self._transition(SessionState.RECORDING)
        self._emit("on_status", "Recording...")
        return ToggleOutcome.STARTED

    def _stop_recording(self) -> ToggleOutcome:
        destination = self._recordings_dir / f"recording_{self._clock()}.wav"
        self._active_capture = None
        try:
            audio_file = self._capture.stop(destination)
        except Exception as exc:
            if not isinstance(exc, WhisprerError):
                exc = CaptureIOError(f"Failed to stop recording: {exc}")
            self._discard(destination)
            self._report(exc)
            self._transition(SessionState.IDLE)
            return ToggleOutcome.FAILED

        if audio_file is None:
            self._emit("on_status", "Nothing was recorded")
            self._transition(SessionState.IDLE)
            return ToggleOutcome.NOTHING_RECORDED

        self._transition(SessionState.TRANSCRIBING)
        self._emit("on_status", "Transcribing...")
        job = threading.Thread(
            target=self._run_transcription,
            args=(self._session_id, audio_file),
            name=f"transcribe-{self._session_id}",
            daemon=True,
        )
        self._pending_job = job
        job.start()
        return ToggleOutcome.TRANSCRIBING

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if to_state == SessionState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        logger.debug("State: %s -> %s", from_state.value, to_state.value)
        self._emit("on_state_changed", to_state)

    # ------------------------------------------------------------------
    # Background completions
    # ------------------------------------------------------------------

    def _run_transcription(self, session_id: int, audio_file: Path) -> None:
        try:
            response = self._client.transcribe(audio_file)
        except WhisprerError as exc:
            result = TranscriptionResult.failure(exc.code, str(exc))
        except Exception as exc:
            logger.exception("Unexpected transcription failure")
            result = TranscriptionResult.failure(TRANSCRIPTION_FAILED, str(exc))
        else:
            result = TranscriptionResult.success(response.transcript, response.remaining_credits)
        finally:
            self._discard(audio_file)
        self._complete(session_id, result)

    def _complete(self, session_id: int, result: TranscriptionResult) -> None:
        with self._lock:
            if session_id != self._session_id or self._state != SessionState.TRANSCRIBING:
                return
            self._pending_job = None
            if self._closed:
                logger.info("Transcription finished after shutdown; result dropped")
            elif result.ok:
                if result.remaining_credits is not None:
                    logger.info("Remaining credits: %s", result.remaining_credits)
                self._emit("on_transcript", result.transcript)
                self._emit("on_status", "Transcription complete!")
            else:
                logger.warning("Transcription failed [%s]: %s", result.error_code, result.message)
                self._emit("on_error", result.error_code, result.message)
            self._transition(SessionState.IDLE)

    def _handle_capture_fault(self, session_id: int, exc: Exception) -> None:
        with self._lock:
            if session_id != self._session_id or self._state != SessionState.RECORDING:
                return
            self._abort_capture()
            if not isinstance(exc, WhisprerError):
                exc = CaptureIOError(str(exc))
            self._report(exc)
            self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _abort_capture(self) -> None:
        self._active_capture = None
        try:
            self._capture.abort()
        except Exception:
            logger.exception("Failed to abort capture")

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("%s", FileCleanupError(f"Failed to delete {path}: {exc}"))
        else:
            logger.debug("Deleted temporary audio file %s", path)

    def _report(self, exc: WhisprerError) -> None:
        logger.warning("%s: %s", exc.code, exc)
        self._emit("on_error", exc.code, str(exc))

    def _emit(self, method: str, *args: object) -> None:
        for sink in list(self._sinks):
            try:
                getattr(sink, method)(*args)
            except Exception:
                logger.exception("Sink %r failed in %s", sink, method)
