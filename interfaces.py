"""Protocol interfaces used by SessionCoordinator."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Protocol

from models import SessionState, TranscriptionResponse

FaultCallback = Callable[[Exception], None]


class AudioCapture(Protocol):
    def start(self, on_fault: Optional[FaultCallback] = None) -> None: ...

    def stop(self, destination: Path) -> Optional[Path]: ...

    def abort(self) -> None: ...


class TranscriptionClient(Protocol):
    def transcribe(self, audio_file: Path) -> TranscriptionResponse: ...


class ResultSink(Protocol):
    def on_state_changed(self, state: SessionState) -> None: ...

    def on_status(self, message: str) -> None: ...

    def on_transcript(self, text: str) -> None: ...

    def on_error(self, kind: str, message: str) -> None: ...


class CredentialStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class TriggerSource(Protocol):
    def start(self, on_toggle: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...
