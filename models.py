"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"


class ToggleOutcome(str, Enum):
    STARTED = "started"
    TRANSCRIBING = "transcribing"
    NOTHING_RECORDED = "nothing_recorded"
    BUSY = "busy"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class AudioFormat:
    """Fixed capture format: signed 16-bit little-endian PCM."""

    sample_rate: int = 44100
    sample_width: int = 2
    channels: int = 2
    dtype: str = "int16"

    @property
    def frame_size(self) -> int:
        return self.sample_width * self.channels


CAPTURE_FORMAT = AudioFormat()
CHUNK_BYTES = 4096


@dataclass
class TranscriptionRequest:
    audio_base64: str
    audio_format: str

    def to_json(self) -> dict:
        return {"audioBase64": self.audio_base64, "audioFormat": self.audio_format}


@dataclass
class TranscriptionResponse:
    transcript: str
    remaining_credits: Optional[int] = None


@dataclass
class TranscriptionResult:
    ok: bool
    transcript: str = ""
    error_code: str = ""
    message: str = ""
    remaining_credits: Optional[int] = None

    @classmethod
    def success(cls, transcript: str, remaining_credits: Optional[int] = None) -> "TranscriptionResult":
        return cls(ok=True, transcript=transcript, remaining_credits=remaining_credits)

    @classmethod
    def failure(cls, code: str, message: str) -> "TranscriptionResult":
        return cls(ok=False, error_code=code, message=message)
