"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

from typing import Optional

NO_INPUT_DEVICE = "NO_INPUT_DEVICE"
CAPTURE_IO_ERROR = "CAPTURE_IO_ERROR"
MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
TRANSCRIPTION_TIMEOUT = "TRANSCRIPTION_TIMEOUT"
NETWORK_ERROR = "NETWORK_ERROR"
SERVICE_ERROR = "SERVICE_ERROR"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
FILE_CLEANUP_ERROR = "FILE_CLEANUP_ERROR"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
BUSY = "BUSY"

ERROR_MESSAGES = {
    NO_INPUT_DEVICE: "No suitable audio input device found.",
    CAPTURE_IO_ERROR: "Audio capture failed.",
    MISSING_CREDENTIAL: "API key is not set. Please set it in the settings.",
    TRANSCRIPTION_TIMEOUT: "Transcription timed out, please retry.",
    NETWORK_ERROR: "Network failed, please retry.",
    SERVICE_ERROR: "Transcription service returned an error.",
    MALFORMED_RESPONSE: "Transcription response format is invalid.",
    FILE_CLEANUP_ERROR: "Failed to delete temporary audio file.",
    TRANSCRIPTION_FAILED: "Transcription failed.",
    BUSY: "Transcription in progress, please wait.",
}


class WhisprerError(Exception):
    """Base exception; ``code`` selects the user-facing message."""

    code = TRANSCRIPTION_FAILED

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES[self.code])


class CaptureError(WhisprerError):
    code = CAPTURE_IO_ERROR


class NoInputDeviceError(CaptureError):
    code = NO_INPUT_DEVICE


class CaptureIOError(CaptureError):
    code = CAPTURE_IO_ERROR


class TranscriptionError(WhisprerError):
    code = TRANSCRIPTION_FAILED


class MissingCredentialError(TranscriptionError):
    code = MISSING_CREDENTIAL


class TranscriptionTimeoutError(TranscriptionError):
    code = TRANSCRIPTION_TIMEOUT


class TranscriptionNetworkError(TranscriptionError):
    code = NETWORK_ERROR


class TranscriptionServiceError(TranscriptionError):
    """Non-success HTTP status; ``body`` is the response text verbatim."""

    code = SERVICE_ERROR

    def __init__(self, body: str, status_code: Optional[int] = None) -> None:
        self.body = body
        self.status_code = status_code
        super().__init__(f"Transcription failed: {body}")


class MalformedResponseError(TranscriptionError):
    code = MALFORMED_RESPONSE


class FileCleanupError(WhisprerError):
    code = FILE_CLEANUP_ERROR
