"""Remote transcription client.

One ``transcribe()`` call is one POST: the WAV file is base64-encoded into
a JSON body, authenticated with the service bearer token plus the user's
API key, and the returned transcript is cleaned of the comma-joined
repeated phrases the upstream model tends to emit.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

from errors import (
    CaptureIOError,
    MalformedResponseError,
    MissingCredentialError,
    TranscriptionNetworkError,
    TranscriptionServiceError,
    TranscriptionTimeoutError,
)
from models import TranscriptionRequest, TranscriptionResponse

logger = logging.getLogger(__name__)

API_KEY_HEADER = "whisprer-api-key"
DEFAULT_FORMAT = "webm"
REQUEST_TIMEOUT_S = 60.0


def normalize_transcript(raw: str) -> str:
    """Drop repeated ", "-separated phrases, keeping first-seen order."""
    pieces = dict.fromkeys(piece.strip() for piece in raw.split(", "))
    return " ".join(pieces)


def build_request(audio_file: Path) -> TranscriptionRequest:
    try:
        audio_bytes = audio_file.read_bytes()
    except OSError as exc:
        raise CaptureIOError(f"Cannot read audio file {audio_file}: {exc}") from exc
    audio_format = audio_file.suffix.lstrip(".") or DEFAULT_FORMAT
    return TranscriptionRequest(
        audio_base64=base64.b64encode(audio_bytes).decode("ascii"),
        audio_format=audio_format,
    )


def parse_response(body: str) -> TranscriptionResponse:
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError(f"Response is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Response is not a JSON object")

    transcript = data.get("transcript")
    if not isinstance(transcript, str):
        raise MalformedResponseError("Response has no 'transcript' string")

    credits = data.get("remainingCredits")
    if isinstance(credits, bool) or not isinstance(credits, int):
        raise MalformedResponseError("Response has no integer 'remainingCredits'")
    return TranscriptionResponse(transcript=transcript, remaining_credits=credits)


class HttpTranscriptionClient:
    def __init__(
        self,
        endpoint: str,
        api_key: Callable[[], Optional[str]],
        service_key: str = "",
        timeout_s: float = REQUEST_TIMEOUT_S,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Args:
            endpoint: URL of the transcription function.
            api_key: Returns the user's API key; read on every call so a
                key saved in the settings applies immediately.
            service_key: Bearer token of the backing service.
            timeout_s: Deadline for the whole request, body included.
            http_client: Optional preconfigured client (tests inject a
                MockTransport-backed one).
        """
        self._endpoint = endpoint
        self._api_key = api_key
        self._service_key = service_key
        self._timeout_s = timeout_s
        self._client = http_client or httpx.Client(timeout=timeout_s)

    def has_api_key(self) -> bool:
        return bool((self._api_key() or "").strip())

    def transcribe(self, audio_file: Path) -> TranscriptionResponse:
        """
        Transcribe ``audio_file``. Never deletes the file.

        Raises:
            MissingCredentialError: no API key; no request is made
            TranscriptionTimeoutError: no complete response within the timeout
            TranscriptionNetworkError: connection-level failure
            TranscriptionServiceError: non-success HTTP status
            MalformedResponseError: success body has the wrong shape
        """
        api_key = (self._api_key() or "").strip()
        if not api_key:
            raise MissingCredentialError()

        request = build_request(audio_file)
        logger.info("Transcribing %s (%s)", audio_file.name, request.audio_format)
        deadline = time.monotonic() + self._timeout_s
        try:
            with self._client.stream(
                "POST",
                self._endpoint,
                json=request.to_json(),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._service_key}",
                    API_KEY_HEADER: api_key,
                },
                timeout=self._timeout_s,
            ) as response:
                self._check_deadline(deadline)
                chunks = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    self._check_deadline(deadline)
                status_code = response.status_code
                is_success = response.is_success
                encoding = response.charset_encoding or "utf-8"
        except httpx.TimeoutException as exc:
            raise self._timeout_error() from exc
        except httpx.HTTPError as exc:
            raise TranscriptionNetworkError(f"Network error: {exc}") from exc

        body = b"".join(chunks).decode(encoding, errors="replace")
        logger.debug("Raw API response: %s", body)
        if not is_success:
            raise TranscriptionServiceError(body, status_code=status_code)

        parsed = parse_response(body)
        return TranscriptionResponse(
            transcript=normalize_transcript(parsed.transcript),
            remaining_credits=parsed.remaining_credits,
        )

    def close(self) -> None:
        self._client.close()

    def _check_deadline(self, deadline: float) -> None:
        # httpx timeouts are per phase; a server trickling bytes never trips them.
        if time.monotonic() > deadline:
            raise self._timeout_error()

    def _timeout_error(self) -> TranscriptionTimeoutError:
        return TranscriptionTimeoutError(f"No response within {self._timeout_s:g}s")
