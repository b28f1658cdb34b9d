"""Result sinks: console lines and the system clipboard."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from models import SessionState

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

logger = logging.getLogger(__name__)


class ConsoleSink:
    """Headless rendering: one prefixed line per event."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def on_state_changed(self, state: SessionState) -> None:
        self._write(f"[state] {state.value}")

    def on_status(self, message: str) -> None:
        self._write(f"[status] {message}")

    def on_transcript(self, text: str) -> None:
        self._write(f"[transcript] {text}")

    def on_error(self, kind: str, message: str) -> None:
        self._write(f"[error] {kind}: {message}")

    def _write(self, line: str) -> None:
        stream = self._stream or sys.stdout
        print(line, file=stream, flush=True)


class ClipboardSink:
    """Copies each non-empty transcript to the system clipboard."""

    def __init__(self) -> None:
        self.last_copied: Optional[str] = None

    def copy(self, text: str) -> bool:
        if not text.strip():
            return False
        if pyperclip is None:
            logger.warning("pyperclip is not installed; clipboard copy skipped")
            return False
        try:
            pyperclip.copy(text)
        except Exception as exc:
            logger.warning("Clipboard copy failed: %s", exc)
            return False
        self.last_copied = text
        return True

    def on_transcript(self, text: str) -> None:
        if self.copy(text):
            logger.info("Transcript copied to clipboard")

    def on_state_changed(self, state: SessionState) -> None:
        pass

    def on_status(self, message: str) -> None:
        pass

    def on_error(self, kind: str, message: str) -> None:
        pass
