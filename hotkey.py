"""Global hotkey trigger source based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from config import DEFAULT_HOTKEY

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class GlobalHotkeyAdapter:
    """Emits one toggle per activation of ``hotkey`` (pynput syntax)."""

    def __init__(self, hotkey: str = DEFAULT_HOTKEY) -> None:
        self._hotkey = hotkey
        self._listener: Optional[object] = None
        self._lock = threading.Lock()

    @property
    def hotkey(self) -> str:
        return self._hotkey

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")

        def _on_activate() -> None:
            try:
                on_toggle()
            except Exception:
                logger.exception("Hotkey toggle failed")

        with self._lock:
            if self._listener is not None:
                return
            listener = keyboard.GlobalHotKeys({self._hotkey: _on_activate})
            listener.start()
            self._listener = listener
        logger.info("Global shortcut active: %s", self._hotkey)

    def stop(self) -> None:
        with self._lock:
            listener = self._listener
            self._listener = None
        if listener is not None:
            listener.stop()
