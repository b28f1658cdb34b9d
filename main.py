"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter
from recorder import SoundDeviceRecorder
from session_coordinator import SessionCoordinator
from sinks import ClipboardSink, ConsoleSink
from transcriber import HttpTranscriptionClient

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


def build_coordinator(config_store: JsonConfigStore) -> SessionCoordinator:
    client = HttpTranscriptionClient(
        endpoint=config_store.get_endpoint(),
        api_key=config_store.get_api_key,
        service_key=config_store.get_service_key(),
    )
    return SessionCoordinator(
        capture=SoundDeviceRecorder(),
        client=client,
        recordings_dir=config_store.get_recordings_dir(),
    )


def run_headless(config_store: JsonConfigStore) -> int:
    coordinator = build_coordinator(config_store)
    coordinator.add_sink(ConsoleSink())
    coordinator.add_sink(ClipboardSink())
    hotkey = GlobalHotkeyAdapter(config_store.get_hotkey())

    try:
        hotkey.start(on_toggle=coordinator.toggle)
    except (RuntimeError, ValueError) as exc:
        print(f"Error: hotkey unavailable: {exc}", file=sys.stderr)
        return 1

    if not config_store.get_api_key():
        print(f"Warning: API key not set; add it to {config_store.path}", file=sys.stderr)
    print(f"Press {hotkey.hotkey} to toggle recording, Ctrl+C to quit.")
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    try:
        stop.wait()
    finally:
        hotkey.stop()
        coordinator.shutdown()
    return 0


def run_gui(config_store: JsonConfigStore, verbose: bool) -> int:
    try:
        from PySide6.QtWidgets import QApplication

        from ui import MainWindow, QtSink
    except Exception as exc:  # pragma: no cover
        raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

    app = QApplication(sys.argv)
    coordinator = build_coordinator(config_store)
    clipboard = ClipboardSink()
    qt_sink = QtSink()
    coordinator.add_sink(clipboard)
    coordinator.add_sink(qt_sink)
    if verbose:
        coordinator.add_sink(ConsoleSink(sys.stderr))

    hotkey = GlobalHotkeyAdapter(config_store.get_hotkey())

    def _close() -> None:
        hotkey.stop()
        coordinator.shutdown()

    window = MainWindow(
        sink=qt_sink,
        on_toggle=coordinator.toggle,
        config_store=config_store,
        clipboard=clipboard,
        on_close=_close,
    )
    window.show()

    try:
        hotkey.start(on_toggle=coordinator.toggle)
    except (RuntimeError, ValueError) as exc:
        logger.warning("Hotkey disabled: %s", exc)
        qt_sink.on_status(f"Hotkey disabled: {exc}")

    return app.exec()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Toggle-to-talk dictation to the clipboard")
    parser.add_argument("--headless", action="store_true", help="Run without a window (hotkey only)")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    parser.add_argument("--verbose", action="store_true", help="Show detailed progress")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    config_store = JsonConfigStore(path=args.config)
    if args.headless:
        return run_headless(config_store)
    return run_gui(config_store, args.verbose)


if __name__ == "__main__":
    raise SystemExit(main())
