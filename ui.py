"""PySide6 main window and the sink that feeds it."""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from config import JsonConfigStore
from errors import BUSY
from models import SessionState
from sinks import ClipboardSink

_BUTTON_STYLE = (
    "border-radius: 50px; min-width: 100px; min-height: 100px;"
    "max-width: 100px; max-height: 100px; font-size: 32px; background-color: {color};"
)
COLOR_IDLE = "#2196F3"       # blue
COLOR_RECORDING = "#f44336"  # red
COLOR_BUSY = "#9E9E9E"       # grey


class QtSink(QObject):
    """Re-emits session events as signals so widgets update on the UI thread."""

    state_signal = Signal(str)
    status_signal = Signal(str)
    transcript_signal = Signal(str)
    error_signal = Signal(str, str)

    def on_state_changed(self, state: SessionState) -> None:
        self.state_signal.emit(state.value)

    def on_status(self, message: str) -> None:
        self.status_signal.emit(message)

    def on_transcript(self, text: str) -> None:
        self.transcript_signal.emit(text)

    def on_error(self, kind: str, message: str) -> None:
        self.error_signal.emit(kind, message)


class MainWindow(QWidget):
    def __init__(
        self,
        sink: QtSink,
        on_toggle: Callable[[], object],
        config_store: JsonConfigStore,
        clipboard: ClipboardSink,
        on_close: Callable[[], None],
    ) -> None:
        super().__init__()
        self._on_toggle = on_toggle
        self._config_store = config_store
        self._clipboard = clipboard
        self._on_close = on_close

        self.setWindowTitle("Whisprer")
        self.resize(360, 420)

        self._record_button = QPushButton("🎙")
        self._record_button.setCursor(Qt.CursorShape.PointingHandCursor)
        self._record_button.clicked.connect(self._on_record_clicked)
        self._set_button(COLOR_IDLE, "🎙")

        self._status_label = QLabel("Click the microphone to start recording")
        self._status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._status_label.setStyleSheet("font-size: 14px; color: #666;")

        self._transcript_area = QPlainTextEdit()
        self._transcript_area.setPlaceholderText("Transcript appears here")

        copy_button = QPushButton("Copy")
        copy_button.clicked.connect(self._on_copy_clicked)
        clear_button = QPushButton("Clear")
        clear_button.clicked.connect(self._transcript_area.clear)
        settings_button = QPushButton("Settings")
        settings_button.clicked.connect(self._open_settings)

        buttons = QHBoxLayout()
        buttons.addWidget(copy_button)
        buttons.addWidget(clear_button)
        buttons.addWidget(settings_button)

        layout = QVBoxLayout()
        layout.setSpacing(20)
        layout.addWidget(self._record_button, alignment=Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._status_label)
        layout.addWidget(self._transcript_area)
        layout.addLayout(buttons)
        self.setLayout(layout)

        sink.state_signal.connect(self._on_state_ui)
        sink.status_signal.connect(self._status_label.setText)
        sink.transcript_signal.connect(self._on_transcript_ui)
        sink.error_signal.connect(self._on_error_ui)

    # ------------------------------------------------------------------
    # UI thread handlers
    # ------------------------------------------------------------------

    def _on_state_ui(self, state: str) -> None:
        if state == SessionState.RECORDING.value:
            self._set_button(COLOR_RECORDING, "⏹")
        elif state == SessionState.TRANSCRIBING.value:
            self._set_button(COLOR_BUSY, "⏳")
        else:
            self._set_button(COLOR_IDLE, "🎙")

    def _on_transcript_ui(self, text: str) -> None:
        self._transcript_area.setPlainText(text)

    def _on_error_ui(self, kind: str, message: str) -> None:
        self._status_label.setText(message)
        if kind != BUSY:
            QMessageBox.warning(self, "Whisprer", message)

    def _on_record_clicked(self) -> None:
        self._on_toggle()

    def _on_copy_clicked(self) -> None:
        if self._clipboard.copy(self._transcript_area.toPlainText()):
            QMessageBox.information(self, "Success", "Text copied to clipboard!")

    def _open_settings(self) -> None:
        value, ok = QInputDialog.getText(
            self,
            "Settings",
            "Whisprer API Key",
            QLineEdit.EchoMode.Normal,
            self._config_store.get_api_key() or "",
        )
        if not ok:
            return
        api_key = value.strip()
        if not api_key:
            QMessageBox.critical(self, "Error", "API Key cannot be empty!")
            return
        try:
            self._config_store.set_api_key(api_key)
        except OSError as exc:
            QMessageBox.critical(self, "Error", f"Failed to save API Key: {exc}")
            return
        QMessageBox.information(self, "Success", "API Key saved successfully!")

    def _set_button(self, color: str, glyph: str) -> None:
        self._record_button.setText(glyph)
        self._record_button.setStyleSheet(_BUTTON_STYLE.format(color=color))

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        self._on_close()
        super().closeEvent(event)
