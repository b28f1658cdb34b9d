"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

API_KEY = "api_key"
HOTKEY = "hotkey"
ENDPOINT = "endpoint"
SERVICE_KEY = "service_key"
RECORDINGS_DIR = "recordings_dir"

API_KEY_ENV = "WHISPRER_API_KEY"
SERVICE_KEY_ENV = "WHISPRER_SERVICE_KEY"

DEFAULT_HOTKEY = "<ctrl>+<alt>+<shift>+p"
DEFAULT_ENDPOINT = "https://acqfqnnnnhfotppqortg.supabase.co/functions/v1/transcribe-audio"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "whisprer" / "config.json"

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is None:
            return None
        return str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def get_api_key(self) -> Optional[str]:
        """Stored key, else the environment; blank values count as absent."""
        for value in (self.get(API_KEY), os.getenv(API_KEY_ENV)):
            if value and value.strip():
                return value.strip()
        return None

    def set_api_key(self, key: str) -> None:
        self.set(API_KEY, key.strip())

    def get_hotkey(self) -> str:
        return self.get(HOTKEY) or DEFAULT_HOTKEY

    def set_hotkey(self, hotkey: str) -> None:
        self.set(HOTKEY, hotkey)

    def get_endpoint(self) -> str:
        return self.get(ENDPOINT) or DEFAULT_ENDPOINT

    def get_service_key(self) -> str:
        return self.get(SERVICE_KEY) or os.getenv(SERVICE_KEY_ENV, "")

    def get_recordings_dir(self) -> Path:
        value = self.get(RECORDINGS_DIR)
        return Path(value).expanduser() if value else Path(tempfile.gettempdir())

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
