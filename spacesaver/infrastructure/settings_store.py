"""Key/value store for user settings that outlive one session.

Holds the saved scan roots and the scan filter. Values are kept in a single
YAML file; a corrupt or unreadable file never breaks the caller, it only
yields the supplied default.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict

import yaml

SCAN_PATHS_KEY = "scan_paths"
FILTER_CONFIG_KEY = "filter_config"
DEFAULT_STATE_PATH = Path("~/.config/spacesaver/state.yaml")


class SettingsStore:
    """Thread-safe YAML-backed store with load/save semantics."""

    def __init__(self, path: Path = DEFAULT_STATE_PATH):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file is not a mapping: {self.path}")
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".state-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=True, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, key: str, default: Any = None) -> Any:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, ValueError, yaml.YAMLError) as exc:
                self._logger.error(f"Error loading settings ({key}) from {self.path}: {exc}")
                return default
        return data.get(key, default)

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, ValueError, yaml.YAMLError) as exc:
                self._logger.warning(f"Discarding unreadable settings file {self.path}: {exc}")
                data = {}
            data[key] = value
            self._write_all(data)
        self._logger.debug(f"Saved setting {key} to {self.path}")

    def remove(self, key: str) -> bool:
        with self._lock:
            try:
                data = self._read_all()
            except (OSError, ValueError, yaml.YAMLError) as exc:
                self._logger.error(f"Error removing setting ({key}) from {self.path}: {exc}")
                return False
            if key not in data:
                return False
            del data[key]
            self._write_all(data)
        return True
