"""Adapter for the external compression engine.

The engine is a separate executable. Every call runs `<engine> <command>`,
writes one JSON request to stdin and reads one JSON response from stdout:

- get_compression_plugins   {}                                   -> [plugin, ...]
- scan_compressible_files   {paths, active_plugins, filter}      -> {compressible, rejected}
- compress_files_in_place   {file_paths, plugin_orders}          -> [result, ...]
"""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from spacesaver.domain.errors import EngineCommandError, EngineUnavailableError, ScanError
from spacesaver.domain.models import (
    CompressionPlugin,
    FilterConfig,
    InPlaceCompressionResult,
    ScanResult,
)


class CompressionEngine(Protocol):
    """What the workflow needs from an engine."""

    def get_compression_plugins(self) -> List[CompressionPlugin]:
        ...

    def scan_compressible_files(
        self,
        paths: List[str],
        active_plugins: List[str],
        filter_config: Optional[FilterConfig] = None,
    ) -> ScanResult:
        ...

    def compress_one(self, path: str, plugin_order: List[str]) -> InPlaceCompressionResult:
        ...


class SubprocessEngine:
    """Wrapper around the engine executable (JSON over stdin/stdout)."""

    def __init__(
        self,
        engine_path: str = "space-saver-engine",
        timeout_s: Optional[float] = 600.0,
        item_timeout_s: Optional[float] = None,
    ):
        self.engine_path = engine_path
        self.timeout_s = timeout_s
        # Deadline for one compress call; subprocess.run kills the child when it passes
        self.item_timeout_s = item_timeout_s
        self.logger = logging.getLogger(__name__)

    def _invoke(self, command: str, payload: Dict[str, Any], timeout_s: Optional[float] = None) -> Any:
        cmd = [self.engine_path, command]
        timeout_s = timeout_s if timeout_s is not None else self.timeout_s
        try:
            result = subprocess.run(
                cmd,
                input=json.dumps(payload),
                capture_output=True,
                text=True,
                timeout=timeout_s,
            )
        except FileNotFoundError as e:
            raise EngineUnavailableError(f"Engine executable not found: {self.engine_path}") from e
        except PermissionError as e:
            raise EngineUnavailableError(f"Engine executable not runnable: {self.engine_path}") from e
        except subprocess.TimeoutExpired as e:
            raise EngineCommandError(f"{command} timed out after {timeout_s:g}s") from e

        if result.returncode != 0:
            message = (result.stderr or "").strip() or f"exit code {result.returncode}"
            raise EngineCommandError(f"{command} failed: {message}")

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise EngineCommandError(f"{command} returned invalid JSON: {e}") from e

    def get_compression_plugins(self) -> List[CompressionPlugin]:
        data = self._invoke("get_compression_plugins", {})
        try:
            return [CompressionPlugin(**entry) for entry in data]
        except (TypeError, ValidationError) as e:
            raise EngineCommandError(f"Unexpected plugin catalog: {e}") from e

    def scan_compressible_files(
        self,
        paths: List[str],
        active_plugins: List[str],
        filter_config: Optional[FilterConfig] = None,
    ) -> ScanResult:
        payload = {
            "paths": list(paths),
            "active_plugins": list(active_plugins),
            "filter": filter_config.model_dump() if filter_config is not None else None,
        }
        try:
            data = self._invoke("scan_compressible_files", payload)
            return ScanResult(**data)
        except EngineCommandError as e:
            raise ScanError(str(e)) from e
        except (TypeError, ValidationError) as e:
            raise ScanError(f"Unexpected scan response: {e}") from e

    def compress_one(self, path: str, plugin_order: List[str]) -> InPlaceCompressionResult:
        """Compresses one file in place.

        Ordinary per-file failures come back as a failed result; only an
        unreachable engine raises.
        """
        payload = {"file_paths": [path], "plugin_orders": list(plugin_order)}
        try:
            data = self._invoke("compress_files_in_place", payload, timeout_s=self.item_timeout_s)
        except EngineCommandError as e:
            self.logger.warning(f"Engine error for {path}: {e}")
            return InPlaceCompressionResult.failure(path, str(e))

        if not isinstance(data, list) or len(data) != 1:
            return InPlaceCompressionResult.failure(path, "Engine returned an unexpected result count")
        try:
            result = InPlaceCompressionResult(**data[0])
        except (TypeError, ValidationError) as e:
            return InPlaceCompressionResult.failure(path, f"Unexpected engine result: {e}")

        if result.path != path:
            # The engine reports the compressed file's path, which may have a new extension
            result = result.model_copy(update={"path": path, "output_path": result.path})
        return result
