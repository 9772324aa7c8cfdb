import logging
import random
import threading
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional

from spacesaver.config.models import DemoConfig
from spacesaver.domain.errors import ScanError
from spacesaver.domain.models import (
    CompressibleFile,
    CompressionPlugin,
    FilterConfig,
    InPlaceCompressionResult,
    RejectedFile,
    RejectionReason,
    ScanResult,
)

ADJECTIVES = [
    "amber", "ancient", "azure", "brisk", "calm", "cedar", "clean", "clear",
    "crimson", "distant", "drift", "ember", "faded", "frosty", "gentle",
    "glassy", "golden", "hidden", "hollow", "ivory", "lucky", "mellow",
    "misty", "navy", "plain", "quiet", "rapid", "rust", "sandy", "silent",
    "silver", "sleepy", "solar", "stone", "sunlit", "swift", "tiny", "vivid",
]

NOUNS = [
    "arch", "bay", "bluff", "bridge", "brook", "canyon", "cove", "crest",
    "delta", "dune", "field", "fjord", "forest", "gate", "glade", "glen",
    "grove", "harbor", "haven", "hill", "isle", "lagoon", "marsh", "mesa",
    "meadow", "peak", "pond", "ridge", "river", "shore", "summit", "trail",
]

DEMO_ERRORS = [
    "Permission denied",
    "No space left on device",
    "Unsupported image format",
    "Failed to decode image",
]


@dataclass(frozen=True)
class DemoPlugin:
    plugin: CompressionPlugin
    extensions: List[str]
    ratio_bias: float


DEMO_PLUGINS = [
    DemoPlugin(
        CompressionPlugin(
            name="Image ZIP to WebP ZIP",
            description="Converts images inside ZIP archives to WebP format",
            version="1.0.0",
        ),
        ["zip"],
        0.8,
    ),
    DemoPlugin(
        CompressionPlugin(
            name="WebP Converter",
            description="Converts PNG, JPEG, and other image formats to WebP",
            version="1.0.0",
        ),
        ["png", "jpg", "jpeg", "bmp", "tiff", "tif"],
        1.0,
    ),
    DemoPlugin(
        CompressionPlugin(
            name="Animated WebP Converter",
            description="Convert GIF to Animated WebP with lossy compression for better file size",
            version="1.0.0",
        ),
        ["gif"],
        1.3,
    ),
]

REJECTED_EXTENSIONS = ["pdf", "txt", "mp3", "webp", "docx"]


class DemoEngine:
    """Simulated engine: fabricated scan results, latency and failures, no file IO."""

    def __init__(
        self,
        demo_config: DemoConfig,
        sleep: Callable[[float], None] = time.sleep,
        item_timeout_s: Optional[float] = None,
    ):
        self.demo_config = demo_config
        self.item_timeout_s = item_timeout_s
        self.logger = logging.getLogger(__name__)
        self._rng = random.Random(demo_config.seed)
        self._rng_lock = threading.Lock()
        self._sleep = sleep
        self._known: Dict[str, CompressibleFile] = {}
        self._will_fail: Dict[str, str] = {}

    def _plugin_by_name(self, name: str) -> Optional[DemoPlugin]:
        return next((p for p in DEMO_PLUGINS if p.plugin.name == name), None)

    def _file_name(self, used: set, extension: str) -> str:
        base = f"{self._rng.choice(ADJECTIVES)}-{self._rng.choice(NOUNS)}"
        name = base
        suffix = 2
        while name in used:
            name = f"{base}-{suffix}"
            suffix += 1
        used.add(name)
        return f"{name}.{extension}"

    def _passes_filter(self, name: str, size: int, extension: str, filter_config: Optional[FilterConfig]) -> bool:
        if filter_config is None:
            return True
        if filter_config.min_size is not None and size < filter_config.min_size:
            return False
        if filter_config.max_size is not None and size > filter_config.max_size:
            return False
        if filter_config.extensions:
            wanted = {ext.lower().lstrip(".") for ext in filter_config.extensions}
            if extension not in wanted:
                return False
        if filter_config.file_pattern and filter_config.file_pattern not in name:
            return False
        return True

    def get_compression_plugins(self) -> List[CompressionPlugin]:
        return [p.plugin for p in DEMO_PLUGINS]

    def scan_compressible_files(
        self,
        paths: List[str],
        active_plugins: List[str],
        filter_config: Optional[FilterConfig] = None,
    ) -> ScanResult:
        unknown = [name for name in active_plugins if self._plugin_by_name(name) is None]
        if unknown:
            raise ScanError(f"Active plugin not found: {unknown[0]}")
        if not paths:
            return ScanResult()

        plugins = [self._plugin_by_name(name) for name in active_plugins] or list(DEMO_PLUGINS)
        cfg = self.demo_config
        compressible: List[CompressibleFile] = []
        rejected: List[RejectedFile] = []
        used: set = set()

        with self._rng_lock:
            for _ in range(cfg.files):
                root = self._rng.choice(paths)
                demo_plugin = self._rng.choice(plugins)
                extension = self._rng.choice(demo_plugin.extensions)
                name = self._file_name(used, extension)
                size = self._rng.randint(cfg.min_size_kb, cfg.max_size_kb) * 1024
                if not self._passes_filter(name, size, extension, filter_config):
                    continue
                ratio = min(0.95, self._rng.uniform(cfg.ratio.min, cfg.ratio.max) * demo_plugin.ratio_bias)
                estimated = int(size * (1.0 - ratio))
                path = str(PurePosixPath(root.replace("\\", "/")) / name)
                entry = CompressibleFile(
                    path=path,
                    original_size=size,
                    estimated_compressed_size=estimated,
                    estimated_savings=size - estimated,
                    plugin_name=demo_plugin.plugin.name,
                )
                compressible.append(entry)
                self._known[path] = entry
                if self._rng.random() < cfg.failure_rate:
                    self._will_fail[path] = self._rng.choice(DEMO_ERRORS)

            for _ in range(cfg.rejected):
                root = self._rng.choice(paths)
                extension = self._rng.choice(REJECTED_EXTENSIONS)
                name = self._file_name(used, extension)
                size = self._rng.randint(cfg.min_size_kb, cfg.max_size_kb) * 1024
                reason = "Already a WebP file" if extension == "webp" else "File extension not supported"
                rejected.append(RejectedFile(
                    path=str(PurePosixPath(root.replace("\\", "/")) / name),
                    size=size,
                    extension=extension,
                    rejection_reasons=[
                        RejectionReason(plugin_name=p.plugin.name, reason=reason) for p in plugins
                    ],
                ))

        self.logger.info(f"Demo scan: {len(compressible)} compressible, {len(rejected)} rejected")
        return ScanResult(compressible=compressible, rejected=rejected)

    def compress_one(self, path: str, plugin_order: List[str]) -> InPlaceCompressionResult:
        cfg = self.demo_config
        with self._rng_lock:
            latency_ms = self._rng.uniform(cfg.latency.min_ms, cfg.latency.max_ms)
            jitter = self._rng.uniform(0.9, 1.1)
        if self.item_timeout_s is not None and latency_ms / 1000.0 > self.item_timeout_s:
            # Simulated kill at the deadline: the file is left untouched
            self._sleep(self.item_timeout_s)
            return InPlaceCompressionResult.failure(path, f"Timed out after {self.item_timeout_s:g}s")
        if latency_ms > 0:
            self._sleep(latency_ms / 1000.0)

        entry = self._known.get(path)
        if entry is None:
            return InPlaceCompressionResult.failure(path, "File not found")
        error = self._will_fail.get(path)
        if error is not None:
            return InPlaceCompressionResult.failure(path, error)

        plugin_name = entry.plugin_name
        for name in plugin_order:
            demo_plugin = self._plugin_by_name(name)
            if demo_plugin and PurePosixPath(path).suffix.lstrip(".").lower() in demo_plugin.extensions:
                plugin_name = name
                break

        compressed = min(entry.original_size, int(entry.estimated_compressed_size * jitter))
        output_path = str(PurePosixPath(path).with_suffix(".webp")) if plugin_name != "Image ZIP to WebP ZIP" else None
        return InPlaceCompressionResult(
            success=True,
            path=path,
            output_path=output_path,
            backup_path=f"{path}.backup",
            original_size=entry.original_size,
            compressed_size=compressed,
            plugin_name=plugin_name,
        )
