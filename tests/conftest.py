import threading
import pytest
import yaml
from typing import List, Optional
from spacesaver.config.models import AppConfig, DemoConfig
from spacesaver.domain.models import (
    CompressibleFile,
    CompressionPlugin,
    FilterConfig,
    InPlaceCompressionResult,
    RejectedFile,
    RejectionReason,
    ScanResult,
)
from spacesaver.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "pool_size": 3,
            "plugin_order": [],
            "engine_path": "space-saver-engine",
            "state_path": str(tmp_path / "state.yaml"),
            "log_path": str(tmp_path / "logs" / "spacesaver.log"),
            "debug": False,
        },
        scan={"scan_paths": [], "filter": {}},
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file pointing state and logs into tmp_path."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "spacesaver.yaml"

    content = {
        'general': {
            'pool_size': 2,
            'plugin_order': [],
            'state_path': str(tmp_path / "state.yaml"),
            'log_path': str(tmp_path / "logs" / "spacesaver.log"),
            'debug': False,
        },
        'scan': {
            'scan_paths': [],
            'filter': {'min_size': None, 'max_size': None, 'extensions': None, 'file_pattern': None},
        },
        'ui': {
            'recent_results_max_items': 5,
            'in_flight_max_display': 8,
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

@pytest.fixture
def fast_demo_config():
    """Demo engine settings with no latency, no random failures and a fixed seed."""
    return DemoConfig(
        seed=7,
        files=12,
        rejected=3,
        failure_rate=0.0,
        latency={"min_ms": 0, "max_ms": 0},
    )

@pytest.fixture
def demo_config_path(tmp_path):
    """Demo YAML with zero latency, for CLI runs."""
    path = tmp_path / "demo.yaml"
    with open(path, 'w') as f:
        yaml.dump({'demo': {'seed': 3, 'files': 8, 'rejected': 2, 'failure_rate': 0.0,
                            'latency': {'min_ms': 0, 'max_ms': 0}}}, f)
    return path

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def recorded_events(event_bus):
    """Records every event published on event_bus, in publish order."""
    events = []
    lock = threading.Lock()
    original_publish = event_bus.publish

    def publish(event):
        with lock:
            events.append(event)
        original_publish(event)

    event_bus.publish = publish
    return events

# ============================================================================
# Engine Fixtures
# ============================================================================

PLUGINS = [
    CompressionPlugin(name="WebP Converter", description="Converts PNG, JPEG to WebP", version="1.0.0"),
    CompressionPlugin(name="Image ZIP to WebP ZIP", description="Converts images inside ZIP archives", version="1.0.0"),
]


def make_candidate(path: str, size: int = 1000, savings: int = 400, plugin: str = "WebP Converter") -> CompressibleFile:
    return CompressibleFile(
        path=path,
        original_size=size,
        estimated_compressed_size=size - savings,
        estimated_savings=savings,
        plugin_name=plugin,
    )


def success_result(path: str, original: int = 1000, compressed: int = 600) -> InPlaceCompressionResult:
    return InPlaceCompressionResult(
        success=True,
        path=path,
        backup_path=f"{path}.backup",
        original_size=original,
        compressed_size=compressed,
        plugin_name="WebP Converter",
    )


class FakeEngine:
    """In-memory engine: scan returns the given candidates, compress succeeds
    unless the path is listed in `failing`."""

    def __init__(self, paths: Optional[List[str]] = None, failing: Optional[dict] = None, scan_error=None):
        self.paths = paths if paths is not None else [f"/photos/img{i}.png" for i in range(5)]
        self.failing = failing or {}
        self.scan_error = scan_error
        self.scan_calls = []
        self.compress_calls = []
        self._lock = threading.Lock()

    def get_compression_plugins(self):
        return list(PLUGINS)

    def scan_compressible_files(self, paths, active_plugins, filter_config: Optional[FilterConfig] = None):
        self.scan_calls.append((list(paths), list(active_plugins), filter_config))
        if self.scan_error is not None:
            raise self.scan_error
        return ScanResult(
            compressible=[make_candidate(p) for p in self.paths],
            rejected=[RejectedFile(
                path="/photos/doc.pdf",
                size=10,
                extension="pdf",
                rejection_reasons=[RejectionReason(plugin_name="WebP Converter", reason="File extension not supported")],
            )],
        )

    def compress_one(self, path, plugin_order):
        with self._lock:
            self.compress_calls.append((path, list(plugin_order)))
        if path in self.failing:
            return InPlaceCompressionResult.failure(path, self.failing[path])
        return success_result(path)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def engine_factory():
    """Returns the FakeEngine class so tests can build engines with custom paths/failures."""
    return FakeEngine


@pytest.fixture
def make_result():
    return success_result


@pytest.fixture
def make_file():
    return make_candidate
