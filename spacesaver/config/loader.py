import yaml
from pathlib import Path
from .models import AppConfig, DemoConfig

def _read_yaml(config_path: Path) -> dict:
    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return data

def load_config(config_path: Path, required: bool = True) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model.

    With required=False a missing file yields the built-in defaults.
    """
    if not config_path.exists():
        if required:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return AppConfig()

    data = _read_yaml(config_path)

    # Accept a bare list under scan: as the scan paths
    scan = data.get("scan")
    if isinstance(scan, list):
        data["scan"] = {"scan_paths": scan}

    return AppConfig(**data)

def load_demo_config(config_path: Path) -> DemoConfig:
    """Loads demo YAML config; a missing file means demo defaults."""
    if not config_path.exists():
        return DemoConfig()
    data = _read_yaml(config_path)
    return DemoConfig(**data.get("demo", data))
