from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from spacesaver.domain.models import FilterConfig, MAX_POOL_SIZE, MIN_POOL_SIZE

class GeneralConfig(BaseModel):
    pool_size: int = Field(default=4, ge=MIN_POOL_SIZE, le=MAX_POOL_SIZE)
    plugin_order: List[str] = Field(default_factory=list)  # empty = engine catalog order
    engine_path: str = "space-saver-engine"
    engine_timeout_s: float = Field(default=600.0, gt=0)
    item_timeout_s: Optional[float] = Field(default=None, gt=0)
    state_path: str = "~/.config/spacesaver/state.yaml"
    log_path: str = "/tmp/spacesaver/spacesaver.log"
    debug: bool = False

    @field_validator("plugin_order")
    @classmethod
    def validate_plugin_order(cls, v: List[str]) -> List[str]:
        cleaned = [name.strip() for name in v if name and name.strip()]
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("plugin_order must not list a plugin twice")
        return cleaned

class ScanConfig(BaseModel):
    scan_paths: List[str] = Field(default_factory=list)
    filter: FilterConfig = Field(default_factory=FilterConfig)

    @model_validator(mode="after")
    def validate_size_bounds(self):
        f = self.filter
        if f.min_size is not None and f.max_size is not None and f.min_size > f.max_size:
            raise ValueError("filter.min_size must be <= filter.max_size")
        return self

class UiConfig(BaseModel):
    """UI display configuration."""
    recent_results_max_items: int = Field(default=5, ge=1, le=20)
    in_flight_max_display: int = Field(default=8, ge=1, le=MAX_POOL_SIZE)

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    ui: UiConfig = Field(default_factory=UiConfig)

class DemoLatencyConfig(BaseModel):
    min_ms: float = Field(default=150.0, ge=0)
    max_ms: float = Field(default=1200.0, ge=0)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min_ms > self.max_ms:
            raise ValueError("latency.min_ms must be <= latency.max_ms")
        return self

class DemoRatioConfig(BaseModel):
    min: float = Field(default=0.15, ge=0.0, le=1.0)
    max: float = Field(default=0.45, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min > self.max:
            raise ValueError("ratio.min must be <= ratio.max")
        return self

class DemoConfig(BaseModel):
    seed: Optional[int] = None
    files: int = Field(default=40, ge=0)
    rejected: int = Field(default=6, ge=0)
    min_size_kb: int = Field(default=200, ge=1)
    max_size_kb: int = Field(default=20480, ge=1)
    failure_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    latency: DemoLatencyConfig = Field(default_factory=DemoLatencyConfig)
    ratio: DemoRatioConfig = Field(default_factory=DemoRatioConfig)

    @model_validator(mode="after")
    def validate_sizes(self):
        if self.min_size_kb > self.max_size_kb:
            raise ValueError("min_size_kb must be <= max_size_kb")
        return self
