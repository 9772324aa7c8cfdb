from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_POOL_SIZE = 1
MAX_POOL_SIZE = 20


class Step(str, Enum):
    SCAN = "SCAN"
    CONFIRM = "CONFIRM"
    PROCESS = "PROCESS"


class FilterConfig(BaseModel):
    """Scan filter passed through to the engine unmodified."""
    min_size: Optional[int] = Field(default=None, ge=0)
    max_size: Optional[int] = Field(default=None, ge=0)
    extensions: Optional[List[str]] = None
    file_pattern: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.min_size is None
            and self.max_size is None
            and not self.extensions
            and not self.file_pattern
        )


class CompressionPlugin(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    version: str = ""


class CompressibleFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    original_size: int = Field(ge=0)
    estimated_compressed_size: int = Field(ge=0)
    estimated_savings: int = Field(ge=0)
    plugin_name: str
    reason: Optional[str] = None


class RejectionReason(BaseModel):
    model_config = ConfigDict(frozen=True)

    plugin_name: str
    reason: str


class RejectedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    size: int = Field(default=0, ge=0)
    extension: str = ""
    rejection_reasons: List[RejectionReason] = Field(default_factory=list)


class ScanResult(BaseModel):
    compressible: List[CompressibleFile] = Field(default_factory=list)
    rejected: List[RejectedFile] = Field(default_factory=list)

    @property
    def total_original_size(self) -> int:
        return sum(f.original_size for f in self.compressible)

    @property
    def total_estimated_savings(self) -> int:
        return sum(f.estimated_savings for f in self.compressible)


class InPlaceCompressionResult(BaseModel):
    """Outcome of compressing one file in place (original kept as backup)."""

    model_config = ConfigDict(frozen=True)

    success: bool
    path: str
    output_path: Optional[str] = None  # set when the engine renamed the file
    backup_path: Optional[str] = None
    original_size: Optional[int] = Field(default=None, ge=0)
    compressed_size: Optional[int] = Field(default=None, ge=0)
    savings: Optional[int] = Field(default=None, ge=0)
    plugin_name: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fill_derived_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("success") and not data.get("error"):
            data["error"] = "Unknown error"
        original = data.get("original_size")
        compressed = data.get("compressed_size")
        if data.get("savings") is None and original is not None and compressed is not None:
            data["savings"] = max(0, original - compressed)
        return data

    @classmethod
    def failure(cls, path: str, error: str) -> "InPlaceCompressionResult":
        return cls(success=False, path=path, error=error)


class BatchPlan(BaseModel):
    """Frozen snapshot of one compression run."""

    model_config = ConfigDict(frozen=True)

    paths: Tuple[str, ...]
    plugin_order: Tuple[str, ...] = ()
    pool_size: int = Field(default=4, ge=MIN_POOL_SIZE, le=MAX_POOL_SIZE)

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("A batch plan needs at least one path")
        seen = set()
        for path in v:
            if path in seen:
                raise ValueError(f"Duplicate path in batch plan: {path}")
            seen.add(path)
        return v

    def __len__(self) -> int:
        return len(self.paths)


class PathValidationResult(BaseModel):
    is_valid: bool
    is_duplicate: bool = False
    contained_by: List[str] = Field(default_factory=list)
    contains: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ProgressSnapshot(BaseModel):
    """Read-only view of a BatchProgress at one instant."""

    model_config = ConfigDict(frozen=True)

    total: int
    cursor: int
    in_flight: Tuple[str, ...] = ()
    completed_count: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    total_original_size: int = 0
    total_compressed_size: int = 0
    total_savings: int = 0
    cancelled: bool = False
    finished: bool = False

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.total
