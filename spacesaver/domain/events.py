"""Domain events for the scan → confirm → process workflow.

Events flow through the EventBus, decoupling the workflow and worker pool
from the terminal UI. Worker events are published from worker threads.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from .models import InPlaceCompressionResult, Step


class Event(BaseModel):
    """Base class for all domain events.

    Events are validated Pydantic models. They are not frozen by default.
    """

    pass


class StepChanged(Event):
    """Emitted on every workflow transition."""

    previous: Step
    current: Step


class ScanStarted(Event):
    """Emitted when the external scan is requested."""

    paths: List[str]
    active_plugins: List[str] = Field(default_factory=list)


class ScanFinished(Event):
    """Emitted after a successful scan with summary counters."""

    compressible: int
    rejected: int
    total_original_size: int = 0
    total_estimated_savings: int = 0


class ScanFailed(Event):
    """Emitted when the scan call fails; the Scan step is aborted."""

    error_message: str


class SelectionChanged(Event):
    """Emitted when the set of selected files changes."""

    selected: int
    total: int


class BatchStarted(Event):
    """Emitted once per run, before the first claim."""

    total: int
    pool_size: int
    worker_count: int


class ItemStarted(Event):
    """Emitted when a worker has claimed a path and dispatches it."""

    path: str
    worker_id: int
    index: int


class ItemFinished(Event):
    """Emitted after a result has been committed (success or failure).

    `completed_count` is the count at commit time; with several workers the
    events may be delivered out of commit order.
    """

    result: InPlaceCompressionResult
    worker_id: int
    completed_count: int
    total: int


class BatchCancelRequested(Event):
    """Emitted when cooperative cancellation of a run is requested."""

    pass


class BatchFinished(Event):
    """Emitted when every worker has terminated."""

    total: int
    completed: int
    succeeded: int
    failed: int
    total_savings: int = 0
    cancelled: bool = False
    elapsed_seconds: Optional[float] = None


class PoolFailed(Event):
    """Emitted when a run dies from an internal (pool-level) error."""

    error_message: str


class ActionMessage(Event):
    """Event for user action feedback (displayed in UI for 60s)."""

    message: str
