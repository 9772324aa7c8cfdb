"""Exception taxonomy for the scan → confirm → process workflow.

Per-item compression failures are not exceptions: they are recorded as
failed `InPlaceCompressionResult` entries and never leave the worker loop.
"""


class SpaceSaverError(Exception):
    """Base class for all errors raised by spacesaver."""


class ScanError(SpaceSaverError):
    """The external scan call failed; no batch plan is created."""


class SelectionError(SpaceSaverError):
    """User-facing validation failure (empty selection, no scan paths)."""


class PlanError(SpaceSaverError):
    """Batch plan precondition violated before a run starts."""


class WorkflowStateError(SpaceSaverError):
    """Transition not permitted from the current workflow step."""


class PoolError(SpaceSaverError):
    """Internal worker pool failure, distinct from per-item failures."""


class EngineUnavailableError(SpaceSaverError):
    """The external engine could not be reached at all."""


class EngineCommandError(SpaceSaverError):
    """The external engine answered with an error or unreadable output."""
