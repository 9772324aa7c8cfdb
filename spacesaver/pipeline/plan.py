from typing import Iterable, List, Sequence
from pydantic import ValidationError
from spacesaver.domain.errors import PlanError
from spacesaver.domain.models import BatchPlan, CompressionPlugin, MAX_POOL_SIZE, MIN_POOL_SIZE


def validate_pool_size(pool_size: int) -> int:
    if isinstance(pool_size, bool) or not isinstance(pool_size, int):
        raise PlanError(f"Pool size must be an integer, got {pool_size!r}")
    if not MIN_POOL_SIZE <= pool_size <= MAX_POOL_SIZE:
        raise PlanError(f"Pool size must be between {MIN_POOL_SIZE} and {MAX_POOL_SIZE}, got {pool_size}")
    return pool_size


def resolve_plugin_order(configured: Sequence[str], catalog: Iterable[CompressionPlugin]) -> List[str]:
    """Active plugins in priority order.

    An empty configured order means every catalog plugin in catalog order.
    Names the catalog does not know are rejected.
    """
    catalog_names = [plugin.name for plugin in catalog]
    if not configured:
        return catalog_names
    if catalog_names:
        unknown = [name for name in configured if name not in catalog_names]
        if unknown:
            raise PlanError(f"Unknown compression plugin: {unknown[0]}")
    return list(configured)


def build_plan(paths: Sequence[str], plugin_order: Sequence[str], pool_size: int) -> BatchPlan:
    """Freezes a selection into a BatchPlan, rejecting bad input before any run."""
    if not paths:
        raise PlanError("Cannot build a batch plan without any selected files")
    validate_pool_size(pool_size)
    try:
        return BatchPlan(paths=tuple(paths), plugin_order=tuple(plugin_order), pool_size=pool_size)
    except ValidationError as e:
        raise PlanError(f"Invalid batch plan: {e.errors()[0]['msg']}") from e
