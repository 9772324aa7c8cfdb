"""Live progress of one compression run.

A BatchProgress is mutated only by the worker tasks of the run that owns
it. Claiming (cursor read-and-increment) has its own lock; in-flight and
results bookkeeping share a second one.
"""

import threading
import time
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from spacesaver.domain.errors import PoolError
from spacesaver.domain.models import BatchPlan, InPlaceCompressionResult, ProgressSnapshot


class BatchProgress:
    def __init__(self, plan: BatchPlan):
        self.plan = plan
        self._claim_lock = threading.Lock()
        self._lock = threading.RLock()

        self._cursor = 0
        self._claims_closed = False
        self._claims_by_worker: Dict[int, int] = {}

        self._in_flight: Dict[str, int] = {}  # path -> worker_id, insertion ordered
        self._results: List[InPlaceCompressionResult] = []
        self.peak_in_flight = 0

        self.cancelled = False
        self.started_at = datetime.now()
        self._started_monotonic = time.monotonic()
        self._finished_monotonic: Optional[float] = None

    # --- Claiming ---

    def claim(self, worker_id: int) -> Optional[int]:
        """Reserves the next plan index, or None when nothing is left to claim."""
        with self._claim_lock:
            if self._claims_closed or self._cursor >= len(self.plan.paths):
                return None
            index = self._cursor
            self._cursor += 1
            self._claims_by_worker[worker_id] = self._claims_by_worker.get(worker_id, 0) + 1
            return index

    def close_claims(self, cancelled: bool = False) -> bool:
        """Stops further claims. Returns False if claims were already closed."""
        with self._claim_lock:
            if self._claims_closed:
                return False
            self._claims_closed = True
            if cancelled and self._cursor < len(self.plan.paths):
                self.cancelled = True
            return True

    # --- Bookkeeping ---

    def mark_in_flight(self, path: str, worker_id: int) -> None:
        with self._lock:
            if path in self._in_flight:
                raise PoolError(f"Path dispatched twice: {path}")
            if len(self._in_flight) >= self.plan.pool_size:
                raise PoolError(f"In-flight limit {self.plan.pool_size} exceeded by {path}")
            self._in_flight[path] = worker_id
            self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))

    def commit(self, path: str, result: InPlaceCompressionResult) -> int:
        """Moves a path from in-flight to results; returns the new completed count."""
        with self._lock:
            if len(self._results) >= len(self.plan.paths):
                raise PoolError(f"Progress is frozen, refusing result for {path}")
            if path not in self._in_flight:
                raise PoolError(f"Result for a path that is not in flight: {path}")
            del self._in_flight[path]
            self._results.append(result)
            return len(self._results)

    def discard(self, path: str) -> None:
        """Drops an in-flight path without a result (pool-level failure only)."""
        with self._lock:
            self._in_flight.pop(path, None)

    def mark_finished(self) -> None:
        with self._lock:
            if self._finished_monotonic is None:
                self._finished_monotonic = time.monotonic()

    # --- Views ---

    @property
    def total(self) -> int:
        return len(self.plan.paths)

    @property
    def cursor(self) -> int:
        with self._claim_lock:
            return self._cursor

    @property
    def claims_by_worker(self) -> Dict[int, int]:
        with self._claim_lock:
            return dict(self._claims_by_worker)

    @property
    def in_flight(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._in_flight)

    @property
    def results(self) -> Tuple[InPlaceCompressionResult, ...]:
        with self._lock:
            return tuple(self._results)

    @property
    def completed_count(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def succeeded_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._results if r.success)

    @property
    def failed_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._results if not r.success)

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.total

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished_monotonic is not None

    @property
    def elapsed_seconds(self) -> float:
        with self._lock:
            end = self._finished_monotonic if self._finished_monotonic is not None else time.monotonic()
        return end - self._started_monotonic

    def failures(self) -> List[InPlaceCompressionResult]:
        with self._lock:
            return [r for r in self._results if not r.success]

    def snapshot(self) -> ProgressSnapshot:
        with self._claim_lock:
            cursor = self._cursor
        with self._lock:
            succeeded = [r for r in self._results if r.success]
            original = sum(r.original_size or 0 for r in succeeded)
            compressed = sum(r.compressed_size or 0 for r in succeeded)
            return ProgressSnapshot(
                total=len(self.plan.paths),
                cursor=cursor,
                in_flight=tuple(self._in_flight),
                completed_count=len(self._results),
                succeeded_count=len(succeeded),
                failed_count=len(self._results) - len(succeeded),
                total_original_size=original,
                total_compressed_size=compressed,
                total_savings=sum(r.savings or 0 for r in succeeded),
                cancelled=self.cancelled,
                finished=self._finished_monotonic is not None,
            )
