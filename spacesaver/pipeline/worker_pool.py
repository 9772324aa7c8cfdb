"""Bounded worker pool for in-place compression runs.

A run is a fixed set of worker threads pulling plan indices from a shared,
lock-guarded cursor in BatchProgress. `compress_one` is the only blocking
call and runs without any pool lock held. Per-file failures are recorded as
failed results; only errors outside the `compress_one` contract fail the
whole run (PoolError).

Key responsibilities:
- Spawn min(pool_size, len(plan)) workers and claim each index exactly once
- Publish BatchStarted / ItemStarted / ItemFinished / BatchFinished events
- Cooperative cancellation: stop claiming, let in-flight items finish
- Finalize the run from the last worker to terminate
"""

import concurrent.futures
import functools
import logging
import threading
import time
from typing import Callable, List, Optional

from spacesaver.domain.errors import PlanError, PoolError
from spacesaver.domain.events import (
    BatchCancelRequested,
    BatchFinished,
    BatchStarted,
    Event,
    ItemFinished,
    ItemStarted,
    PoolFailed,
)
from spacesaver.domain.models import BatchPlan, InPlaceCompressionResult
from spacesaver.infrastructure.event_bus import EventBus
from spacesaver.pipeline.progress import BatchProgress

CompressOne = Callable[[str, List[str]], InPlaceCompressionResult]


def with_timeout(compress_one: CompressOne, timeout_s: float) -> CompressOne:
    """Wraps `compress_one` so a call that overran `timeout_s` and did not
    compress the file is reported as "Timed out after Ns".

    The call always runs to completion on the worker thread, so the worker's
    slot stays occupied and the pool bound holds. Stopping a slow call is the
    engine's job (SubprocessEngine kills the child process at the deadline).
    A call that overran but still succeeded is reported as the success it is.
    """
    if timeout_s <= 0:
        raise ValueError(f"timeout_s must be positive, got {timeout_s}")
    logger = logging.getLogger(__name__)

    @functools.wraps(compress_one)
    def call(path: str, plugin_order: List[str]) -> InPlaceCompressionResult:
        started = time.monotonic()
        try:
            result = compress_one(path, plugin_order)
        except Exception as e:
            if time.monotonic() - started <= timeout_s:
                raise
            logger.warning(f"ITEM_TIMEOUT: {path} after {timeout_s:g}s ({e})")
            return InPlaceCompressionResult.failure(path, f"Timed out after {timeout_s:g}s")

        elapsed = time.monotonic() - started
        if elapsed <= timeout_s or not isinstance(result, InPlaceCompressionResult):
            return result
        if result.success:
            logger.warning(f"ITEM_TIMEOUT: {path} took {elapsed:.2f}s (limit {timeout_s:g}s) but was compressed")
            return result
        logger.warning(f"ITEM_TIMEOUT: {path} after {timeout_s:g}s ({result.error})")
        return InPlaceCompressionResult.failure(path, f"Timed out after {timeout_s:g}s")

    return call


class WorkerPool:
    """Runs one BatchPlan at a time on a bounded set of worker threads."""

    def __init__(
        self,
        compress_one: CompressOne,
        event_bus: Optional[EventBus] = None,
        thread_name_prefix: str = "spacesaver-worker",
    ):
        self.compress_one = compress_one
        self.event_bus = event_bus
        self.thread_name_prefix = thread_name_prefix
        self.logger = logging.getLogger(__name__)

        self._state_lock = threading.Lock()
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._futures: List[concurrent.futures.Future] = []
        self._remaining_workers = 0
        self._progress: Optional[BatchProgress] = None
        self._done = threading.Event()
        self._done.set()
        self._error: Optional[PoolError] = None

    @property
    def progress(self) -> Optional[BatchProgress]:
        return self._progress

    @property
    def running(self) -> bool:
        return not self._done.is_set()

    def _publish(self, event: Event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)

    # --- Run lifecycle ---

    def start(self, plan: BatchPlan) -> BatchProgress:
        if not isinstance(plan, BatchPlan):
            raise PlanError(f"Expected a BatchPlan, got {type(plan).__name__}")

        with self._state_lock:
            if self.running:
                raise PoolError("A run is already active on this pool")
            progress = BatchProgress(plan)
            worker_count = min(plan.pool_size, len(plan.paths))
            self._progress = progress
            self._error = None
            self._futures = []
            self._remaining_workers = worker_count
            self._done.clear()

        self.logger.info(
            f"Batch started: {len(plan.paths)} files, pool size {plan.pool_size}, {worker_count} workers"
        )
        try:
            self._publish(BatchStarted(total=len(plan.paths), pool_size=plan.pool_size, worker_count=worker_count))
        except Exception:
            # No worker exists yet; nothing would ever set _done
            with self._state_lock:
                self._progress = None
                self._remaining_workers = 0
                self._done.set()
            raise

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=worker_count,
            thread_name_prefix=self.thread_name_prefix,
        )
        futures = [self._executor.submit(self._worker_loop, progress, worker_id) for worker_id in range(worker_count)]
        self._futures = futures
        for future in futures:
            future.add_done_callback(self._on_worker_done)
        return progress

    def wait(self, timeout: Optional[float] = None) -> BatchProgress:
        """Blocks until every worker has terminated.

        Raises PoolError if the run failed and TimeoutError if `timeout`
        elapses first. On Ctrl+C the run is cancelled, in-flight items are
        allowed to finish and KeyboardInterrupt is re-raised.
        """
        progress = self._progress
        if progress is None:
            raise PoolError("No run has been started on this pool")

        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            # Short waits keep the main thread responsive to Ctrl+C
            while not self._done.wait(0.5):
                if deadline is not None and time.monotonic() >= deadline:
                    raise TimeoutError(f"Run still active after {timeout}s")
        except KeyboardInterrupt:
            self.logger.info("Ctrl+C detected - no new claims, waiting for in-flight items...")
            self.cancel()
            self._done.wait()
            raise

        if self._error is not None:
            raise self._error
        return progress

    def run(self, plan: BatchPlan) -> BatchProgress:
        self.start(plan)
        return self.wait()

    def cancel(self) -> bool:
        """Requests cooperative cancellation. Returns False if there is no active run."""
        progress = self._progress
        if progress is None or not self.running:
            return False
        if progress.close_claims(cancelled=True):
            self.logger.info(
                f"Cancel requested: {progress.cursor}/{progress.total} claimed, "
                f"{len(progress.in_flight)} in flight"
            )
            self._publish(BatchCancelRequested())
        return True

    # --- Workers ---

    def _call(self, path: str, plugin_order: List[str]) -> InPlaceCompressionResult:
        try:
            result = self.compress_one(path, plugin_order)
        except Exception as e:
            self.logger.warning(f"Compression call raised for {path}: {e}")
            return InPlaceCompressionResult.failure(path, str(e) or type(e).__name__)

        if not isinstance(result, InPlaceCompressionResult):
            raise PoolError(
                f"compress_one returned {type(result).__name__} for {path}, expected InPlaceCompressionResult"
            )
        if result.path != path:
            result = result.model_copy(update={"path": path, "output_path": result.output_path or result.path})
        return result

    def _worker_loop(self, progress: BatchProgress, worker_id: int) -> int:
        plan = progress.plan
        plugin_order = list(plan.plugin_order)
        claimed = 0
        path: Optional[str] = None
        try:
            while True:
                index = progress.claim(worker_id)
                if index is None:
                    break
                claimed += 1
                path = plan.paths[index]
                progress.mark_in_flight(path, worker_id)
                self._publish(ItemStarted(path=path, worker_id=worker_id, index=index))
                self.logger.debug(f"ITEM_START: [{worker_id}] {path}")

                start = time.monotonic()
                result = self._call(path, plugin_order)
                completed = progress.commit(path, result)
                path = None

                elapsed = time.monotonic() - start
                if result.success:
                    self.logger.debug(
                        f"ITEM_END: [{worker_id}] {result.path} ok in {elapsed:.2f}s, saved {result.savings or 0} bytes"
                    )
                else:
                    self.logger.warning(f"Compression failed: {result.path} - {result.error}")
                    self.logger.debug(f"ITEM_END: [{worker_id}] {result.path} failed in {elapsed:.2f}s")
                self._publish(ItemFinished(result=result, worker_id=worker_id, completed_count=completed, total=len(plan.paths)))
        except Exception:
            progress.close_claims()
            if path is not None:
                progress.discard(path)
            raise
        return claimed

    def _on_worker_done(self, future: concurrent.futures.Future) -> None:
        with self._state_lock:
            self._remaining_workers -= 1
            last = self._remaining_workers == 0
        if last:
            self._finalize()

    def _finalize(self) -> None:
        progress = self._progress
        try:
            progress.mark_finished()
            failures = [f.exception() for f in self._futures if f.exception() is not None]
            error: Optional[PoolError] = None
            if failures:
                first = failures[0]
                error = first if isinstance(first, PoolError) else PoolError(f"Worker crashed: {first!r}")
                if error is not first:
                    error.__cause__ = first
            elif not progress.cancelled and not progress.is_complete:
                error = PoolError(f"Run ended with {progress.completed_count} of {progress.total} results")

            if error is not None:
                self.logger.error(f"Pool failure: {error}")
                self._error = error
                self._publish(PoolFailed(error_message=str(error)))
            else:
                snapshot = progress.snapshot()
                self.logger.info(
                    f"Batch finished: {snapshot.succeeded_count} ok, {snapshot.failed_count} failed, "
                    f"{snapshot.total - snapshot.completed_count} skipped, saved {snapshot.total_savings} bytes "
                    f"in {progress.elapsed_seconds:.1f}s"
                )
                self._publish(BatchFinished(
                    total=snapshot.total,
                    completed=snapshot.completed_count,
                    succeeded=snapshot.succeeded_count,
                    failed=snapshot.failed_count,
                    total_savings=snapshot.total_savings,
                    cancelled=snapshot.cancelled,
                    elapsed_seconds=progress.elapsed_seconds,
                ))
        except Exception as e:
            self.logger.exception("Failed to finalize run")
            if self._error is None:
                self._error = PoolError(f"Failed to finalize run: {e}")
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
            self._done.set()
