"""Scan → confirm → process state machine.

CompressionWorkflow owns the candidate lists, the selection and the current
run. It talks to an engine for scanning and hands `engine.compress_one` to
a WorkerPool for processing. The UI only observes it through the EventBus.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set

from spacesaver.config.scan_paths import clean_path_entries
from spacesaver.domain.errors import (
    EngineUnavailableError,
    ScanError,
    SelectionError,
    WorkflowStateError,
)
from spacesaver.domain.events import (
    ActionMessage,
    ScanFailed,
    ScanFinished,
    ScanStarted,
    SelectionChanged,
    StepChanged,
)
from spacesaver.domain.models import (
    BatchPlan,
    CompressibleFile,
    CompressionPlugin,
    FilterConfig,
    RejectedFile,
    ScanResult,
    Step,
)
from spacesaver.infrastructure.engine import CompressionEngine
from spacesaver.infrastructure.event_bus import EventBus
from spacesaver.pipeline.plan import build_plan, resolve_plugin_order, validate_pool_size
from spacesaver.pipeline.progress import BatchProgress
from spacesaver.pipeline.worker_pool import WorkerPool, with_timeout


class CompressionWorkflow:
    def __init__(
        self,
        engine: CompressionEngine,
        event_bus: EventBus,
        pool_size: int = 4,
        plugin_order: Optional[List[str]] = None,
        item_timeout_s: Optional[float] = None,
    ):
        self.engine = engine
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self._lock = threading.RLock()

        self._step = Step.SCAN
        self._pool_size = validate_pool_size(pool_size)
        self._plugin_order: List[str] = list(plugin_order or [])
        self.item_timeout_s = item_timeout_s

        self.plugins: List[CompressionPlugin] = []
        self.scan_result: Optional[ScanResult] = None
        self._selected: Set[str] = set()
        self._confirm_snapshot: Optional[Set[str]] = None

        self.plan: Optional[BatchPlan] = None
        self.pool: Optional[WorkerPool] = None

    # --- State ---

    @property
    def step(self) -> Step:
        with self._lock:
            return self._step

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def compressible(self) -> List[CompressibleFile]:
        with self._lock:
            return list(self.scan_result.compressible) if self.scan_result else []

    @property
    def rejected(self) -> List[RejectedFile]:
        with self._lock:
            return list(self.scan_result.rejected) if self.scan_result else []

    @property
    def selected_files(self) -> List[CompressibleFile]:
        """Selected candidates in candidate order, without repeated paths."""
        with self._lock:
            seen: Set[str] = set()
            files = []
            for candidate in self.compressible:
                if candidate.path in self._selected and candidate.path not in seen:
                    seen.add(candidate.path)
                    files.append(candidate)
            return files

    @property
    def selected_paths(self) -> List[str]:
        return [f.path for f in self.selected_files]

    @property
    def progress(self) -> Optional[BatchProgress]:
        return self.pool.progress if self.pool else None

    @property
    def is_run_active(self) -> bool:
        return self.pool is not None and self.pool.running

    @property
    def is_complete(self) -> bool:
        """The 'complete' sub-state of PROCESS: the run has ended."""
        with self._lock:
            return self._step == Step.PROCESS and self.pool is not None and not self.pool.running

    def _require(self, action: str, *steps: Step) -> None:
        if self._step not in steps:
            raise WorkflowStateError(f"Cannot {action} during the {self._step.value} step")

    def _transition(self, new_step: Step) -> None:
        previous = self._step
        self._step = new_step
        self.logger.info(f"Step: {previous.value} -> {new_step.value}")
        self.event_bus.publish(StepChanged(previous=previous, current=new_step))

    def _publish_selection(self) -> None:
        self.event_bus.publish(SelectionChanged(selected=len(self.selected_files), total=len(self.compressible)))

    # --- Plugins ---

    def load_plugins(self) -> List[CompressionPlugin]:
        plugins = self.engine.get_compression_plugins()
        with self._lock:
            self.plugins = list(plugins)
        self.logger.info(f"Loaded {len(plugins)} compression plugins")
        return list(plugins)

    def active_plugins(self) -> List[str]:
        with self._lock:
            return resolve_plugin_order(self._plugin_order, self.plugins)

    # --- Scan step ---

    def scan(
        self,
        scan_paths: Iterable[str],
        active_plugins: Optional[List[str]] = None,
        filter_config: Optional[FilterConfig] = None,
    ) -> ScanResult:
        with self._lock:
            self._require("scan", Step.SCAN)
        paths = clean_path_entries(list(scan_paths))
        if not paths:
            raise SelectionError("No scan paths selected")
        plugins = list(active_plugins) if active_plugins is not None else self.active_plugins()

        self.event_bus.publish(ScanStarted(paths=paths, active_plugins=plugins))
        self.logger.info(f"Scan started: {len(paths)} paths, plugins: {', '.join(plugins) or 'all'}")
        try:
            result = self.engine.scan_compressible_files(paths, plugins, filter_config)
        except (ScanError, EngineUnavailableError) as e:
            self.logger.error(f"Scan failed: {e}")
            self.event_bus.publish(ScanFailed(error_message=str(e)))
            if isinstance(e, ScanError):
                raise
            raise ScanError(str(e)) from e

        with self._lock:
            self.scan_result = result
            self._selected = {f.path for f in result.compressible}
            self._confirm_snapshot = None

        self.logger.info(
            f"Scan finished: {len(result.compressible)} compressible, {len(result.rejected)} rejected, "
            f"estimated savings {result.total_estimated_savings} bytes"
        )
        self.event_bus.publish(ScanFinished(
            compressible=len(result.compressible),
            rejected=len(result.rejected),
            total_original_size=result.total_original_size,
            total_estimated_savings=result.total_estimated_savings,
        ))
        self._publish_selection()
        return result

    # --- Selection ---

    def _check_candidate(self, path: str) -> None:
        if all(f.path != path for f in self.compressible):
            raise SelectionError(f"Not a scanned compressible file: {path}")

    def select(self, path: str) -> None:
        with self._lock:
            self._require("change the selection", Step.SCAN, Step.CONFIRM)
            self._check_candidate(path)
            self._selected.add(path)
        self._publish_selection()

    def deselect(self, path: str) -> None:
        with self._lock:
            self._require("change the selection", Step.SCAN, Step.CONFIRM)
            self._check_candidate(path)
            self._selected.discard(path)
        self._publish_selection()

    def toggle(self, path: str) -> bool:
        """Flips one path; returns True if it is now selected."""
        with self._lock:
            self._require("change the selection", Step.SCAN, Step.CONFIRM)
            self._check_candidate(path)
            if path in self._selected:
                self._selected.discard(path)
                selected = False
            else:
                self._selected.add(path)
                selected = True
        self._publish_selection()
        return selected

    def select_all(self) -> None:
        with self._lock:
            self._require("change the selection", Step.SCAN, Step.CONFIRM)
            self._selected = {f.path for f in self.compressible}
        self._publish_selection()

    def clear_selection(self) -> None:
        with self._lock:
            self._require("change the selection", Step.SCAN, Step.CONFIRM)
            self._selected = set()
        self._publish_selection()

    def set_pool_size(self, pool_size: int) -> None:
        with self._lock:
            self._require("change the pool size", Step.SCAN, Step.CONFIRM)
            old_val = self._pool_size
            self._pool_size = validate_pool_size(pool_size)
            new_val = self._pool_size
        if new_val != old_val:
            self.logger.info(f"Pool size: {old_val} -> {new_val}")
            self.event_bus.publish(ActionMessage(message=f"Pool size: {old_val} → {new_val}"))
        else:
            self.event_bus.publish(ActionMessage(message=f"Pool size: {new_val}"))

    # --- Transitions ---

    def confirm(self) -> None:
        with self._lock:
            self._require("confirm", Step.SCAN)
            if not self.selected_files:
                raise SelectionError("Select at least one file to compress")
            self._confirm_snapshot = set(self._selected)
            self._transition(Step.CONFIRM)

    def cancel(self) -> None:
        with self._lock:
            self._require("cancel", Step.CONFIRM)
            if self._confirm_snapshot is not None:
                self._selected = set(self._confirm_snapshot)
            self._confirm_snapshot = None
            self._transition(Step.SCAN)
        self._publish_selection()
        self.event_bus.publish(ActionMessage(message="Cancelled - selection restored"))

    def start_process(self) -> BatchProgress:
        with self._lock:
            self._require("start processing", Step.CONFIRM)
            paths = self.selected_paths
            if not paths:
                raise SelectionError("Select at least one file to compress")
            plan = build_plan(paths, self.active_plugins(), self._pool_size)

            compress_one = self.engine.compress_one
            if self.item_timeout_s:
                compress_one = with_timeout(compress_one, self.item_timeout_s)
            self.pool = WorkerPool(compress_one, self.event_bus)
            self.plan = plan
            self._confirm_snapshot = None
            self._transition(Step.PROCESS)
        try:
            return self.pool.start(plan)
        except Exception:
            self.logger.error("Run failed to start, back to confirmation")
            with self._lock:
                self.pool = None
                self.plan = None
                self._confirm_snapshot = set(self._selected)
                self._transition(Step.CONFIRM)
            raise

    def wait(self, timeout: Optional[float] = None) -> BatchProgress:
        if self.pool is None:
            raise WorkflowStateError("No run has been started")
        return self.pool.wait(timeout)

    def process(self) -> BatchProgress:
        self.start_process()
        return self.wait()

    def cancel_process(self) -> bool:
        with self._lock:
            self._require("cancel processing", Step.PROCESS)
        cancelled = self.pool.cancel()
        if cancelled:
            self.event_bus.publish(ActionMessage(message="Cancel requested - finishing in-flight files"))
        return cancelled

    def start_new_scan(self) -> None:
        with self._lock:
            self._require("start a new scan", Step.PROCESS)
            if self.is_run_active:
                raise WorkflowStateError("Cannot start a new scan while a run is active")
            self.plan = None
            self.pool = None
            self.scan_result = None
            self._selected = set()
            self._confirm_snapshot = None
            self._transition(Step.SCAN)
