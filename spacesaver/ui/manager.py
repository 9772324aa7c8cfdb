import logging

from spacesaver.domain.events import (
    ActionMessage,
    BatchCancelRequested,
    BatchFinished,
    BatchStarted,
    ItemFinished,
    ItemStarted,
    PoolFailed,
    ScanFailed,
    ScanFinished,
    ScanStarted,
    SelectionChanged,
    StepChanged,
)
from spacesaver.infrastructure.event_bus import EventBus
from spacesaver.ui.state import UIState


class UIManager:
    """Subscribes to EventBus and updates UIState."""

    def __init__(self, bus: EventBus, state: UIState):
        self.bus = bus
        self.state = state
        self.logger = logging.getLogger(__name__)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(StepChanged, self.on_step_changed)
        self.bus.subscribe(ScanStarted, self.on_scan_started)
        self.bus.subscribe(ScanFinished, self.on_scan_finished)
        self.bus.subscribe(ScanFailed, self.on_scan_failed)
        self.bus.subscribe(SelectionChanged, self.on_selection_changed)
        self.bus.subscribe(BatchStarted, self.on_batch_started)
        self.bus.subscribe(ItemStarted, self.on_item_started)
        self.bus.subscribe(ItemFinished, self.on_item_finished)
        self.bus.subscribe(BatchCancelRequested, self.on_cancel_requested)
        self.bus.subscribe(BatchFinished, self.on_batch_finished)
        self.bus.subscribe(PoolFailed, self.on_pool_failed)
        self.bus.subscribe(ActionMessage, self.on_action_message)

    def on_step_changed(self, event: StepChanged):
        with self.state._lock:
            self.state.step = event.current

    def on_scan_started(self, event: ScanStarted):
        with self.state._lock:
            self.state.scanning = True
            self.state.scan_error = None
            self.state.scan_paths = list(event.paths)

    def on_scan_finished(self, event: ScanFinished):
        self.logger.debug(
            f"UI: scan counters compressible={event.compressible}, rejected={event.rejected}, "
            f"estimated_savings={event.total_estimated_savings}"
        )
        with self.state._lock:
            self.state.scanning = False
            self.state.compressible_count = event.compressible
            self.state.rejected_count = event.rejected
            self.state.scan_original_bytes = event.total_original_size
            self.state.scan_estimated_savings = event.total_estimated_savings

    def on_scan_failed(self, event: ScanFailed):
        with self.state._lock:
            self.state.scanning = False
            self.state.scan_error = event.error_message
        self.state.set_last_action(f"Scan failed: {event.error_message}")

    def on_selection_changed(self, event: SelectionChanged):
        with self.state._lock:
            self.state.selected_count = event.selected

    def on_batch_started(self, event: BatchStarted):
        self.state.reset_run(event.total, event.pool_size, event.worker_count)

    def on_item_started(self, event: ItemStarted):
        self.state.add_in_flight(event.path)

    def on_item_finished(self, event: ItemFinished):
        self.state.add_result(event.result, event.completed_count)

    def on_cancel_requested(self, event: BatchCancelRequested):
        with self.state._lock:
            self.state.cancel_requested = True
        self.state.set_last_action("Cancelling - waiting for in-flight files...")

    def on_batch_finished(self, event: BatchFinished):
        with self.state._lock:
            self.state.completed_count = event.completed
            self.state.elapsed_seconds = event.elapsed_seconds
            self.state.cancelled = event.cancelled
            self.state.finished = True

    def on_pool_failed(self, event: PoolFailed):
        with self.state._lock:
            self.state.pool_error = event.error_message
            self.state.finished = True

    def on_action_message(self, event: ActionMessage):
        self.state.set_last_action(event.message)
