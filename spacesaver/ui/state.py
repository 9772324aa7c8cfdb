import threading
from collections import deque
from datetime import datetime
from typing import Dict, List, Optional

from spacesaver.domain.models import InPlaceCompressionResult, Step


class UIState:
    """Thread-safe state manager for the terminal UI."""

    def __init__(self, recent_results_max_items: int = 5):
        self._lock = threading.RLock()

        self.step = Step.SCAN
        self.ui_title = "SPACE SAVER"

        # Scan summary
        self.scanning = False
        self.scan_paths: List[str] = []
        self.scan_error: Optional[str] = None
        self.compressible_count = 0
        self.rejected_count = 0
        self.scan_original_bytes = 0
        self.scan_estimated_savings = 0
        self.selected_count = 0

        # Run counters
        self.total_files = 0
        self.pool_size = 0
        self.worker_count = 0
        self.completed_count = 0
        self.succeeded_count = 0
        self.failed_count = 0
        self.total_input_bytes = 0
        self.total_output_bytes = 0
        self.total_savings = 0

        # In-flight paths -> start time, in dispatch order
        self.in_flight: Dict[str, datetime] = {}
        self.recent_results = deque(maxlen=recent_results_max_items)
        self.failures: List[InPlaceCompressionResult] = []

        self.processing_start_time: Optional[datetime] = None
        self.elapsed_seconds: Optional[float] = None
        self.cancel_requested = False
        self.cancelled = False
        self.finished = False
        self.pool_error: Optional[str] = None

        self.last_action: str = ""
        self.last_action_time: Optional[datetime] = None

    @property
    def space_saved_bytes(self) -> int:
        with self._lock:
            return self.total_savings

    @property
    def compression_ratio(self) -> float:
        with self._lock:
            if self.total_input_bytes == 0:
                return 0.0
            return self.total_output_bytes / self.total_input_bytes

    def reset_run(self, total: int, pool_size: int, worker_count: int):
        with self._lock:
            self.total_files = total
            self.pool_size = pool_size
            self.worker_count = worker_count
            self.completed_count = 0
            self.succeeded_count = 0
            self.failed_count = 0
            self.total_input_bytes = 0
            self.total_output_bytes = 0
            self.total_savings = 0
            self.in_flight.clear()
            self.recent_results.clear()
            self.failures = []
            self.processing_start_time = datetime.now()
            self.elapsed_seconds = None
            self.cancel_requested = False
            self.cancelled = False
            self.finished = False
            self.pool_error = None

    def add_in_flight(self, path: str):
        with self._lock:
            self.in_flight[path] = datetime.now()

    def add_result(self, result: InPlaceCompressionResult, completed_count: int):
        with self._lock:
            self.in_flight.pop(result.path, None)
            # Events from different workers can arrive out of commit order
            self.completed_count = max(self.completed_count, completed_count)
            if result.success:
                self.succeeded_count += 1
                self.total_input_bytes += result.original_size or 0
                self.total_output_bytes += result.compressed_size or 0
                self.total_savings += result.savings or 0
            else:
                self.failed_count += 1
                self.failures.append(result)
            self.recent_results.appendleft(result)

    def in_flight_items(self) -> List[tuple]:
        """(path, seconds running) pairs in dispatch order."""
        now = datetime.now()
        with self._lock:
            return [(path, (now - started).total_seconds()) for path, started in self.in_flight.items()]

    def set_last_action(self, action: str):
        with self._lock:
            self.last_action = action
            self.last_action_time = datetime.now()

    def get_last_action(self) -> str:
        """Last action message; cleared after 60 seconds."""
        with self._lock:
            if self.last_action and self.last_action_time:
                elapsed = (datetime.now() - self.last_action_time).total_seconds()
                if elapsed > 60:
                    self.last_action = ""
                    self.last_action_time = None
            return self.last_action
