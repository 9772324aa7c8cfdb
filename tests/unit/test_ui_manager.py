from spacesaver.infrastructure.event_bus import EventBus
from spacesaver.ui.state import UIState
from spacesaver.ui.manager import UIManager
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
from spacesaver.domain.models import InPlaceCompressionResult, Step


def test_ui_manager_tracks_scan_and_selection():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(ScanStarted(paths=["/photos"], active_plugins=["WebP Converter"]))
    assert state.scanning is True
    assert state.scan_paths == ["/photos"]

    bus.publish(ScanFinished(compressible=7, rejected=2, total_original_size=7000, total_estimated_savings=2100))
    assert state.scanning is False
    assert state.compressible_count == 7
    assert state.rejected_count == 2
    assert state.scan_estimated_savings == 2100

    bus.publish(SelectionChanged(selected=5, total=7))
    assert state.selected_count == 5

    bus.publish(StepChanged(previous=Step.SCAN, current=Step.CONFIRM))
    assert state.step == Step.CONFIRM


def test_ui_manager_scan_failure():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(ScanStarted(paths=["/photos"]))
    bus.publish(ScanFailed(error_message="Active plugin not found: X"))

    assert state.scanning is False
    assert state.scan_error == "Active plugin not found: X"
    assert "Active plugin not found" in state.get_last_action()


def test_ui_manager_updates_state_on_run_events():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(BatchStarted(total=2, pool_size=4, worker_count=2))
    assert state.total_files == 2
    assert state.worker_count == 2

    bus.publish(ItemStarted(path="/a.png", worker_id=0, index=0))
    bus.publish(ItemStarted(path="/b.png", worker_id=1, index=1))
    assert list(state.in_flight) == ["/a.png", "/b.png"]

    ok = InPlaceCompressionResult(success=True, path="/a.png", original_size=100, compressed_size=30)
    bus.publish(ItemFinished(result=ok, worker_id=0, completed_count=1, total=2))
    failed = InPlaceCompressionResult.failure("/b.png", "No space left on device")
    bus.publish(ItemFinished(result=failed, worker_id=1, completed_count=2, total=2))

    assert state.in_flight == {}
    assert state.completed_count == 2
    assert state.succeeded_count == 1
    assert state.failed_count == 1
    assert state.total_savings == 70

    bus.publish(BatchFinished(total=2, completed=2, succeeded=1, failed=1, total_savings=70, elapsed_seconds=1.5))
    assert state.finished is True
    assert state.cancelled is False
    assert state.elapsed_seconds == 1.5


def test_ui_manager_cancel_and_pool_failure():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(BatchStarted(total=5, pool_size=2, worker_count=2))
    bus.publish(BatchCancelRequested())
    assert state.cancel_requested is True
    assert "Cancelling" in state.get_last_action()

    bus.publish(BatchFinished(total=5, completed=2, succeeded=2, failed=0, cancelled=True))
    assert state.cancelled is True

    bus.publish(PoolFailed(error_message="compress_one returned NoneType"))
    assert state.pool_error == "compress_one returned NoneType"
    assert state.finished is True


def test_ui_manager_action_message():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(ActionMessage(message="Saved scan paths"))
    assert state.get_last_action() == "Saved scan paths"
