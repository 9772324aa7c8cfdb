import pytest
from pydantic import ValidationError

from spacesaver.domain.models import (
    BatchPlan,
    CompressibleFile,
    FilterConfig,
    InPlaceCompressionResult,
    ProgressSnapshot,
    ScanResult,
    Step,
)


def test_filter_config_is_empty():
    assert FilterConfig().is_empty()
    assert not FilterConfig(min_size=10).is_empty()
    assert not FilterConfig(extensions=["png"]).is_empty()
    with pytest.raises(ValidationError):
        FilterConfig(min_size=-1)


def test_result_derives_savings():
    result = InPlaceCompressionResult(success=True, path="/a.png", original_size=1000, compressed_size=700)
    assert result.savings == 300
    grown = InPlaceCompressionResult(success=True, path="/a.png", original_size=100, compressed_size=150)
    assert grown.savings == 0


def test_failed_result_always_has_error():
    assert InPlaceCompressionResult(success=False, path="/a.png").error == "Unknown error"
    failure = InPlaceCompressionResult.failure("/b.png", "File not found")
    assert failure.success is False
    assert failure.path == "/b.png"
    assert failure.error == "File not found"


def test_result_accepts_engine_payload_shape():
    payload = {
        "success": True,
        "path": "/a.webp",
        "backup_path": "/a.png.backup",
        "original_size": 10,
        "compressed_size": 4,
        "savings": 6,
        "plugin_name": "WebP Converter",
    }
    result = InPlaceCompressionResult(**payload)
    assert result.savings == 6
    assert result.output_path is None


def test_batch_plan_rejects_empty_and_duplicates():
    with pytest.raises(ValidationError):
        BatchPlan(paths=())
    with pytest.raises(ValidationError, match="Duplicate path"):
        BatchPlan(paths=("/a", "/b", "/a"))


def test_batch_plan_pool_size_bounds():
    assert BatchPlan(paths=("/a",), pool_size=1).pool_size == 1
    assert BatchPlan(paths=("/a",), pool_size=20).pool_size == 20
    with pytest.raises(ValidationError):
        BatchPlan(paths=("/a",), pool_size=0)
    with pytest.raises(ValidationError):
        BatchPlan(paths=("/a",), pool_size=21)


def test_batch_plan_is_frozen():
    plan = BatchPlan(paths=["/a", "/b"], plugin_order=["WebP Converter"])
    assert plan.paths == ("/a", "/b")
    assert len(plan) == 2
    with pytest.raises(ValidationError):
        plan.pool_size = 5


def test_scan_result_totals():
    files = [
        CompressibleFile(path="/a", original_size=100, estimated_compressed_size=60, estimated_savings=40, plugin_name="p"),
        CompressibleFile(path="/b", original_size=50, estimated_compressed_size=45, estimated_savings=5, plugin_name="p"),
    ]
    result = ScanResult(compressible=files)
    assert result.total_original_size == 150
    assert result.total_estimated_savings == 45


def test_progress_snapshot_is_complete():
    assert ProgressSnapshot(total=2, cursor=2, completed_count=2).is_complete
    assert not ProgressSnapshot(total=2, cursor=2, completed_count=1).is_complete


def test_step_values():
    assert [s.value for s in Step] == ["SCAN", "CONFIRM", "PROCESS"]
