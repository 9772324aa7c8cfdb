"""Unit tests for logging infrastructure."""
import logging
from spacesaver.infrastructure.logging import LOG_FILE_NAME, setup_logging


def _flush_root():
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_setup_logging_creates_log_file(tmp_path):
    """setup_logging creates spacesaver.log in the given directory."""
    log_dir = tmp_path / "logs"

    logger = setup_logging(log_dir, debug=False)

    assert isinstance(logger, logging.Logger)
    assert log_dir.is_dir()
    assert (log_dir / LOG_FILE_NAME).exists()


def test_setup_logging_explicit_path_wins(tmp_path):
    """An explicit log_path is used instead of log_dir/spacesaver.log."""
    log_path = tmp_path / "custom" / "run.log"

    logger = setup_logging(tmp_path / "unused", debug=False, log_path=log_path)
    logger.info("explicit path message")
    _flush_root()

    assert log_path.exists()
    assert "explicit path message" in log_path.read_text()
    assert not (tmp_path / "unused" / LOG_FILE_NAME).exists()


def test_setup_logging_levels(tmp_path):
    """INFO by default, DEBUG with debug=True."""
    assert setup_logging(tmp_path, debug=False).getEffectiveLevel() == logging.INFO
    assert setup_logging(tmp_path, debug=True).getEffectiveLevel() == logging.DEBUG


def test_setup_logging_format(tmp_path):
    """Lines carry timestamp, level and message separated by ' - '."""
    logger = setup_logging(tmp_path, debug=False)
    logger.warning("Warning message")
    _flush_root()

    lines = (tmp_path / LOG_FILE_NAME).read_text().splitlines()
    last = lines[-1]
    assert " - WARNING - Warning message" in last
    assert last[:4].isdigit()


def test_setup_logging_debug_messages(tmp_path):
    """Debug messages only appear in debug mode."""
    module_logger = logging.getLogger("spacesaver.pipeline.worker_pool")

    setup_logging(tmp_path, debug=False)
    module_logger.debug("ITEM_START: hidden")
    _flush_root()
    assert "ITEM_START: hidden" not in (tmp_path / LOG_FILE_NAME).read_text()

    setup_logging(tmp_path, debug=True)
    module_logger.debug("ITEM_START: shown")
    _flush_root()
    assert "ITEM_START: shown" in (tmp_path / LOG_FILE_NAME).read_text()


def test_setup_logging_multiple_calls_same_dir(tmp_path):
    """Re-initialising appends to the same file."""
    setup_logging(tmp_path, debug=False).info("Message from logger1")
    setup_logging(tmp_path, debug=False).info("Message from logger2")
    _flush_root()

    content = (tmp_path / LOG_FILE_NAME).read_text()
    assert "Message from logger1" in content
    assert "Message from logger2" in content


def test_setup_logging_debug_tags_thread(tmp_path):
    """Debug lines carry the thread name so worker output can be told apart."""
    logger = setup_logging(tmp_path, debug=True)
    logger.debug("tagged")
    _flush_root()

    last = (tmp_path / LOG_FILE_NAME).read_text().splitlines()[-1]
    assert " - DEBUG - [MainThread] tagged" in last
