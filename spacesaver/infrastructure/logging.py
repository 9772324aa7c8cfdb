import logging
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "spacesaver.log"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
# Worker lines interleave in debug mode; the thread name tells them apart
DEBUG_LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s'

def setup_logging(log_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Route spacesaver logging to a single log file.

    Args:
        log_dir: Directory for spacesaver.log when no explicit path is given
        debug: If True, log at DEBUG (ITEM_START / ITEM_END per file) and tag
            each line with the worker thread name
        log_path: Optional path to log file (overrides log_dir)

    Returns the module logger after the first line has been written.
    """
    log_file = Path(log_path).expanduser() if log_path else (Path(log_dir).expanduser() / LOG_FILE_NAME)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=DEBUG_LOG_FORMAT if debug else LOG_FORMAT,
        handlers=[logging.FileHandler(log_file, encoding="utf-8")],
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging to {log_file} (debug={'ON' if debug else 'OFF'})")
    return logger
