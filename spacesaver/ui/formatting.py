from typing import Optional


def format_size(size: Optional[int]) -> str:
    """Format size: 123B, 1.2KB, 45.1MB, 3.2GB."""
    if not size:
        return "0B"
    units = ['B', 'KB', 'MB', 'GB', 'TB']
    idx = 0
    val = float(size)
    while val >= 1024.0 and idx < len(units) - 1:
        val /= 1024.0
        idx += 1
    if idx == 0:
        return f"{int(val)}B"
    return f"{val:.1f}{units[idx]}"


def format_time(seconds: Optional[float]) -> str:
    """Format time: 59s, 01m 01s, 1h 01m."""
    if seconds is None:
        return "--:--"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60):02d}m {int(seconds % 60):02d}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60):02d}m"


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def shorten_path(path: str, max_len: int = 60) -> str:
    """Truncate in the middle: prefix…suffix."""
    if len(path) <= max_len:
        return path
    part_len = (max_len - 1) // 2
    return f"{path[:part_len]}…{path[-part_len:]}"
