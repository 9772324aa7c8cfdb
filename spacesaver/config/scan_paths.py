"""Scan-root validation: keeps the chosen roots duplicate-free and non-overlapping.

Comparison goes through `normalize_path`; the stored entries keep the casing
and separators the user typed. Everything here is pure except
`evaluate_scan_paths`, which checks the disk for display purposes.
"""

import os
from pathlib import Path
from typing import List, Tuple, Optional
from spacesaver.domain.models import PathValidationResult

MAX_SCAN_PATHS = 50
MAX_SCAN_PATH_LEN = 4096
STATUS_OK = "✓"
STATUS_MISSING = "✗"
STATUS_NO_ACCESS = "⚡"

DUPLICATE_WARNING = "This path is already in the list"
EMPTY_PATH_WARNING = "Path is empty"


def _strip_wrapping_quotes(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ('"', "'"):
        return trimmed[1:-1]
    return trimmed


def clean_path_entries(entries: List[Optional[str]]) -> List[str]:
    cleaned: List[str] = []
    for entry in entries:
        if entry is None:
            continue
        value = _strip_wrapping_quotes(entry)
        if value:
            cleaned.append(value)
    return cleaned


def parse_cli_scan_paths(scan_paths_arg: Optional[str]) -> List[str]:
    if scan_paths_arg is None:
        return []
    return clean_path_entries(scan_paths_arg.split(","))


def validate_scan_path_entries(entries: List[str]) -> None:
    if len(entries) > MAX_SCAN_PATHS:
        raise ValueError(f"Too many scan paths ({len(entries)}). Max {MAX_SCAN_PATHS}.")
    too_long = [entry for entry in entries if len(entry) > MAX_SCAN_PATH_LEN]
    if too_long:
        raise ValueError(f"Scan path too long (>{MAX_SCAN_PATH_LEN} chars): {too_long[0][:80]}...")


def normalize_path(path: str) -> str:
    """Comparison key: '/' separators, no trailing separator (root kept), lower case."""
    normalized = path.replace("\\", "/")
    if len(normalized) > 1 and normalized.endswith("/") and not normalized.endswith(":/"):
        normalized = normalized[:-1]
    return normalized.lower()


def is_subpath(path: str, parent_path: str) -> bool:
    """True if `path` lies strictly inside `parent_path`."""
    normalized_path = normalize_path(path)
    normalized_parent = normalize_path(parent_path)
    if not normalized_path.strip() or not normalized_parent.strip():
        return False
    if normalized_path == normalized_parent:
        return False
    prefix = normalized_parent if normalized_parent.endswith("/") else normalized_parent + "/"
    return normalized_path.startswith(prefix)


def is_parent_path(path: str, child_path: str) -> bool:
    return is_subpath(child_path, path)


def find_parent_paths(new_path: str, existing_paths: List[str]) -> List[str]:
    """Existing roots that already cover `new_path`."""
    return [existing for existing in existing_paths if is_subpath(new_path, existing)]


def find_child_paths(new_path: str, existing_paths: List[str]) -> List[str]:
    """Existing roots that `new_path` would make redundant."""
    return [existing for existing in existing_paths if is_subpath(existing, new_path)]


def validate_path(path: str, existing_paths: List[str]) -> PathValidationResult:
    if not path or not path.strip():
        return PathValidationResult(is_valid=False, warnings=[EMPTY_PATH_WARNING])
    warnings: List[str] = []
    normalized = normalize_path(path)

    is_duplicate = any(normalize_path(existing) == normalized for existing in existing_paths)
    if is_duplicate:
        warnings.append(DUPLICATE_WARNING)

    contained_by = find_parent_paths(path, existing_paths)
    if contained_by:
        warnings.append(f"This path is already covered by: {', '.join(contained_by)}")

    contains = find_child_paths(path, existing_paths)
    if contains:
        warnings.append(f"This path would make redundant: {', '.join(contains)}")

    return PathValidationResult(
        is_valid=not is_duplicate and not contained_by,
        is_duplicate=is_duplicate,
        contained_by=contained_by,
        contains=contains,
        warnings=warnings,
    )


def add_path(path: str, existing_paths: List[str]) -> Tuple[List[str], PathValidationResult]:
    """Returns the new root list and the validation that decided it.

    An invalid candidate leaves the roots unchanged. A valid one is appended
    and every root it contains is dropped.
    """
    validation = validate_path(path, existing_paths)
    if not validation.is_valid:
        return list(existing_paths), validation
    subsumed = set(validation.contains)
    roots = [existing for existing in existing_paths if existing not in subsumed]
    roots.append(path)
    return roots, validation


def remove_path(path: str, existing_paths: List[str]) -> List[str]:
    normalized = normalize_path(path)
    return [existing for existing in existing_paths if normalize_path(existing) != normalized]


class PathSet:
    """Incrementally mutated set of scan roots.

    No two entries are equal after normalization and no entry is a
    sub-path of another.
    """

    def __init__(self, roots: Optional[List[str]] = None):
        self._roots: List[str] = []
        for root in roots or []:
            self.add(root)

    @property
    def roots(self) -> List[str]:
        return list(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self):
        return iter(list(self._roots))

    def __contains__(self, path: str) -> bool:
        normalized = normalize_path(path)
        return any(normalize_path(root) == normalized for root in self._roots)

    def validate(self, path: str) -> PathValidationResult:
        return validate_path(path, self._roots)

    def add(self, path: str) -> PathValidationResult:
        self._roots, validation = add_path(path, self._roots)
        return validation

    def remove(self, path: str) -> bool:
        before = len(self._roots)
        self._roots = remove_path(path, self._roots)
        return len(self._roots) != before

    def clear(self) -> None:
        self._roots = []


def _has_read_access(path: Path) -> bool:
    return os.access(path, os.R_OK | os.X_OK)


def evaluate_scan_paths(entries: List[str]) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Splits entries into usable roots and (status, entry) display rows."""
    valid: List[str] = []
    status_entries: List[Tuple[str, str]] = []

    for entry in entries:
        path = Path(entry).expanduser()
        if not path.exists():
            status_entries.append((STATUS_MISSING, entry))
            continue
        if not path.is_dir() or not _has_read_access(path):
            status_entries.append((STATUS_NO_ACCESS, entry))
            continue
        status_entries.append((STATUS_OK, entry))
        valid.append(entry)

    return valid, status_entries


def render_status_icon(status: str) -> str:
    style = "green" if status == STATUS_OK else "red"
    icon = status if status == STATUS_NO_ACCESS else f"{status} "
    return f"[{style}]{icon}[/]"


def build_scan_path_lines(status_entries: List[Tuple[str, str]]) -> List[str]:
    lines: List[str] = []
    for idx, (status, entry) in enumerate(status_entries):
        lines.append(f"  {render_status_icon(status)}{idx + 1}. {entry}")
    return lines
