import pytest

from spacesaver.config.scan_paths import (
    MAX_SCAN_PATHS,
    PathSet,
    STATUS_MISSING,
    STATUS_NO_ACCESS,
    STATUS_OK,
    add_path,
    build_scan_path_lines,
    clean_path_entries,
    evaluate_scan_paths,
    find_child_paths,
    find_parent_paths,
    is_parent_path,
    is_subpath,
    normalize_path,
    parse_cli_scan_paths,
    remove_path,
    validate_path,
    validate_scan_path_entries,
)


def _is_path_set(roots):
    """No two roots equal after normalization, none a sub-path of another."""
    normalized = [normalize_path(r) for r in roots]
    if len(set(normalized)) != len(normalized):
        return False
    return not any(is_subpath(a, b) for a in roots for b in roots if a is not b)


def test_normalize_path():
    assert normalize_path("C:\\Users\\Me\\") == "c:/users/me"
    assert normalize_path("/home/me/") == "/home/me"
    assert normalize_path("/") == "/"
    assert normalize_path("C:/") == "c:/"


def test_is_subpath_is_strict_and_component_based():
    assert is_subpath("/a/b", "/a")
    assert is_subpath("/A/B/c", "/a/b")
    assert not is_subpath("/a", "/a")
    assert not is_subpath("/a/", "/a")
    assert not is_subpath("/ab", "/a")
    assert is_subpath("/a", "/")
    assert is_parent_path("/a", "/a/b")


def test_find_parent_and_child_paths():
    existing = ["/photos", "/music/live", "/music/studio"]
    assert find_parent_paths("/photos/2020", existing) == ["/photos"]
    assert find_child_paths("/music", existing) == ["/music/live", "/music/studio"]


def test_empty_candidate_is_rejected():
    roots = PathSet(["/a"])

    for candidate in ("", "  "):
        result = roots.add(candidate)
        assert not result.is_valid
        assert result.warnings == ["Path is empty"]
        assert result.contains == []
    assert roots.roots == ["/a"]
    assert not is_subpath("/a", "")
    assert not is_subpath("", "/a")


def test_validate_path_duplicate():
    result = validate_path("/Photos/", ["/photos"])
    assert result.is_duplicate
    assert not result.is_valid
    assert result.warnings == ["This path is already in the list"]


def test_validate_path_covered_by_parent():
    result = validate_path("/a/b", ["/a", "/x"])
    assert not result.is_valid
    assert result.contained_by == ["/a"]
    assert result.warnings == ["This path is already covered by: /a"]


def test_validate_path_contains_children_is_valid():
    result = validate_path("/a", ["/a/b", "/a/c", "/z"])
    assert result.is_valid
    assert result.contains == ["/a/b", "/a/c"]
    assert result.warnings == ["This path would make redundant: /a/b, /a/c"]


def test_add_parent_replaces_children():
    roots, _ = add_path("/a/b", [])
    roots, _ = add_path("/a/c", roots)
    roots, validation = add_path("/a", roots)
    assert validation.is_valid
    assert roots == ["/a"]
    roots, validation = add_path("/a/b/d", roots)
    assert not validation.is_valid
    assert validation.contained_by == ["/a"]
    assert roots == ["/a"]


def test_add_path_does_not_mutate_input():
    existing = ["/a/b"]
    roots, _ = add_path("/a", existing)
    assert existing == ["/a/b"]
    assert roots == ["/a"]


def test_remove_path_uses_normalized_match():
    assert remove_path("/PHOTOS/", ["/photos", "/music"]) == ["/music"]
    assert remove_path("/other", ["/photos"]) == ["/photos"]


@pytest.mark.parametrize("sequence", [
    ["/a", "/a/b", "/b", "/A/", "/b/c/d", "/"],
    ["/x/y/z", "/x/y", "/x", "/w"],
    ["C:\\data", "c:/data/photos", "D:/", "d:/backup"],
])
def test_path_set_invariant_holds_after_each_add(sequence):
    path_set = PathSet()
    for candidate in sequence:
        path_set.add(candidate)
        assert _is_path_set(path_set.roots)


def test_path_set_collection_behaviour():
    path_set = PathSet(["/a/b", "/a"])
    assert path_set.roots == ["/a"]
    assert len(path_set) == 1
    assert "/A/" in path_set
    assert list(path_set) == ["/a"]
    assert not path_set.validate("/a/x").is_valid
    assert path_set.remove("/a")
    assert not path_set.remove("/a")
    path_set.add("/q")
    path_set.clear()
    assert path_set.roots == []


def test_clean_and_parse_entries():
    assert clean_path_entries(["  /a ", None, "", "'/b'", '"/c d"']) == ["/a", "/b", "/c d"]
    assert parse_cli_scan_paths("/a, '/b' ,,") == ["/a", "/b"]
    assert parse_cli_scan_paths(None) == []


def test_validate_scan_path_entries_limits():
    validate_scan_path_entries(["/a"] * MAX_SCAN_PATHS)
    with pytest.raises(ValueError, match="Too many scan paths"):
        validate_scan_path_entries(["/a"] * (MAX_SCAN_PATHS + 1))
    with pytest.raises(ValueError, match="too long"):
        validate_scan_path_entries(["/" + "x" * 5000])


def test_evaluate_scan_paths_statuses(tmp_path):
    ok_dir = tmp_path / "ok"
    ok_dir.mkdir()
    a_file = tmp_path / "file.txt"
    a_file.write_text("x")
    missing = tmp_path / "missing"

    valid, statuses = evaluate_scan_paths([str(ok_dir), str(a_file), str(missing)])

    assert valid == [str(ok_dir)]
    assert statuses == [
        (STATUS_OK, str(ok_dir)),
        (STATUS_NO_ACCESS, str(a_file)),
        (STATUS_MISSING, str(missing)),
    ]
    lines = build_scan_path_lines(statuses)
    assert lines[0].endswith(f"1. {ok_dir}")
    assert "[red]" in lines[2]
