import ast
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _imports(py_file: Path):
    tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            yield node.lineno, node.module or ""


@pytest.mark.parametrize(
    "layer, forbidden",
    [
        ("pipeline", ["spacesaver.ui"]),
        ("domain", ["spacesaver.ui", "spacesaver.pipeline", "spacesaver.infrastructure"]),
        ("infrastructure", ["spacesaver.ui", "spacesaver.pipeline"]),
    ],
)
def test_layer_does_not_import_outer_layers(layer, forbidden):
    layer_dir = REPO_ROOT / "spacesaver" / layer

    violations = []
    for py_file in layer_dir.rglob("*.py"):
        rel_path = py_file.relative_to(REPO_ROOT)
        for lineno, module in _imports(py_file):
            for prefix in forbidden:
                if module == prefix or module.startswith(prefix + "."):
                    violations.append(f"{rel_path}:{lineno} imports {module}")

    assert not violations, f"{layer} layer imports an outer layer:\n" + "\n".join(violations)
