"""Pytest configuration and fixtures."""

import textwrap
from pathlib import Path

import pytest


def _write_files(root: Path, files: dict) -> Path:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"))
    return root


@pytest.fixture
def write_project(tmp_path: Path):
    """Write ``{relative path: source}`` into a fresh project root.

    Sources are dedented, so tests can indent them inline. Returns the
    resolved root, matching SourceIndex.root.
    """
    root = tmp_path.resolve() / "project"
    root.mkdir()

    def _write(files: dict) -> Path:
        return _write_files(root, files)

    return _write


@pytest.fixture
def make_index(write_project):
    """Write a project and return a SourceIndex over it (git ignored)."""
    from callctx.source import SourceIndex

    def _make(files: dict):
        root = write_project(files)
        return SourceIndex(root, use_gitignore=False)

    return _make


@pytest.fixture
def analyze_function(make_index):
    """Write a project and analyze one function of one file in it.

    Usage: result = analyze_function(files, "pkg/a.py", "run", max_depth=2)
    """
    from callctx.analyzer import DependencyAnalyzer
    from callctx.models import ExtractionConfig

    def _analyze(files: dict, rel_path: str, name: str, **options):
        index = make_index(files)
        unit = index.get_unit(rel_path)
        assert unit is not None, f"{rel_path} was not indexed"
        result = DependencyAnalyzer(index).analyze_function(unit, name, ExtractionConfig(**options))
        assert result.error is None, result.error
        return result

    return _analyze
