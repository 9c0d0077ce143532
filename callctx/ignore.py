"""Ignore rules for project scanning (.callctxignore + .gitignore).

Two separate questions are answered here:

* which files the SourceIndex lists at all (``should_ignore``), driven by a
  gitignore-syntax ``.callctxignore`` file with ``.gitignore`` as fallback;
* which listed files are third-party code (``is_vendored_path``). Vendored
  files stay resolvable but are never expanded as dependencies.

Precedence for ``should_ignore`` (highest to lowest):
1. .callctxignore patterns, including ``!`` un-ignores
2. .gitignore patterns (via git check-ignore, if in a git repo)
3. DEFAULT_TEMPLATE (if no .callctxignore exists)
"""

from __future__ import annotations

import logging
import subprocess
from functools import lru_cache
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".callctxignore"

DEFAULT_TEMPLATE = """\
# callctx ignore patterns (gitignore syntax)
# Files matched here are never listed or resolved.

# Environments and caches
node_modules/
.venv/
venv/
env/
__pycache__/
.tox/
.nox/
.pytest_cache/
.mypy_cache/

# Build outputs
dist/
build/
out/
target/
bin/
*.egg-info/

# Version control and editors
.git/
.hg/
.svn/
.idea/
.vscode/

# Project-specific
# Add your custom patterns below
"""

# Paths holding code the project does not own. Matched against paths
# relative to the project root (or absolute paths for files outside it).
VENDORED_PATTERNS = (
    "vendor/",
    "site-packages/",
    "dist-packages/",
    "**/pkg/mod/",
    "node_modules/",
    "third_party/",
    "testdata/",
    "*.pb.go",
    "*_generated.go",
    "zz_generated*.go",
    "*_pb2.py",
    "generated-sources/",
)


def _run_git(args: list[str], cwd: str | Path) -> int | None:
    """Run a git subcommand quietly; None if git is missing or hangs."""
    try:
        completed = subprocess.run(["git", *args], cwd=str(cwd), capture_output=True, timeout=5)
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as exc:
        logger.debug(f"git {args[0]} failed in {cwd}: {exc}")
        return None
    return completed.returncode


@lru_cache(maxsize=128)
def is_git_repo(project_dir: str) -> bool:
    return _run_git(["rev-parse", "--is-inside-work-tree"], project_dir) == 0


def is_gitignored(file_path: str | Path, project_dir: str | Path) -> bool:
    """Ask ``git check-ignore`` about a single path.

    Exit status 0 means ignored; 1 (not ignored), 128 (error) and a failed
    invocation all count as not ignored.
    """
    root = Path(project_dir)
    return _run_git(["check-ignore", "-q", _relative_posix(Path(file_path), root)], root) == 0


def load_ignore_patterns(project_dir: str | Path) -> pathspec.PathSpec:
    """Load the project's .callctxignore, or the default template if absent."""
    ignore_path = Path(project_dir) / IGNORE_FILE_NAME
    if ignore_path.exists():
        lines = ignore_path.read_text(encoding="utf-8", errors="replace").splitlines()
        logger.debug(f"Loaded {len(lines)} ignore lines from {ignore_path}")
    else:
        lines = DEFAULT_TEMPLATE.splitlines()
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def ensure_ignore_file(project_dir: str | Path) -> tuple[bool, str]:
    """Write DEFAULT_TEMPLATE to .callctxignore unless the file exists.

    Returns:
        Tuple of (created, message)
    """
    project_path = Path(project_dir)
    if not project_path.is_dir():
        return False, f"Project directory does not exist: {project_path}"

    ignore_path = project_path / IGNORE_FILE_NAME
    if ignore_path.exists():
        return False, f"{IGNORE_FILE_NAME} already exists at {ignore_path}"

    ignore_path.write_text(DEFAULT_TEMPLATE, encoding="utf-8")
    return True, f"Created {ignore_path} with default patterns"


def _relative_posix(file_path: Path, project_dir: Path | None) -> str:
    if project_dir is not None:
        try:
            return file_path.relative_to(project_dir).as_posix()
        except ValueError:
            pass
    return file_path.as_posix().lstrip("/")


def should_ignore(
    file_path: str | Path,
    project_dir: str | Path,
    spec: pathspec.PathSpec | None = None,
    use_gitignore: bool = True,
) -> bool:
    """Check if a file is excluded from scanning.

    .callctxignore is the final authority: a ``!`` pattern matching the file
    overrides .gitignore, a positive match ignores it, and only when neither
    applies is git consulted.
    """
    if spec is None:
        spec = load_ignore_patterns(project_dir)

    project_path = Path(project_dir)
    is_dir = str(file_path).endswith(("/", "\\"))
    file_path = Path(file_path)
    rel_path = _relative_posix(file_path, project_path)
    if is_dir:
        rel_path += "/"

    ignored = spec.match_file(rel_path)
    if _has_negation_for_file(spec, rel_path):
        return ignored
    if ignored:
        return True

    if use_gitignore and is_git_repo(str(project_path)):
        return is_gitignored(file_path, project_path)
    return False


def _has_negation_for_file(spec: pathspec.PathSpec, rel_path: str) -> bool:
    """True if a ``!`` pattern in the pattern set matches the file."""
    for pattern in spec.patterns:
        # Negations have include=False; match_file() on them is falsy either way
        if getattr(pattern, "include", None) is False and pattern.regex is not None:
            if pattern.regex.match(rel_path):
                return True
    return False


@lru_cache(maxsize=1)
def _vendored_spec() -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", VENDORED_PATTERNS)


def is_vendored_path(file_path: str | Path, project_dir: str | Path | None = None) -> bool:
    """True if the file lives under a vendored, library or generated path."""
    root = Path(project_dir) if project_dir is not None else None
    return _vendored_spec().match_file(_relative_posix(Path(file_path), root))
