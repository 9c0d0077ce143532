"""
Source files as analysis units, and the project-wide file index.

A SourceUnit is a language-agnostic view over one file: its text, the
definitions the language adapter finds in it, its package name and imports.
Everything derived from the text is computed lazily and dropped when the
text changes.

A SourceIndex lists the files of a language under a project root (honouring
.callctxignore / .gitignore) and hands out one cached SourceUnit per path.
Its ``generation`` counter increases whenever an indexed file changes, which
is what the resolver's DefinitionCache keys its entries on.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional

from . import text_scan
from .adapters import get_adapter
from .errors import FileTooLargeError, UnsupportedLanguageError
from .ignore import IGNORE_FILE_NAME, is_vendored_path, load_ignore_patterns, should_ignore
from .models import Definition, ImportInfo, Language
from .parsing import parse_source

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
MAX_FILE_SIZE = int(os.environ.get("CALLCTX_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE))

IN_MEMORY_PATH = "<memory>"


class SourceUnit:
    """One source file, on disk or held in memory (an unsaved editor buffer)."""

    def __init__(
        self,
        path: str | Path,
        language: Optional[Language] = None,
        text: Optional[str] = None,
        root: Optional[str | Path] = None,
    ):
        self.path = Path(path)
        if language is None:
            language = Language.from_path(self.path)
            if language is None:
                raise UnsupportedLanguageError(self.path.suffix or str(self.path))
        try:
            self.language = Language(language)
        except ValueError:
            raise UnsupportedLanguageError(language) from None
        self.root = Path(root) if root is not None else None
        self.in_memory = text is not None
        self._text: Optional[str] = text
        self._stat: Optional[tuple[int, int]] = None
        # Kept across content changes so Java can be re-parsed incrementally
        self._tree: Any = None
        self._tree_source: Optional[bytes] = None
        self._reset()

    @classmethod
    def from_text(cls, text: str, path: str | Path = IN_MEMORY_PATH, language=None, root=None) -> "SourceUnit":
        return cls(path, language=language, text=text, root=root)

    def _reset(self) -> None:
        self._bytes: Optional[bytes] = None
        self._hash: Optional[str] = None
        self._segments: Optional[list[text_scan.Segment]] = None
        self._masked: Optional[str] = None
        self._offsets: Optional[list[int]] = None
        self._definitions: Optional[list[Definition]] = None
        self._imports: Optional[list[ImportInfo]] = None
        self._package: Optional[str] = None

    def __repr__(self) -> str:
        return f"SourceUnit({self.path}, {self.language.value})"

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def _load(self) -> str:
        stat = self.path.stat()
        if stat.st_size > MAX_FILE_SIZE:
            raise FileTooLargeError(self.path, stat.st_size, MAX_FILE_SIZE)
        self._stat = (stat.st_mtime_ns, stat.st_size)
        return self.path.read_bytes().decode("utf-8", errors="replace")

    def read(self) -> str:
        """Return the file text, loading it on first use."""
        if self._text is None:
            self._text = self._load()
        return self._text

    @property
    def text(self) -> str:
        return self.read()

    @property
    def source_bytes(self) -> bytes:
        if self._bytes is None:
            self._bytes = self.read().encode("utf-8")
        return self._bytes

    @property
    def content_hash(self) -> str:
        if self._hash is None:
            self._hash = hashlib.sha1(self.source_bytes).hexdigest()
        return self._hash

    @property
    def is_ascii(self) -> bool:
        return len(self.source_bytes) == len(self.read())

    def update_text(self, text: str) -> bool:
        """Replace the content; returns True if it differs from the old one."""
        old_hash = self.content_hash if self._text is not None else None
        self._text = text
        self._reset()
        return self.content_hash != old_hash

    def refresh(self) -> bool:
        """Re-read the file if it changed on disk since it was loaded.

        Returns:
            True if the content changed
        """
        if self.in_memory or self._text is None:
            return False
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            logger.debug(f"{self.path} disappeared from disk")
            return False
        if (stat.st_mtime_ns, stat.st_size) == self._stat:
            return False
        return self.update_text(self._load())

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def adapter(self):
        return get_adapter(self.language)

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def relative_path(self) -> str:
        if self.root is not None:
            try:
                return self.path.relative_to(self.root).as_posix()
            except ValueError:
                pass
        return self.path.as_posix()

    @property
    def is_project_owned(self) -> bool:
        return not is_vendored_path(self.path, self.root)

    @property
    def segments(self) -> list[text_scan.Segment]:
        if self._segments is None:
            self._segments = text_scan.scan_segments(self.read(), self.adapter.syntax)
        return self._segments

    @property
    def masked(self) -> str:
        """The text with string literals and comments blanked out."""
        if self._masked is None:
            self._masked = text_scan.mask(self.read(), self.segments)
        return self._masked

    @property
    def line_offsets(self) -> list[int]:
        if self._offsets is None:
            self._offsets = text_scan.line_offsets(self.read())
        return self._offsets

    def line_of(self, offset: int) -> int:
        """0-based line index of a character offset."""
        return text_scan.line_index(self.line_offsets, offset)

    def char_offset(self, byte_offset: int) -> int:
        if self.is_ascii:
            return byte_offset
        return len(self.source_bytes[:byte_offset].decode("utf-8", errors="replace"))

    def byte_offset(self, char_offset: int) -> int:
        if self.is_ascii:
            return char_offset
        return len(self.read()[:char_offset].encode("utf-8"))

    @property
    def tree(self) -> Any:
        """Syntax tree for structured languages, re-parsed incrementally."""
        source = self.source_bytes
        if self._tree is None or self._tree_source != source:
            self._tree = parse_source(self.language, source, self._tree, self._tree_source)
            self._tree_source = source
        return self._tree

    @property
    def package_name(self) -> str:
        if self._package is None:
            self._package = self.adapter.package_name(self)
        return self._package

    @property
    def imports(self) -> list[ImportInfo]:
        if self._imports is None:
            self._imports = self.adapter.parse_imports(self)
        return self._imports

    @property
    def definitions(self) -> list[Definition]:
        """Top-level definitions; nested ones hang off ``children``."""
        if self._definitions is None:
            self._definitions = self.adapter.collect_definitions(self)
        return self._definitions

    def iter_definitions(self) -> Iterator[Definition]:
        """All definitions, outer before inner, in source order."""
        for definition in self.definitions:
            yield from definition.walk()

    def find_definitions(self, name: str) -> list[Definition]:
        """Definitions whose name or qualified name equals ``name``."""
        return [d for d in self.iter_definitions() if name in (d.name, d.qualified_name)]

    def definition_at(self, offset: int) -> Optional[Definition]:
        """Innermost definition containing the character offset."""
        found = None
        candidates = self.definitions
        while candidates:
            match = next((d for d in candidates if d.contains(offset)), None)
            if match is None:
                break
            found = match
            candidates = match.children
        return found


class SourceIndex:
    """Files of a project, one cached SourceUnit per path."""

    def __init__(self, root: str | Path, respect_ignore: bool = True, use_gitignore: bool = True):
        self.root = Path(root).resolve()
        self.respect_ignore = respect_ignore
        self.use_gitignore = use_gitignore
        self.generation = 0
        self._units: dict[Path, SourceUnit] = {}
        self._listing: dict[Language, list[Path]] = {}
        self._ignore_spec = None
        self._ignore_stamp: Optional[tuple] = None
        # Relative path -> ignored; git is asked at most once per path
        self._ignored: dict[str, bool] = {}

    def __repr__(self) -> str:
        return f"SourceIndex({self.root}, generation={self.generation})"

    def _is_ignored(self, rel_path: str) -> bool:
        ignored = self._ignored.get(rel_path)
        if ignored is None:
            if self._ignore_spec is None:
                self._ignore_spec = load_ignore_patterns(self.root)
                self._ignore_stamp = self._ignore_files_stamp()
            ignored = should_ignore(rel_path, self.root, self._ignore_spec, self.use_gitignore)
            self._ignored[rel_path] = ignored
        return ignored

    def _ignore_files_stamp(self) -> tuple:
        stamp = []
        for name in (IGNORE_FILE_NAME, ".gitignore"):
            try:
                stat = (self.root / name).stat()
            except OSError:
                stamp.append(None)
            else:
                stamp.append((stat.st_mtime_ns, stat.st_size))
        return tuple(stamp)

    def scan(self, language: Language) -> list[Path]:
        """Walk the root for files of ``language``, pruning ignored directories."""
        extensions = set(Language(language).extensions)
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            rel_dir = os.path.relpath(dirpath, self.root)
            if self.respect_ignore:
                if rel_dir != "." and self._is_ignored(rel_dir + "/"):
                    dirnames.clear()
                    continue
                dirnames[:] = sorted(
                    d for d in dirnames if not self._is_ignored(os.path.join(rel_dir, d) + "/")
                )
            else:
                dirnames.sort()

            for filename in sorted(filenames):
                if os.path.splitext(filename)[1].lower() not in extensions:
                    continue
                rel_path = os.path.normpath(os.path.join(rel_dir, filename))
                if self.respect_ignore and self._is_ignored(rel_path):
                    continue
                files.append(Path(dirpath, filename))
        return files

    def _paths(self, language: Language) -> list[Path]:
        language = Language(language)
        if language not in self._listing:
            self._listing[language] = self.scan(language)
            logger.debug(f"Indexed {len(self._listing[language])} {language.value} files under {self.root}")
        return self._listing[language]

    def list_files(self, language: Language) -> list[SourceUnit]:
        """SourceUnits for every indexed file of ``language``."""
        units = []
        for path in self._paths(language):
            unit = self.get_unit(path)
            if unit is not None:
                units.append(unit)
        return units

    def get_unit(self, path: str | Path) -> Optional[SourceUnit]:
        """Cached unit for a path, or None if it is not a supported source file."""
        path = Path(path)
        if not path.is_absolute():
            path = self.root / path
        key = Path(os.path.normpath(path))
        unit = self._units.get(key)
        if unit is not None:
            return unit
        if Language.from_path(key) is None or not key.is_file():
            return None
        unit = SourceUnit(key, root=self.root)
        self._units[key] = unit
        return unit

    def register(self, unit: SourceUnit) -> SourceUnit:
        """Overlay a unit (typically an unsaved buffer) on its path."""
        key = Path(os.path.normpath(unit.path if unit.path.is_absolute() else self.root / unit.path))
        current = self._units.get(key)
        if current is unit:
            return unit
        if unit.root is None:
            unit.root = self.root
        unit.path = key
        self._units[key] = unit
        if current is None or current._text is None or current.content_hash != unit.content_hash:
            self.generation += 1
        return unit

    def units_in_directory(self, directory: str | Path, language: Language) -> list[SourceUnit]:
        directory = Path(os.path.normpath(directory))
        return [unit for unit in self.list_files(language) if unit.path.parent == directory]

    def refresh(self) -> bool:
        """Pick up on-disk changes; bumps ``generation`` if anything changed."""
        changed = False
        if self._ignore_spec is not None and self._ignore_files_stamp() != self._ignore_stamp:
            logger.debug(f"Ignore rules under {self.root} changed; reloading")
            self._ignore_spec = None
            self._ignored.clear()
        for unit in list(self._units.values()):
            if unit.refresh():
                logger.debug(f"{unit.path} changed on disk")
                changed = True
        for language, old_paths in list(self._listing.items()):
            new_paths = self.scan(language)
            if new_paths != old_paths:
                self._listing[language] = new_paths
                changed = True
        if changed:
            self.generation += 1
        return changed
