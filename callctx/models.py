"""
Data model for callctx.

ExtractionConfig is the per-request configuration, Definition is one
function/method/class found in a SourceUnit, CallSite and ImportInfo are what
the language adapters extract from source text, and FunctionContext /
AnalysisResult form the dependency graph handed to a formatter.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

if TYPE_CHECKING:
    from .source import SourceUnit


class Language(str, Enum):
    """Languages with a registered adapter."""

    PYTHON = "python"
    GO = "go"
    JAVA = "java"

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(ext for ext, lang in EXTENSION_TO_LANGUAGE.items() if lang is self)

    @classmethod
    def from_path(cls, path: str | Path) -> Optional["Language"]:
        return EXTENSION_TO_LANGUAGE.get(Path(path).suffix.lower())


EXTENSION_TO_LANGUAGE: dict[str, Language] = {
    ".py": Language.PYTHON,
    ".pyw": Language.PYTHON,
    ".go": Language.GO,
    ".java": Language.JAVA,
}

# Call-site kinds
PLAIN = "plain"
SELF = "self"
SUPER = "super"
QUALIFIED = "qualified"
NEW = "new"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class ExtractionConfig:
    """Immutable options for one analysis request."""

    include_comments: bool = True
    include_imports: bool = True
    include_tests: bool = False
    max_depth: int = 3

    def __post_init__(self):
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ExtractionConfig":
        """Build a config from CALLCTX_* environment variables over the defaults."""
        environ = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            include_comments=_env_flag(environ, "CALLCTX_INCLUDE_COMMENTS", defaults.include_comments),
            include_imports=_env_flag(environ, "CALLCTX_INCLUDE_IMPORTS", defaults.include_imports),
            include_tests=_env_flag(environ, "CALLCTX_INCLUDE_TESTS", defaults.include_tests),
            max_depth=int(environ.get("CALLCTX_MAX_DEPTH", defaults.max_depth)),
        )

    def with_options(self, **changes) -> "ExtractionConfig":
        return replace(self, **changes)


def make_signature(file_path: str | Path, qualified_name: str) -> str:
    """Dedup key of a definition: file path and qualified name."""
    return f"{file_path}::{qualified_name}"


@dataclass(frozen=True)
class ImportInfo:
    """One name bound by an import statement.

    ``module`` is the module/package path, ``name`` the imported symbol (None
    when the whole module is imported) and ``local_name`` the identifier the
    statement binds in the importing file.
    """

    module: str
    name: Optional[str] = None
    alias: Optional[str] = None
    local_name: str = ""
    is_wildcard: bool = False
    is_static: bool = False
    statement: str = ""
    line: int = 0


@dataclass(frozen=True)
class CallSite:
    """A call expression found in a definition body."""

    text: str
    name: str
    qualifier: str = ""
    kind: str = PLAIN
    offset: int = 0
    line: int = 0


@dataclass(eq=False)
class Definition:
    """A function, method or class declared in a SourceUnit.

    Offsets are character offsets into ``unit.text``; ``start`` is the first
    column of the first line of the definition, decorators and annotations
    included. ``body_start`` is the offset just past the declaration header.
    """

    name: str
    kind: str
    unit: "SourceUnit"
    start: int
    end: int
    start_line: int
    end_line: int
    body_start: int = -1
    container: Optional[str] = None
    parent: Optional["Definition"] = None
    children: list["Definition"] = field(default_factory=list)
    bases: tuple[str, ...] = ()
    receiver: Optional[str] = None
    receiver_type: Optional[str] = None
    node: Any = None

    @property
    def qualified_name(self) -> str:
        if self.container:
            return f"{self.container}.{self.name}"
        return self.name

    @property
    def signature(self) -> str:
        return make_signature(self.unit.path, self.qualified_name)

    @property
    def text(self) -> str:
        return self.unit.text[self.start:self.end]

    @property
    def is_function(self) -> bool:
        return self.kind in ("function", "method")

    @property
    def is_class(self) -> bool:
        return self.kind == "class"

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def walk(self) -> Iterator["Definition"]:
        """Yield this definition and all nested ones in source order."""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def __repr__(self) -> str:
        return f"Definition({self.kind} {self.qualified_name} @ {self.unit.path}:{self.start_line})"


@dataclass(eq=False)
class FunctionContext:
    """One analyzed function in the dependency graph.

    Contexts compare and hash by ``signature``. Dependencies keep insertion
    order and never contain duplicates.
    """

    name: str
    file_name: str
    file_path: str
    source_text: str
    package_name: str
    language: Language
    is_project_owned: bool = True
    declaration: str = ""
    start_line: int = 0
    imports: tuple[str, ...] = ()
    _dependencies: dict[str, "FunctionContext"] = field(default_factory=dict, repr=False)

    @property
    def signature(self) -> str:
        return make_signature(self.file_path, self.name)

    @property
    def dependencies(self) -> tuple["FunctionContext", ...]:
        return tuple(self._dependencies.values())

    def add_dependency(self, other: "FunctionContext") -> bool:
        """Attach ``other``; returns False if it was already a dependency."""
        if other.signature == self.signature or other.signature in self._dependencies:
            return False
        self._dependencies[other.signature] = other
        return True

    def __eq__(self, other) -> bool:
        if not isinstance(other, FunctionContext):
            return NotImplemented
        return self.signature == other.signature

    def __hash__(self) -> int:
        return hash(self.signature)


@dataclass
class AnalysisResult:
    """Insertion-ordered set of contexts produced by one analysis run."""

    root: Optional[FunctionContext] = None
    error: Optional[BaseException] = None
    _contexts: dict[str, FunctionContext] = field(default_factory=dict, repr=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def contexts(self) -> list[FunctionContext]:
        return list(self._contexts.values())

    @property
    def names(self) -> list[str]:
        return [context.name for context in self._contexts.values()]

    def add(self, context: FunctionContext) -> bool:
        if context.signature in self._contexts:
            return False
        self._contexts[context.signature] = context
        return True

    def get(self, signature: str) -> Optional[FunctionContext]:
        return self._contexts.get(signature)

    def find(self, name: str) -> Optional[FunctionContext]:
        """First context whose qualified name is ``name``."""
        for context in self._contexts.values():
            if context.name == name:
                return context
        return None

    def __iter__(self) -> Iterator[FunctionContext]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, item) -> bool:
        if isinstance(item, FunctionContext):
            return item.signature in self._contexts
        return item in self._contexts
