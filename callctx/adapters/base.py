"""
Interface shared by all language adapters.

An adapter knows how one language spells definitions, calls, imports and
comments. It never resolves anything itself: the Resolver asks it for
candidate files and class tables and does the lookup.

HeuristicAdapter adds the regex call-site scanner used by the languages that
are read without a grammar. It works on ``SourceUnit.masked`` so that calls
mentioned in strings or comments are not picked up.
"""

import re
import textwrap
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from .. import text_scan
from ..models import PLAIN, QUALIFIED, SELF, SUPER, CallSite, Definition, ExtractionConfig, ImportInfo, Language

if TYPE_CHECKING:
    from ..source import SourceIndex, SourceUnit

# identifier( with an optional dotted qualifier; super()/super(X, self) may
# appear as the first qualifier segment
CALL_RE = re.compile(
    r"(?<![\w.])(?P<qualifier>(?:(?:super\s*\([^()]*\)|\w+)\s*\.\s*)*)(?P<name>\w+)\s*\("
)
CALLEE_RE = re.compile(
    r"^\s*(?:new\s+)?(?P<qualifier>(?:(?:super\s*\([^()]*\)|\w+)\s*\.\s*)*)(?P<name>\w+)\s*(?:<[^()]*>\s*)?\("
)
ACCESSOR_RE = re.compile(r"^(?:[gG]et|[sS]et)(?:[A-Z]|_\w)")


class LanguageAdapter(ABC):
    """Language-specific knowledge used by the Resolver and DependencyAnalyzer."""

    language: Language
    syntax: text_scan.CommentSyntax
    builtins: frozenset = frozenset()
    keywords: frozenset = frozenset()
    object_protocol_methods: frozenset = frozenset()
    # Methods of the enclosing class are callable without a receiver
    class_scope_is_lexical = False
    inherits_constructors = True

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    @abstractmethod
    def collect_definitions(self, unit: "SourceUnit") -> list[Definition]:
        """Top-level definitions of a unit, nested ones attached as children."""

    @abstractmethod
    def is_function_definition(self, node: Any) -> bool:
        """True for a function/method Definition, syntax node or source text."""

    @abstractmethod
    def extract_name(self, text: str) -> str:
        """Name of the function declared at the start of ``text``."""

    @abstractmethod
    def extract_signature(self, text: str) -> str:
        """Declaration text up to the body delimiter, trimmed."""

    @abstractmethod
    def extract_body(self, source: str, start_line: int = 0) -> str:
        """Full text of the definition starting on 0-based ``start_line``."""

    @abstractmethod
    def collect_call_sites(self, definition: Definition) -> list[CallSite]:
        """Call expressions in a definition body, in source order."""

    @abstractmethod
    def statement_count(self, definition: Definition) -> int:
        ...

    @abstractmethod
    def is_test(self, definition: Definition) -> bool:
        ...

    def constructor_name(self, class_def: Definition) -> Optional[str]:
        return None

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    @abstractmethod
    def package_name(self, unit: "SourceUnit") -> str:
        ...

    @abstractmethod
    def parse_imports(self, unit: "SourceUnit") -> list[ImportInfo]:
        ...

    @abstractmethod
    def module_units(self, module: str, unit: "SourceUnit", index: Optional["SourceIndex"]) -> list["SourceUnit"]:
        """Files implementing a module/package path, as seen from ``unit``."""

    def module_candidates(
        self, imp: ImportInfo, unit: "SourceUnit", index: Optional["SourceIndex"]
    ) -> list["SourceUnit"]:
        """Files in which the symbol bound by ``imp`` is defined."""
        return self.module_units(imp.module, unit, index)

    def sibling_units(self, unit: "SourceUnit", index: Optional["SourceIndex"]) -> list["SourceUnit"]:
        """Other files of the same package (empty where the language has none)."""
        return []

    def module_level_definitions(self, unit: "SourceUnit") -> list[Definition]:
        """Definitions reachable by a bare name from anywhere in the file."""
        return unit.definitions

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def class_bases(self, class_def: Definition) -> tuple[str, ...]:
        return class_def.bases

    def method_table(self, class_def: Definition, units: list["SourceUnit"]) -> dict[str, Definition]:
        """Methods declared directly on a class; first declaration wins."""
        table: dict[str, Definition] = {}
        for child in class_def.children:
            if child.is_function:
                table.setdefault(child.name, child)
        return table

    def self_names(self, definition: Definition) -> frozenset:
        return frozenset()

    def infer_variable_type(self, variable: str, definition: Definition) -> Optional[str]:
        """Declared or constructed type of a local name, if it can be seen."""
        return None

    # ------------------------------------------------------------------
    # Calls and filtering
    # ------------------------------------------------------------------

    def extract_call_name(self, call_text: str) -> str:
        """Callee of a call expression.

        The qualifier is dropped unless it refers to the current object or
        its superclass, e.g. ``pkg.run(x)`` gives ``run`` but ``self.run(x)``
        gives ``self.run``.
        """
        match = CALLEE_RE.match(call_text)
        if match is None:
            return ""
        name = match.group("name")
        qualifier = re.sub(r"\s+", "", match.group("qualifier")).rstrip(".")
        if qualifier and (qualifier in self._receiver_words() or qualifier.startswith("super")):
            return f"{qualifier}.{name}"
        return name

    def _receiver_words(self) -> frozenset:
        return frozenset({"self", "cls", "this"})

    def classify_call(self, qualifier: str, definition: Definition) -> str:
        if not qualifier:
            return PLAIN
        if qualifier in self.self_names(definition):
            return SELF
        if qualifier == "super" or qualifier.startswith("super("):
            return SUPER
        return QUALIFIED

    def is_builtin(self, name: str) -> bool:
        return name in self.builtins

    def is_trivial_accessor(self, definition: Definition) -> bool:
        if definition.name in self.object_protocol_methods:
            return True
        return bool(ACCESSOR_RE.match(definition.name)) and self.statement_count(definition) <= 1

    def is_relevant(self, definition: Definition, config: ExtractionConfig) -> bool:
        """Whether a definition is worth emitting as context."""
        if not config.include_tests and self.is_test(definition):
            return False
        return not self.is_trivial_accessor(definition)

    # ------------------------------------------------------------------
    # Context text
    # ------------------------------------------------------------------

    def strip_comments(self, text: str) -> str:
        return text_scan.strip_comments(text, self.syntax)

    def attached_comment(self, unit: "SourceUnit", definition: Definition) -> str:
        """Comment lines directly above a definition (no blank line between)."""
        offsets = unit.line_offsets
        first_line = unit.line_of(definition.start)
        comments = [s for s in unit.segments if s.kind == text_scan.COMMENT and s.end <= definition.start]
        start = definition.start
        line = first_line
        while comments:
            segment = comments[-1]
            segment_line = unit.line_of(segment.start)
            end_line = unit.line_of(max(segment.end - 1, segment.start))
            if end_line != line - 1:
                break
            line_start = offsets[segment_line]
            between = unit.text[segment.end:offsets[line]]
            if unit.text[line_start:segment.start].strip() or between.strip():
                break
            start = line_start
            line = segment_line
            comments.pop()
        return unit.text[start:definition.start]

    def relevant_imports(self, unit: "SourceUnit", definition: Definition) -> tuple[str, ...]:
        """Statements of the imports whose bound name is used in the body."""
        body = unit.masked[definition.start:definition.end]
        statements: list[str] = []
        for imp in unit.imports:
            if imp.is_wildcard or not imp.local_name:
                continue
            if re.search(rf"(?<![\w.]){re.escape(imp.local_name)}\b", body) and imp.statement not in statements:
                statements.append(imp.statement)
        return tuple(statements)

    def source_text(self, definition: Definition, config: ExtractionConfig) -> str:
        """Text emitted for a definition under the given config."""
        if config.include_comments:
            comment = self.attached_comment(definition.unit, definition)
            return textwrap.dedent(comment + definition.text).strip("\n")
        return self.strip_comments(textwrap.dedent(definition.text)).strip("\n")


class HeuristicAdapter(LanguageAdapter):
    """Adapter whose definitions come from regexes over masked text."""

    def _header_ranges(self, definition: Definition) -> list[tuple[int, int]]:
        return [(d.start, d.body_start) for d in definition.walk() if d.body_start > d.start]

    def collect_call_sites(self, definition: Definition) -> list[CallSite]:
        unit = definition.unit
        masked = unit.masked
        headers = self._header_ranges(definition)
        calls = []
        for match in CALL_RE.finditer(masked, definition.start, definition.end):
            offset = match.start("name")
            if any(start <= offset < end for start, end in headers):
                continue
            name = match.group("name")
            if name in self.keywords:
                continue
            qualifier = re.sub(r"\s+", "", match.group("qualifier")).rstrip(".")
            calls.append(
                CallSite(
                    text=unit.text[match.start():match.end()],
                    name=name,
                    qualifier=qualifier,
                    kind=self.classify_call(qualifier, definition),
                    offset=offset,
                    line=unit.line_of(offset) + 1,
                )
            )
        return calls

    def _make_definition(
        self, unit, lines, name, kind, first, last, body_start, parent=None, **extra
    ) -> Definition:
        """Build a Definition spanning 0-based lines ``first``..``last``."""
        offsets = unit.line_offsets
        container = parent.qualified_name if parent is not None else extra.pop("container", None)
        definition = Definition(
            name=name,
            kind=kind,
            unit=unit,
            start=offsets[first],
            end=offsets[last] + len(lines[last].rstrip("\r")),
            start_line=first + 1,
            end_line=last + 1,
            body_start=body_start,
            container=container,
            parent=parent,
            **extra,
        )
        if parent is not None:
            parent.children.append(definition)
        return definition
