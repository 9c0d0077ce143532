"""
Go adapter: brace counting over masked source.

Functions and methods are top-level only; a method's container is its
receiver type. Types (struct, interface or any named type) are recorded as
class definitions so receiver methods and embedded fields can be looked up.
A package is every non-test file in one directory sharing a ``package``
clause.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

from .. import text_scan
from ..models import Definition, ImportInfo, Language
from .base import HeuristicAdapter

FUNC_RE = re.compile(
    r"^\s*func\s+"
    r"(?:\(\s*(?:(?P<recv>\w+)\s+)?\*?\s*(?P<rtype>\w+)\s*(?:\[[^\]]*\])?\s*\)\s*)?"
    r"(?P<name>\w+)\s*(?:\[[^\]]*\]\s*)?\("
)
FUNCTION_TEXT_RE = re.compile(r"^\s*func\s+(\(\s*\w+\s+\*?\w+\s*\)\s+)?\w+\s*\(")
TYPE_RE = re.compile(r"^\s*type\s+(?P<name>\w+)(?:\[[^\]]*\])?\s+(?P<rest>.*)$")
GROUPED_TYPE_RE = re.compile(r"^\s*(?P<name>\w+)(?:\[[^\]]*\])?\s+(?P<rest>.*)$")
TYPE_GROUP_RE = re.compile(r"^\s*type\s*\(\s*$")
PACKAGE_RE = re.compile(r"^\s*package\s+(\w+)", re.M)
IMPORT_SPEC_RE = re.compile(r'^\s*(?:import\s+)?(?:(?P<alias>[\w.]+)\s+)?["`](?P<path>[^"`]+)["`]')
EMBEDDED_RE = re.compile(r"^\*?(?P<type>[\w.]+)$")
TEST_NAME_RE = re.compile(r"^(?:Test|Benchmark|Example|Fuzz)(?:[A-Z_0-9]|$)")
VERSION_SUFFIX_RE = re.compile(r"^v\d+$")
TYPE_NAME = r"(?P<type>[A-Za-z_][\w.]*)"
TYPE_LITERAL_RE = re.compile(r"\b(?:interface|struct)\s*$")

GO_BUILTINS = frozenset({
    "append", "cap", "clear", "close", "complex", "copy", "delete", "imag", "len", "make",
    "max", "min", "new", "panic", "print", "println", "real", "recover",
    # conversions
    "any", "bool", "byte", "complex64", "complex128", "error", "float32", "float64", "int",
    "int8", "int16", "int32", "int64", "rune", "string", "uint", "uint8", "uint16", "uint32",
    "uint64", "uintptr",
})

GO_KEYWORDS = frozenset({
    "break", "case", "chan", "const", "continue", "default", "defer", "else", "fallthrough",
    "for", "func", "go", "goto", "if", "import", "interface", "map", "package", "range",
    "return", "select", "struct", "switch", "type", "var",
})


def _opens_type_literal(line: str, col: int) -> bool:
    """True if the ``{`` at ``col`` belongs to an ``interface{...}`` or ``struct{...}`` type."""
    return TYPE_LITERAL_RE.search(line, 0, col) is not None


def _brace_end(masked: list[str], start: int, type_literals: bool = False) -> tuple[int, int]:
    """(last line, offset in that line just past ``{``) of the block opening at ``start``.

    With ``type_literals`` (function headers), braces of ``interface{}`` and
    ``struct{}`` types before the body are skipped like parentheses.
    Declarations without a body end on the line their header closes.
    Unbalanced input runs to the end of the text.
    """
    depth = 0
    parens = 0
    literals = 0
    opened = False
    body_col = -1
    for k in range(start, len(masked)):
        line = masked[k]
        for col, ch in enumerate(line):
            if ch in "([":
                parens += 1
            elif ch in ")]":
                parens -= 1
            elif ch == "{":
                if opened:
                    depth += 1
                elif parens > 0:
                    continue
                elif literals or (type_literals and _opens_type_literal(line, col)):
                    literals += 1
                else:
                    opened = True
                    body_col = col + 1
                    depth = 1
            elif ch == "}":
                if opened:
                    depth -= 1
                elif literals:
                    literals -= 1
            if opened and depth <= 0:
                return k, body_col
        if (
            not opened
            and parens <= 0
            and not literals
            and line.strip()
            and not line.rstrip().endswith((",", "("))
        ):
            return k, len(line)
    last = len(masked) - 1
    return last, body_col if opened else len(masked[last])


class GoAdapter(HeuristicAdapter):
    language = Language.GO
    syntax = text_scan.GO_SYNTAX
    builtins = GO_BUILTINS
    keywords = GO_KEYWORDS
    object_protocol_methods = frozenset({"String"})
    inherits_constructors = False

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def collect_definitions(self, unit) -> list[Definition]:
        lines = text_scan.split_lines(unit.text)
        masked = text_scan.split_lines(unit.masked)
        offsets = unit.line_offsets
        definitions: list[Definition] = []
        n = len(masked)
        i = 0
        while i < n:
            line = masked[i]
            func = FUNC_RE.match(line)
            if func:
                end, body_col = _brace_end(masked, i, type_literals=True)
                body_line = end if body_col < 0 else self._body_line(masked, i, end)
                rtype = func.group("rtype")
                definitions.append(
                    self._make_definition(
                        unit,
                        lines,
                        func.group("name"),
                        "method" if rtype else "function",
                        i,
                        end,
                        offsets[body_line] + max(body_col, 0),
                        container=rtype,
                        receiver=func.group("recv"),
                        receiver_type=rtype,
                    )
                )
                i = end + 1
                continue

            type_match = TYPE_RE.match(line)
            if type_match:
                end = self._type_definition(unit, lines, masked, i, type_match, definitions)
                i = end + 1
                continue

            if TYPE_GROUP_RE.match(line):
                k = i + 1
                while k < n and masked[k].strip() != ")":
                    member = GROUPED_TYPE_RE.match(masked[k])
                    if member and masked[k].strip():
                        k = self._type_definition(unit, lines, masked, k, member, definitions) + 1
                    else:
                        k += 1
                i = k + 1
                continue
            i += 1
        return definitions

    @staticmethod
    def _body_line(masked: list[str], start: int, end: int) -> int:
        """Line holding the ``{`` that opens a function body between start and end."""
        parens = 0
        literals = 0
        for k in range(start, end + 1):
            line = masked[k]
            for col, ch in enumerate(line):
                if ch in "([":
                    parens += 1
                elif ch in ")]":
                    parens -= 1
                elif ch == "{" and parens <= 0:
                    if not literals and not _opens_type_literal(line, col):
                        return k
                    literals += 1
                elif ch == "}" and parens <= 0 and literals:
                    literals -= 1
        return end

    def _type_definition(self, unit, lines, masked, i, match, definitions) -> int:
        rest = match.group("rest")
        if "{" in rest:
            end, body_col = _brace_end(masked, i)
        else:
            end, body_col = i, len(masked[i])
        bases: tuple[str, ...] = ()
        if re.match(r"(struct|interface)\b", rest.strip()):
            bases = self._embedded_types(masked[i + 1:end])
        definitions.append(
            self._make_definition(
                unit,
                lines,
                match.group("name"),
                "class",
                i,
                end,
                unit.line_offsets[i] + min(max(body_col, 0), len(masked[i])),
                bases=bases,
            )
        )
        return end

    @staticmethod
    def _embedded_types(body: list[str]) -> tuple[str, ...]:
        embedded = []
        for line in body:
            match = EMBEDDED_RE.match(line.strip())
            if match:
                embedded.append(match.group("type"))
        return tuple(embedded)

    def is_function_definition(self, node: Any) -> bool:
        if isinstance(node, Definition):
            return node.is_function and node.unit.language is Language.GO
        if isinstance(node, str):
            return bool(FUNC_RE.match(text_scan.mask(node, text_scan.scan_segments(node, self.syntax))))
        return False

    def extract_name(self, text: str) -> str:
        masked = text_scan.mask(text, text_scan.scan_segments(text, self.syntax))
        for line in masked.split("\n"):
            match = FUNC_RE.match(line) or TYPE_RE.match(line)
            if match:
                return match.group("name")
        return ""

    def extract_signature(self, text: str) -> str:
        masked = text_scan.mask(text, text_scan.scan_segments(text, self.syntax))
        type_literals = FUNC_RE.match(masked) is not None
        parens = 0
        literals = 0
        for pos, ch in enumerate(masked):
            if ch in "([":
                parens += 1
            elif ch in ")]":
                parens -= 1
            elif ch == "{" and parens <= 0:
                line_start = masked.rfind("\n", 0, pos) + 1
                if not literals and not (type_literals and TYPE_LITERAL_RE.search(masked, line_start, pos)):
                    return text[:pos].strip()
                literals += 1
            elif ch == "}" and parens <= 0 and literals:
                literals -= 1
        return text.strip().split("\n", 1)[0]

    def extract_body(self, source: str, start_line: int = 0) -> str:
        lines = text_scan.split_lines(source)
        if start_line >= len(lines):
            return ""
        masked = text_scan.split_lines(text_scan.mask(source, text_scan.scan_segments(source, self.syntax)))
        in_function = FUNC_RE.match(masked[start_line]) is not None
        end, _ = _brace_end(masked, start_line, type_literals=in_function)
        return "\n".join(lines[start_line:end + 1])

    def statement_count(self, definition: Definition) -> int:
        masked = definition.unit.masked
        body = masked[definition.body_start:definition.end].rstrip()
        if body.endswith("}"):
            body = body[:-1]
        return sum(1 for line in body.split("\n") if line.strip()) + body.count(";")

    def is_test(self, definition: Definition) -> bool:
        if definition.unit.file_name.endswith("_test.go"):
            return True
        return definition.receiver_type is None and bool(TEST_NAME_RE.match(definition.name))

    def self_names(self, definition: Definition) -> frozenset:
        return frozenset({definition.receiver}) if definition.receiver else frozenset()

    def _receiver_words(self) -> frozenset:
        return frozenset()

    def infer_variable_type(self, variable: str, definition: Definition) -> Optional[str]:
        if not re.fullmatch(r"\w+", variable):
            return None
        name = re.escape(variable)
        masked = definition.unit.masked[definition.start:definition.end]
        header = definition.unit.masked[definition.start:definition.body_start]
        for pattern, text in (
            (rf"(?<![\w.]){name}\s*:=\s*&?{TYPE_NAME}\s*\{{", masked),
            (rf"(?<![\w.]){name}\s*:=\s*new\(\s*{TYPE_NAME}\s*\)", masked),
            (rf"\bvar\s+{name}\s+\*?{TYPE_NAME}", masked),
            (rf"[(,]\s*{name}\s+\*?{TYPE_NAME}", header),
        ):
            match = re.search(pattern, text)
            if match and match.group("type") not in self.keywords:
                return match.group("type")
        return None

    def method_table(self, class_def: Definition, units: list) -> dict[str, Definition]:
        """Methods whose receiver is ``class_def``, across the package's files."""
        table: dict[str, Definition] = {}
        for unit in units:
            for definition in unit.definitions:
                if definition.receiver_type == class_def.name:
                    table.setdefault(definition.name, definition)
        return table

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def package_name(self, unit) -> str:
        match = PACKAGE_RE.search(unit.masked)
        return match.group(1) if match else ""

    def parse_imports(self, unit) -> list[ImportInfo]:
        lines = text_scan.split_lines(unit.text)
        masked = text_scan.split_lines(unit.masked)
        imports: list[ImportInfo] = []
        i = 0
        n = len(masked)
        while i < n:
            head = masked[i].strip()
            if not head.startswith("import"):
                i += 1
                continue
            if head.startswith("import") and "(" in head:
                k = i + 1
                while k < n and masked[k].strip() != ")":
                    info = self._parse_spec(lines[k], k + 1)
                    if info is not None:
                        imports.append(info)
                    k += 1
                i = k + 1
                continue
            info = self._parse_spec(lines[i], i + 1)
            if info is not None:
                imports.append(info)
            i += 1
        return imports

    @staticmethod
    def _parse_spec(line: str, number: int) -> Optional[ImportInfo]:
        match = IMPORT_SPEC_RE.match(line)
        if match is None:
            return None
        path = match.group("path")
        alias = match.group("alias")
        if alias == "_":
            return None
        statement = line.strip()
        if not statement.startswith("import"):
            statement = f"import {statement}"
        if alias == ".":
            return ImportInfo(module=path, alias=alias, is_wildcard=True, statement=statement, line=number)
        segments = path.split("/")
        local = segments[-1]
        if VERSION_SUFFIX_RE.match(local) and len(segments) > 1:
            local = segments[-2]
        return ImportInfo(
            module=path,
            alias=alias,
            local_name=alias or local.replace("-", "_"),
            statement=statement,
            line=number,
        )

    def module_units(self, module: str, unit, index) -> list:
        """Non-test files of the directory an import path refers to.

        Relative paths resolve from the unit's directory; other paths match
        the longest existing directory suffix under the project root.
        """
        if index is None:
            return []
        if module.startswith("."):
            candidates = [Path(os.path.normpath(unit.path.parent / module))]
        else:
            parts = module.split("/")
            candidates = [index.root.joinpath(*parts[k:]) for k in range(len(parts))]
        for directory in candidates:
            units = [
                u
                for u in index.units_in_directory(directory, Language.GO)
                if not u.file_name.endswith("_test.go")
            ]
            if units:
                return units
        return []

    def sibling_units(self, unit, index) -> list:
        if index is None:
            return []
        package = unit.package_name
        return [
            other
            for other in index.units_in_directory(unit.path.parent, Language.GO)
            if other.path != unit.path and other.package_name == package
        ]
