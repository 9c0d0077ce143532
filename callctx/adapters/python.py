"""
Python adapter: definitions by indentation, no grammar.

A definition starts at its first decorator line and ends at the last code
line before a line indented at or left of the ``def``/``class`` keyword.
Bracket depth and backslash continuations keep a logical line together, and
lines that begin inside a triple-quoted string are always part of the
current body.
"""

import re
from pathlib import Path
from typing import Any, Optional

from .. import text_scan
from ..models import CallSite, Definition, ImportInfo, Language
from .base import HeuristicAdapter

DEF_RE = re.compile(r"^(?P<indent>[ \t]*)(?:async[ \t]+)?def[ \t]+(?P<name>\w+)[ \t]*(?:\[[^\]]*\][ \t]*)?\(")
CLASS_RE = re.compile(r"^(?P<indent>[ \t]*)class[ \t]+(?P<name>\w+)")
DECORATOR_RE = re.compile(r"^[ \t]*@")
FUNCTION_TEXT_RE = re.compile(r"^\s*(async\s+)?def\s+\w+\s*\(")
FROM_IMPORT_RE = re.compile(r"^\s*from\s+(?P<module>\.+[\w.]*|[\w.]+)\s+import\s+(?P<names>.+)$", re.S)
IMPORT_RE = re.compile(r"^\s*import\s+(?P<names>.+)$", re.S)
FIRST_PARAM_RE = re.compile(r"\(\s*(\w+)")
TEST_NAME_RE = re.compile(r"^test(?:_|$|[A-Z])")
TEST_FILE_RE = re.compile(r"^(?:test_.*|.*_test|conftest)\.pyw?$")
PYTEST_DECORATOR_RE = re.compile(r"^\s*@\s*pytest\b", re.M)
HEADER_RE = re.compile(r"^[ \t]*(?:async[ \t]+)?(?:def|class)\b", re.M)
TYPE_NAME = r"(?P<type>[A-Za-z_][\w.]*)"

PYTHON_BUILTINS = frozenset({
    "abs", "aiter", "all", "anext", "any", "ascii", "bin", "bool", "breakpoint", "bytearray",
    "bytes", "callable", "chr", "classmethod", "compile", "complex", "delattr", "dict", "dir",
    "divmod", "enumerate", "eval", "exec", "filter", "float", "format", "frozenset", "getattr",
    "globals", "hasattr", "hash", "help", "hex", "id", "input", "int", "isinstance",
    "issubclass", "iter", "len", "list", "locals", "map", "max", "memoryview", "min", "next",
    "object", "oct", "open", "ord", "pow", "print", "property", "range", "repr", "reversed",
    "round", "set", "setattr", "slice", "sorted", "staticmethod", "str", "sum", "super",
    "tuple", "type", "vars", "zip", "__import__",
})

PYTHON_KEYWORDS = frozenset({
    "and", "as", "assert", "async", "await", "case", "class", "def", "del", "elif", "else",
    "except", "finally", "for", "from", "global", "if", "import", "in", "is", "lambda",
    "match", "nonlocal", "not", "or", "pass", "raise", "return", "try", "while", "with", "yield",
})


class _Layout:
    """Raw lines, masked lines and string positions of one text."""

    def __init__(self, text: str, segments: list[text_scan.Segment], masked: str, offsets: list[int]):
        self.lines = text_scan.split_lines(text)
        self.masked = text_scan.split_lines(masked)
        self.offsets = offsets
        self.continued = text_scan.continued_string_lines(segments, offsets)
        self.string_starts = {
            text_scan.line_index(offsets, s.start) for s in segments if s.kind == text_scan.STRING
        }

    @classmethod
    def of_text(cls, text: str) -> "_Layout":
        segments = text_scan.scan_segments(text, text_scan.PYTHON_SYNTAX)
        return cls(text, segments, text_scan.mask(text, segments), text_scan.line_offsets(text))

    @classmethod
    def of_unit(cls, unit) -> "_Layout":
        return cls(unit.text, unit.segments, unit.masked, unit.line_offsets)

    def __len__(self) -> int:
        return len(self.lines)

    def has_code(self, k: int) -> bool:
        return bool(self.masked[k].strip()) or k in self.string_starts

    def skip_decorators(self, i: int) -> int:
        """First line at or after ``i`` that is not part of a decorator."""
        n = len(self)
        k = i
        while k < n:
            if DECORATOR_RE.match(self.masked[k]):
                depth = text_scan.count_brackets(self.masked[k])
                k += 1
                while depth > 0 and k < n:
                    depth += text_scan.count_brackets(self.masked[k])
                    k += 1
            elif not self.masked[k].strip() and k not in self.string_starts:
                k += 1
            else:
                break
        return k

    def header_end(self, j: int) -> tuple[int, int]:
        """(line, column) of the ``:`` closing the header that starts on line j."""
        depth = 0
        for k in range(j, len(self)):
            for col, ch in enumerate(self.masked[k]):
                if ch in text_scan.OPENING_BRACKETS:
                    depth += 1
                elif ch in text_scan.CLOSING_BRACKETS:
                    depth -= 1
                elif ch == ":" and depth <= 0:
                    return k, col
        last = len(self) - 1
        return last, len(self.masked[last])

    def block_end(self, header_line: int, indent: int) -> int:
        """Last line of the block whose header ends on ``header_line``."""
        last = header_line
        depth = 0
        continuation = self.masked[header_line].rstrip().endswith("\\")
        for k in range(header_line + 1, len(self)):
            line = self.masked[k]
            if k in self.continued:
                # Inside a multi-line string; no indentation check
                depth += text_scan.count_brackets(line)
                continuation = line.rstrip().endswith("\\")
                last = k
                continue
            if not self.has_code(k):
                continue
            if depth <= 0 and not continuation and text_scan.indent_width(self.lines[k]) <= indent:
                break
            depth += text_scan.count_brackets(line)
            continuation = line.rstrip().endswith("\\")
            last = k
        return last


class PythonAdapter(HeuristicAdapter):
    language = Language.PYTHON
    syntax = text_scan.PYTHON_SYNTAX
    builtins = PYTHON_BUILTINS
    keywords = PYTHON_KEYWORDS
    object_protocol_methods = frozenset({"__str__", "__repr__", "__eq__", "__hash__"})

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def collect_definitions(self, unit) -> list[Definition]:
        layout = _Layout.of_unit(unit)
        top: list[Definition] = []
        stack: list[tuple[Definition, int]] = []
        n = len(layout)
        i = 0
        while i < n:
            while stack and i > stack[-1][1]:
                stack.pop()
            if i in layout.continued:
                i += 1
                continue

            j = layout.skip_decorators(i) if DECORATOR_RE.match(layout.masked[i]) else i
            if j >= n:
                break
            def_match = DEF_RE.match(layout.masked[j])
            class_match = None if def_match else CLASS_RE.match(layout.masked[j])
            match = def_match or class_match
            if match is None:
                i = j + 1 if j > i else i + 1
                continue

            header_line, colon = layout.header_end(j)
            indent = text_scan.indent_width(layout.lines[j])
            end = layout.block_end(header_line, indent)
            parent = stack[-1][0] if stack else None
            if class_match:
                kind = "class"
            elif parent is not None and parent.is_class:
                kind = "method"
            else:
                kind = "function"

            header = "\n".join(layout.masked[j:header_line] + [layout.masked[header_line][:colon]])
            extra = {}
            if class_match:
                extra["bases"] = self._parse_bases(header)
            elif kind == "method":
                extra["receiver"] = self._receiver(layout.lines[i:j], header)

            definition = self._make_definition(
                unit,
                layout.lines,
                match.group("name"),
                kind,
                i,
                end,
                layout.offsets[header_line] + colon + 1,
                parent=parent,
                **extra,
            )
            if parent is None:
                top.append(definition)
            stack.append((definition, end))
            i = header_line + 1
        return top

    @staticmethod
    def _parse_bases(header: str) -> tuple[str, ...]:
        open_paren = header.find("(")
        if open_paren == -1:
            return ()
        depth = 0
        current = []
        bases = []
        for ch in header[open_paren + 1:]:
            if ch in "([{":
                depth += 1
            elif ch in ")]}":
                if depth == 0:
                    break
                depth -= 1
            if ch == "," and depth == 0:
                bases.append("".join(current))
                current = []
            else:
                current.append(ch)
        bases.append("".join(current))

        names = []
        for item in bases:
            item = item.strip()
            if not item or "=" in item or item.startswith("*"):
                continue
            match = re.match(r"[\w.]+", item)
            if match:
                names.append(match.group())
        return tuple(names)

    @staticmethod
    def _receiver(decorator_lines: list[str], header: str) -> Optional[str]:
        if any(re.match(r"\s*@\s*staticmethod\b", line) for line in decorator_lines):
            return None
        match = FIRST_PARAM_RE.search(header)
        return match.group(1) if match else None

    def is_function_definition(self, node: Any) -> bool:
        if isinstance(node, Definition):
            return node.is_function and node.unit.language is Language.PYTHON
        if isinstance(node, str):
            layout = _Layout.of_text(node)
            j = layout.skip_decorators(0)
            return j < len(layout) and bool(FUNCTION_TEXT_RE.match(layout.masked[j]))
        return False

    def _first_header(self, text: str) -> tuple[_Layout, int, Optional[re.Match]]:
        layout = _Layout.of_text(text)
        j = layout.skip_decorators(0)
        if j >= len(layout):
            return layout, j, None
        return layout, j, DEF_RE.match(layout.masked[j]) or CLASS_RE.match(layout.masked[j])

    def extract_name(self, text: str) -> str:
        _, _, match = self._first_header(text)
        return match.group("name") if match else ""

    def extract_signature(self, text: str) -> str:
        layout, j, match = self._first_header(text)
        if match is None:
            return text.strip().split("\n", 1)[0] if text.strip() else ""
        header_line, colon = layout.header_end(j)
        lines = layout.lines[j:header_line] + [layout.lines[header_line][:colon]]
        return "\n".join(lines).strip()

    def extract_body(self, source: str, start_line: int = 0) -> str:
        layout = _Layout.of_text(source)
        if start_line >= len(layout):
            return ""
        j = layout.skip_decorators(start_line)
        if j >= len(layout) or not (DEF_RE.match(layout.masked[j]) or CLASS_RE.match(layout.masked[j])):
            return ""
        header_line, _ = layout.header_end(j)
        end = layout.block_end(header_line, text_scan.indent_width(layout.lines[j]))
        return "\n".join(layout.lines[start_line:end + 1])

    def statement_count(self, definition: Definition) -> int:
        body = definition.unit.masked[definition.body_start:definition.end]
        return sum(1 for line in body.split("\n") if line.strip()) + body.count(";")

    def is_test(self, definition: Definition) -> bool:
        if TEST_NAME_RE.match(definition.name):
            return True
        if TEST_FILE_RE.match(definition.unit.file_name):
            return True
        header = definition.unit.text[definition.start:definition.body_start]
        if PYTEST_DECORATOR_RE.search(header):
            return True
        parent = definition.parent
        while parent is not None:
            if parent.is_class and parent.name.startswith("Test"):
                return True
            parent = parent.parent
        return False

    def constructor_name(self, class_def: Definition) -> Optional[str]:
        return "__init__"

    def collect_call_sites(self, definition: Definition) -> list[CallSite]:
        return [call for call in super().collect_call_sites(definition) if call.name != "super"]

    # ------------------------------------------------------------------
    # Classes and receivers
    # ------------------------------------------------------------------

    def self_names(self, definition: Definition) -> frozenset:
        scope = definition
        while scope is not None:
            if scope.kind == "method":
                names = {"self", "cls"}
                if scope.receiver:
                    names.add(scope.receiver)
                return frozenset(names)
            scope = scope.parent
        return frozenset()

    def infer_variable_type(self, variable: str, definition: Definition) -> Optional[str]:
        if not re.fullmatch(r"\w+", variable):
            return None
        name = re.escape(variable)
        patterns = (
            re.compile(rf"(?<![\w.]){name}\s*(?::\s*[\w.\[\], ]+)?=\s*{TYPE_NAME}\s*\("),
            re.compile(rf"(?<![\w.]){name}\s*:\s*{TYPE_NAME}"),
            re.compile(rf"\bwith\s+{TYPE_NAME}\s*\(.*?\)\s+as\s+{name}\b"),
        )
        scope = definition
        while scope is not None and scope.is_function:
            masked = scope.unit.masked[scope.start:scope.end]
            for pattern in patterns:
                match = pattern.search(masked)
                if match and match.group("type") not in self.keywords:
                    return match.group("type")
            scope = scope.parent
        return None

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def package_name(self, unit) -> str:
        if unit.root is None:
            return unit.path.stem
        try:
            parts = list(unit.path.relative_to(unit.root).with_suffix("").parts)
        except ValueError:
            return unit.path.stem
        if parts and parts[0] == "src":
            parts = parts[1:]
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        return ".".join(parts)

    def parse_imports(self, unit) -> list[ImportInfo]:
        lines = text_scan.split_lines(unit.text)
        masked = text_scan.split_lines(unit.masked)
        imports: list[ImportInfo] = []
        n = len(masked)
        i = 0
        while i < n:
            head = masked[i].strip()
            if not (head.startswith("import ") or head.startswith("from ")):
                i += 1
                continue
            first = i
            depth = text_scan.count_brackets(masked[i])
            continuation = masked[i].rstrip().endswith("\\")
            while (depth > 0 or continuation) and i + 1 < n:
                i += 1
                depth += text_scan.count_brackets(masked[i])
                continuation = masked[i].rstrip().endswith("\\")
            logical = " ".join(masked[first:i + 1]).replace("\\", " ")
            statement = "\n".join(line.rstrip() for line in lines[first:i + 1]).strip()
            for piece in logical.split(";"):
                imports.extend(self._parse_statement(piece, statement, first + 1))
            i += 1
        return imports

    @staticmethod
    def _split_names(names: str) -> list[tuple[str, Optional[str]]]:
        result = []
        for item in names.replace("(", " ").replace(")", " ").split(","):
            parts = item.split()
            if not parts:
                continue
            alias = parts[2] if len(parts) == 3 and parts[1] == "as" else None
            result.append((parts[0], alias))
        return result

    def _parse_statement(self, logical: str, statement: str, line: int) -> list[ImportInfo]:
        match = FROM_IMPORT_RE.match(logical)
        if match:
            module = match.group("module")
            if module == "__future__":
                return []
            infos = []
            for name, alias in self._split_names(match.group("names")):
                if name == "*":
                    infos.append(ImportInfo(module=module, is_wildcard=True, statement=statement, line=line))
                else:
                    infos.append(
                        ImportInfo(
                            module=module,
                            name=name,
                            alias=alias,
                            local_name=alias or name,
                            statement=statement,
                            line=line,
                        )
                    )
            return infos

        match = IMPORT_RE.match(logical)
        if match is None:
            return []
        return [
            ImportInfo(module=module, alias=alias, local_name=alias or module, statement=statement, line=line)
            for module, alias in self._split_names(match.group("names"))
        ]

    def module_units(self, module: str, unit, index) -> list:
        """``pkg.mod`` -> pkg/mod.py or pkg/mod/__init__.py, relative imports from the unit's package."""
        if index is None:
            return []
        if module.startswith("."):
            level = len(module) - len(module.lstrip("."))
            base = unit.path.parent
            for _ in range(level - 1):
                base = base.parent
            bases = [base]
            parts = [part for part in module.lstrip(".").split(".") if part]
        else:
            parts = module.split(".")
            bases = []
            for base in (index.root, index.root / "src", unit.path.parent):
                if base not in bases:
                    bases.append(base)

        for base in bases:
            target = Path(base, *parts)
            candidates = [target / "__init__.py"]
            if parts:
                candidates.insert(0, target.parent / f"{target.name}.py")
            for candidate in candidates:
                found = index.get_unit(candidate)
                if found is not None:
                    return [found]
        return []

    # ------------------------------------------------------------------
    # Context text
    # ------------------------------------------------------------------

    def strip_comments(self, text: str) -> str:
        """Remove ``#`` comments and docstring statements."""
        segments = text_scan.scan_segments(text, self.syntax)
        masked = text_scan.mask(text, segments)
        removals = []
        for segment in segments:
            if segment.kind == text_scan.COMMENT:
                removals.append(segment)
                continue
            docstring = self._as_docstring(text, masked, segment)
            if docstring is not None:
                removals.append(docstring)
        return text_scan.remove_segments(text, removals)

    @staticmethod
    def _as_docstring(text: str, masked: str, segment: text_scan.Segment) -> Optional[text_scan.Segment]:
        """The statement span of a docstring, or None for any other string."""
        if text[segment.start:segment.start + 3] not in ('"""', "'''"):
            return None
        line_start = text.rfind("\n", 0, segment.start) + 1
        prefix = text[line_start:segment.start]
        if not re.fullmatch(r"\s*[rRuUbBfF]{0,2}", prefix):
            return None
        line_end = text.find("\n", segment.end)
        rest = text[segment.end:] if line_end == -1 else text[segment.end:line_end]
        if rest.split("#", 1)[0].strip():
            return None
        if not _opens_body(masked[:line_start]):
            return None
        start = line_start + len(prefix) - len(prefix.lstrip())
        return text_scan.Segment(text_scan.STRING, start, segment.end)


def _opens_body(masked_prefix: str) -> bool:
    """True if ``masked_prefix`` is empty or ends with a ``def``/``class`` header.

    A string right after such a header is the first statement of the body.
    """
    if not masked_prefix.strip():
        return True
    headers = list(HEADER_RE.finditer(masked_prefix))
    if not headers:
        return False
    tail = masked_prefix[headers[-1].start():].rstrip()
    depth = 0
    for pos, ch in enumerate(tail):
        if ch in text_scan.OPENING_BRACKETS:
            depth += 1
        elif ch in text_scan.CLOSING_BRACKETS:
            depth -= 1
        elif ch == ":" and depth == 0:
            return pos == len(tail) - 1
    return False
