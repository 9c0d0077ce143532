"""
Java adapter backed by tree-sitter-java.

Definitions, call sites, imports and declared types all come from the
syntax tree. Trees are walked with explicit stacks. A plain ``foo()`` call
is looked up in the enclosing classes (and what they extend) and then in
static imports; there are no free functions.
"""

import re
from typing import Any, Optional

from .. import text_scan
from ..models import NEW, PLAIN, QUALIFIED, SELF, SUPER, CallSite, Definition, ImportInfo, Language
from ..parsing import node_text, parse_source
from .base import LanguageAdapter


CLASS_TYPES = frozenset({
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "record_declaration",
    "annotation_type_declaration",
})
FUNCTION_TYPES = frozenset({"method_declaration", "constructor_declaration"})
COMMENT_TYPES = frozenset({"line_comment", "block_comment"})
TEST_ANNOTATION_RE = re.compile(r"Test|Before|After")
ANNOTATION_RE = re.compile(r"@\s*[\w.]+(?:\s*\([^()]*\))?")
NAME_BEFORE_PARAMS_RE = re.compile(r"(\w+)\s*\(")

JAVA_BUILTINS = frozenset({
    "println", "print", "printf", "format", "valueOf", "getClass", "notify", "notifyAll",
    "wait", "requireNonNull", "arraycopy", "currentTimeMillis", "nanoTime", "asList",
})

JAVA_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "synchronized", "return", "new", "throw",
    "assert", "try", "do", "else", "case",
})


def _clean_type(text: str) -> str:
    text = re.sub(r"<.*>", "", text, flags=re.S)
    return text.replace("[]", "").replace("...", "").strip()


class JavaAdapter(LanguageAdapter):
    language = Language.JAVA
    syntax = text_scan.JAVA_SYNTAX
    builtins = JAVA_BUILTINS
    keywords = JAVA_KEYWORDS
    object_protocol_methods = frozenset({"toString", "equals", "hashCode", "clone"})
    class_scope_is_lexical = True
    inherits_constructors = False

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def collect_definitions(self, unit) -> list[Definition]:
        top: list[Definition] = []
        stack: list[tuple[Any, Optional[Definition]]] = [(unit.tree.root_node, None)]
        while stack:
            node, parent = stack.pop()
            owner = parent
            if node.type in CLASS_TYPES or node.type in FUNCTION_TYPES:
                definition = self._definition(unit, node, parent)
                if definition is not None:
                    if parent is None:
                        top.append(definition)
                    owner = definition
            for child in reversed(node.children):
                stack.append((child, owner))
        return top

    def _definition(self, unit, node, parent: Optional[Definition]) -> Optional[Definition]:
        source = unit.source_bytes
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        row = node.start_point[0]
        start = unit.char_offset(node.start_byte)
        line_start = unit.line_offsets[row]
        if not unit.text[line_start:start].strip():
            start = line_start
        body = node.child_by_field_name("body")
        is_class = node.type in CLASS_TYPES
        definition = Definition(
            name=node_text(name_node, source),
            kind="class" if is_class else "method",
            unit=unit,
            start=start,
            end=unit.char_offset(node.end_byte),
            start_line=row + 1,
            end_line=node.end_point[0] + 1,
            body_start=unit.char_offset(body.start_byte if body is not None else node.end_byte),
            container=parent.qualified_name if parent is not None else None,
            parent=parent,
            bases=self._bases(node, source) if is_class else (),
            receiver="this",
            node=node,
        )
        if parent is not None:
            parent.children.append(definition)
        return definition

    @staticmethod
    def _bases(node, source: bytes) -> tuple[str, ...]:
        holders = []
        superclass = node.child_by_field_name("superclass")
        if superclass is not None:
            holders.extend(superclass.named_children)
        for child in node.children:
            if child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in child.named_children:
                    holders.extend(type_list.named_children if type_list.type == "type_list" else [type_list])
        bases = []
        for holder in holders:
            name = _clean_type(node_text(holder, source))
            if name and name not in bases:
                bases.append(name)
        return tuple(bases)

    def is_function_definition(self, node: Any) -> bool:
        if isinstance(node, Definition):
            return node.is_function and node.unit.language is Language.JAVA
        if isinstance(node, str):
            member = self._parse_member(node)
            return member is not None and member.type in FUNCTION_TYPES
        return getattr(node, "type", None) in FUNCTION_TYPES

    def _parse_member(self, text: str) -> Any:
        """First member declaration of a snippet parsed inside a class body."""
        wrapped = f"class __Snippet {{\n{text}\n}}".encode("utf-8")
        tree = parse_source(self.language, wrapped)
        stack = [tree.root_node]
        while stack:
            current = stack.pop()
            if current.type == "class_body":
                members = [c for c in current.named_children if c.type not in COMMENT_TYPES]
                return members[0] if members else None
            stack.extend(reversed(current.children))
        return None

    def _masked(self, text: str) -> str:
        return text_scan.mask(text, text_scan.scan_segments(text, self.syntax))

    def extract_name(self, text: str) -> str:
        masked = ANNOTATION_RE.sub(lambda m: " " * len(m.group()), self._masked(text))
        for match in NAME_BEFORE_PARAMS_RE.finditer(masked):
            if match.group(1) not in self.keywords:
                return match.group(1)
        return ""

    def extract_signature(self, text: str) -> str:
        masked = self._masked(text)
        parens = 0
        for pos, ch in enumerate(masked):
            if ch in "(<[":
                parens += 1
            elif ch in ")>]":
                parens -= 1
            elif ch in "{;" and parens <= 0:
                return text[:pos].strip()
        return text.strip()

    def extract_body(self, source: str, start_line: int = 0) -> str:
        data = source.encode("utf-8")
        tree = parse_source(self.language, data)
        stack = [tree.root_node]
        while stack:
            current = stack.pop()
            if (current.type in FUNCTION_TYPES or current.type in CLASS_TYPES) and current.start_point[0] >= start_line:
                lines = text_scan.split_lines(source)
                return "\n".join(lines[start_line:current.end_point[0] + 1])
            stack.extend(reversed(current.children))
        return ""

    def statement_count(self, definition: Definition) -> int:
        body = definition.node.child_by_field_name("body") if definition.node is not None else None
        if body is None:
            return 0
        return sum(1 for child in body.named_children if child.type not in COMMENT_TYPES)

    def is_test(self, definition: Definition) -> bool:
        if "/src/test/" in definition.unit.path.as_posix():
            return True
        node = definition.node
        if node is None:
            return False
        source = definition.unit.source_bytes
        for child in node.children:
            if child.type != "modifiers":
                continue
            for annotation in child.named_children:
                if annotation.type not in ("marker_annotation", "annotation"):
                    continue
                name = annotation.child_by_field_name("name")
                if name is not None and TEST_ANNOTATION_RE.search(node_text(name, source)):
                    return True
        return False

    def constructor_name(self, class_def: Definition) -> Optional[str]:
        return class_def.name

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def collect_call_sites(self, definition: Definition) -> list[CallSite]:
        node = definition.node
        if node is None:
            return []
        body = node.child_by_field_name("body")
        if body is None:
            return []
        unit = definition.unit
        calls = []
        stack = [body]
        while stack:
            current = stack.pop()
            call = None
            if current.type == "method_invocation":
                call = self._invocation(current, unit)
            elif current.type == "object_creation_expression":
                call = self._creation(current, unit)
            if call is not None:
                calls.append(call)
            stack.extend(reversed(current.children))
        calls.sort(key=lambda call: call.offset)
        return calls

    @staticmethod
    def _call_text(node, source: bytes) -> str:
        return node_text(node, source).split("\n", 1)[0]

    def _invocation(self, node, unit) -> Optional[CallSite]:
        source = unit.source_bytes
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        obj = node.child_by_field_name("object")
        if obj is None:
            kind, qualifier = PLAIN, ""
        elif obj.type == "this":
            kind, qualifier = SELF, "this"
        elif obj.type == "super":
            kind, qualifier = SUPER, "super"
        else:
            kind, qualifier = QUALIFIED, re.sub(r"\s+", "", node_text(obj, source))
        return CallSite(
            text=self._call_text(node, source),
            name=node_text(name_node, source),
            qualifier=qualifier,
            kind=kind,
            offset=unit.char_offset(name_node.start_byte),
            line=name_node.start_point[0] + 1,
        )

    def _creation(self, node, unit) -> Optional[CallSite]:
        source = unit.source_bytes
        type_node = node.child_by_field_name("type")
        if type_node is None:
            return None
        type_name = _clean_type(node_text(type_node, source))
        qualifier, _, name = type_name.rpartition(".")
        return CallSite(
            text=self._call_text(node, source),
            name=name,
            qualifier=qualifier,
            kind=NEW,
            offset=unit.char_offset(type_node.start_byte),
            line=type_node.start_point[0] + 1,
        )

    def self_names(self, definition: Definition) -> frozenset:
        return frozenset({"this"})

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    @staticmethod
    def _declared_type(type_node, declarator, source: bytes) -> Optional[str]:
        if type_node is None:
            return None
        text = node_text(type_node, source)
        if text == "var":
            value = declarator.child_by_field_name("value") if declarator is not None else None
            if value is None or value.type != "object_creation_expression":
                return None
            text = node_text(value.child_by_field_name("type"), source)
        return _clean_type(text) or None

    def _match_declaration(self, node, name: str, source: bytes) -> Optional[str]:
        if node.type in ("local_variable_declaration", "field_declaration"):
            for declarator in node.children_by_field_name("declarator"):
                name_node = declarator.child_by_field_name("name")
                if name_node is not None and node_text(name_node, source) == name:
                    return self._declared_type(node.child_by_field_name("type"), declarator, source)
        elif node.type in ("formal_parameter", "enhanced_for_statement", "resource"):
            name_node = node.child_by_field_name("name")
            if name_node is not None and node_text(name_node, source) == name:
                return self._declared_type(node.child_by_field_name("type"), node, source)
        return None

    def infer_variable_type(self, variable: str, definition: Definition) -> Optional[str]:
        fields_only = variable.startswith("this.")
        name = variable[len("this."):] if fields_only else variable
        if not re.fullmatch(r"\w+", name) or definition.node is None:
            return None
        source = definition.unit.source_bytes

        if not fields_only:
            stack = [definition.node]
            while stack:
                current = stack.pop()
                found = self._match_declaration(current, name, source)
                if found:
                    return found
                stack.extend(reversed(current.children))

        scope = definition.parent
        while scope is not None:
            if scope.is_class and scope.node is not None:
                body = scope.node.child_by_field_name("body")
                for member in body.named_children if body is not None else ():
                    found = self._match_declaration(member, name, source)
                    if found:
                        return found
            scope = scope.parent
        return None

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def package_name(self, unit) -> str:
        source = unit.source_bytes
        for child in unit.tree.root_node.named_children:
            if child.type == "package_declaration":
                for part in child.named_children:
                    if part.type in ("scoped_identifier", "identifier"):
                        return node_text(part, source)
        return ""

    def parse_imports(self, unit) -> list[ImportInfo]:
        source = unit.source_bytes
        imports = []
        for child in unit.tree.root_node.named_children:
            if child.type == "import_declaration":
                info = self._parse_import(child, source)
                if info is not None:
                    imports.append(info)
        return imports

    @staticmethod
    def _parse_import(node, source: bytes) -> Optional[ImportInfo]:
        statement = node_text(node, source).strip()
        is_static = any(child.type == "static" for child in node.children)
        is_wildcard = any(child.type == "asterisk" for child in node.children)
        path = None
        for child in node.children:
            if child.type in ("scoped_identifier", "identifier"):
                path = node_text(child, source)
                break
        if not path:
            return None
        line = node.start_point[0] + 1
        if is_wildcard:
            return ImportInfo(module=path, is_wildcard=True, is_static=is_static, statement=statement, line=line)
        module, _, name = path.rpartition(".")
        return ImportInfo(
            module=module,
            name=name,
            local_name=name,
            is_static=is_static,
            statement=statement,
            line=line,
        )

    def module_units(self, module: str, unit, index) -> list:
        """``a.b.C`` -> a/b/C.java anywhere in the project, else files of package a.b."""
        if index is None or not module:
            return []
        files = index.list_files(Language.JAVA)
        rel = module.replace(".", "/")
        matches = [u for u in files if u.path.as_posix().endswith(f"/{rel}.java")]
        if matches:
            return matches
        matches = [u for u in files if u.path.parent.as_posix().endswith(f"/{rel}")]
        if matches:
            return matches
        # Nested class: a.b.Outer.Inner lives in a/b/Outer.java
        outer = module.rpartition(".")[0]
        if outer:
            return [u for u in files if u.path.as_posix().endswith(f"/{outer.replace('.', '/')}.java")]
        return []

    def module_candidates(self, imp: ImportInfo, unit, index) -> list:
        if imp.is_wildcard or imp.is_static:
            return self.module_units(imp.module, unit, index)
        return self.module_units(f"{imp.module}.{imp.name}" if imp.module else imp.name, unit, index)

    def module_level_definitions(self, unit) -> list[Definition]:
        return []

    def sibling_units(self, unit, index) -> list:
        if index is None:
            return []
        package = unit.package_name
        return [
            other
            for other in index.units_in_directory(unit.path.parent, Language.JAVA)
            if other.path != unit.path and other.package_name == package
        ]
