"""Markdown rendering of a dependency graph."""

from typing import Iterable

from .models import FunctionContext, Language

FENCE_LANGUAGE = {
    Language.PYTHON: "python",
    Language.GO: "go",
    Language.JAVA: "java",
}


def _fence(text: str) -> str:
    """Backtick fence longer than any backtick run inside ``text``."""
    longest = 0
    run = 0
    for ch in text:
        run = run + 1 if ch == "`" else 0
        longest = max(longest, run)
    return "`" * max(3, longest + 1)


class MarkdownFormatter:
    """Renders FunctionContexts as one Markdown document.

    Each context gets a ``##`` heading with its qualified name, the file and
    package it lives in, the imports it uses, the names of its resolved
    dependencies and its source in a fenced block.
    """

    def __init__(self, title: str = "Function Call Context", show_dependencies: bool = True):
        self.title = title
        self.show_dependencies = show_dependencies

    def format(self, contexts: Iterable[FunctionContext]) -> str:
        sections = [f"# {self.title}"]
        for context in contexts:
            sections.append(self.format_context(context))
        return "\n\n".join(sections) + "\n"

    def format_context(self, context: FunctionContext) -> str:
        lines = [f"## {context.name}", "", f"File: {context.file_path}"]
        if context.package_name:
            lines.append(f"Package: {context.package_name}")
        if not context.is_project_owned:
            lines.append("Vendored: yes")
        if self.show_dependencies and context.dependencies:
            lines.append("Calls: " + ", ".join(dep.name for dep in context.dependencies))

        language = FENCE_LANGUAGE.get(context.language, "")
        if context.imports:
            imports = "\n".join(context.imports)
            fence = _fence(imports)
            lines += ["", "Imports:", f"{fence}{language}", imports, fence]

        fence = _fence(context.source_text)
        lines += ["", f"{fence}{language}", context.source_text, fence]
        return "\n".join(lines)
