"""callctx: extract the functions a function depends on, across files.

Given a function in a Python, Go or Java project, callctx finds every function
it calls (in the same file, the same package or imported modules) up to a
configurable depth and returns them as a deduplicated graph of
FunctionContext nodes, ready to be rendered as Markdown.

Projects control which files are scanned with a gitignore-style
``.callctxignore``; ``ensure_ignore_file(root)`` writes the default one.
"""

from .adapters import adapter_for, get_adapter
from .analyzer import DependencyAnalyzer, analyze, analyze_at_cursor
from .errors import (
    CallContextError,
    DefinitionNotFoundError,
    FileTooLargeError,
    ParserUnavailableError,
    UnsupportedLanguageError,
)
from .formatter import MarkdownFormatter
from .ignore import IGNORE_FILE_NAME, ensure_ignore_file
from .models import (
    AnalysisResult,
    CallSite,
    Definition,
    ExtractionConfig,
    FunctionContext,
    ImportInfo,
    Language,
)
from .resolver import DefinitionCache, Resolver
from .source import SourceIndex, SourceUnit

__version__ = "0.1.0"

__all__ = [
    "AnalysisResult",
    "CallContextError",
    "CallSite",
    "Definition",
    "DefinitionCache",
    "DefinitionNotFoundError",
    "DependencyAnalyzer",
    "ExtractionConfig",
    "FileTooLargeError",
    "FunctionContext",
    "IGNORE_FILE_NAME",
    "ImportInfo",
    "Language",
    "MarkdownFormatter",
    "ParserUnavailableError",
    "Resolver",
    "SourceIndex",
    "SourceUnit",
    "UnsupportedLanguageError",
    "adapter_for",
    "analyze",
    "analyze_at_cursor",
    "ensure_ignore_file",
    "get_adapter",
]
