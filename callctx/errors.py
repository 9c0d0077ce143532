"""Exceptions raised by callctx.

Resolution misses and depth cut-offs are not errors and never raise; the
classes here cover the conditions a caller has to report to the user.
"""

from pathlib import Path


class CallContextError(Exception):
    """Base class for all callctx errors."""


class UnsupportedLanguageError(CallContextError, ValueError):
    """Raised when no language adapter is registered for a file."""

    def __init__(self, language):
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class DefinitionNotFoundError(CallContextError):
    """Raised when no function or method encloses the requested location."""

    def __init__(self, file_path: str | Path, location):
        self.file_path = file_path
        self.location = location
        super().__init__(f"No function definition found at {location} in {file_path}")


class FileTooLargeError(CallContextError):
    """Raised when a file exceeds MAX_FILE_SIZE."""

    def __init__(self, file_path: Path, size: int, limit: int):
        self.file_path = file_path
        self.size = size
        self.limit = limit
        super().__init__(
            f"File {file_path} is {size:,} bytes, exceeds limit of {limit:,} bytes. "
            f"Set CALLCTX_MAX_FILE_SIZE environment variable to increase limit."
        )


class ParserUnavailableError(CallContextError, RuntimeError):
    """Raised when the tree-sitter grammar for a language is not installed."""

    def __init__(self, language):
        self.language = language
        super().__init__(f"tree-sitter grammar for {language} not available")
