"""Tree-sitter parsing for the structured languages.

Only Java is parsed into a real syntax tree. Each SourceUnit keeps the tree
of its last parse together with the bytes it was built from; when the unit's
content changes the old tree is edited with the changed byte range and handed
back to tree-sitter, which then re-parses only the affected region.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from .errors import ParserUnavailableError
from .models import Language

logger = logging.getLogger(__name__)

TREE_SITTER_AVAILABLE = False
try:
    from tree_sitter import Language as TSLanguage, Parser

    TREE_SITTER_AVAILABLE = True
except ImportError:
    pass

TREE_SITTER_JAVA_AVAILABLE = False
try:
    import tree_sitter_java

    TREE_SITTER_JAVA_AVAILABLE = True
except ImportError:
    pass


def grammar_available(language: Language) -> bool:
    if language is Language.JAVA:
        return TREE_SITTER_AVAILABLE and TREE_SITTER_JAVA_AVAILABLE
    return False


@dataclass
class EditRange:
    """A single contiguous edit, in the byte/point form Tree.edit() expects."""

    start_byte: int
    old_end_byte: int
    new_end_byte: int
    start_point: tuple[int, int]  # (row, column)
    old_end_point: tuple[int, int]
    new_end_point: tuple[int, int]


def _point_at(content: bytes, byte_offset: int) -> tuple[int, int]:
    byte_offset = min(byte_offset, len(content))
    row = content.count(b"\n", 0, byte_offset)
    last_newline = content.rfind(b"\n", 0, byte_offset)
    return (row, byte_offset - last_newline - 1)


def calculate_edit_range(old_content: bytes, new_content: bytes) -> Optional[EditRange]:
    """Smallest single edit turning old_content into new_content.

    Returns:
        EditRange covering the differing middle part, or None if identical
    """
    if old_content == new_content:
        return None

    limit = min(len(old_content), len(new_content))
    start = 0
    while start < limit and old_content[start] == new_content[start]:
        start += 1

    # Common suffix, not overlapping the common prefix
    suffix = 0
    while (
        suffix < limit - start
        and old_content[len(old_content) - suffix - 1] == new_content[len(new_content) - suffix - 1]
    ):
        suffix += 1

    old_end = len(old_content) - suffix
    new_end = len(new_content) - suffix
    return EditRange(
        start_byte=start,
        old_end_byte=old_end,
        new_end_byte=new_end,
        start_point=_point_at(old_content, start),
        old_end_point=_point_at(old_content, old_end),
        new_end_point=_point_at(new_content, new_end),
    )


@lru_cache(maxsize=None)
def _get_parser(language: Language) -> Any:
    """Build the tree-sitter parser for a language.

    Raises:
        ParserUnavailableError: if tree-sitter or the grammar is not installed
    """
    if not grammar_available(language):
        raise ParserUnavailableError(language.value)
    return Parser(TSLanguage(tree_sitter_java.language()))


def parse_source(
    language: Language,
    source: bytes,
    old_tree: Any = None,
    old_source: Optional[bytes] = None,
) -> Any:
    """Parse source bytes, reusing old_tree when the previous bytes are given."""
    parser = _get_parser(language)
    if old_tree is None or old_source is None:
        return parser.parse(source)

    edit = calculate_edit_range(old_source, source)
    if edit is None:
        return old_tree

    old_tree.edit(
        start_byte=edit.start_byte,
        old_end_byte=edit.old_end_byte,
        new_end_byte=edit.new_end_byte,
        start_point=edit.start_point,
        old_end_point=edit.old_end_point,
        new_end_point=edit.new_end_point,
    )
    logger.debug(
        f"Incremental {language.value} reparse of bytes {edit.start_byte}-{edit.new_end_byte}"
    )
    return parser.parse(source, old_tree)


def node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
