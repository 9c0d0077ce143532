"""
Lexical scanning shared by the heuristic language adapters.

The adapters for Python and Go recognise definitions, calls and imports with
regular expressions. Running those over raw source misfires on strings and
comments, so this module splits a text into string/comment segments and
produces a *masked* copy in which every character of those segments except
newlines is replaced by a space. Offsets and line numbers in the masked text
are identical to the input.

Known limitation: nested quotes inside f-string replacement fields that reuse
the enclosing quote character (allowed since Python 3.12) end the string
early.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field

STRING = "string"
COMMENT = "comment"

OPENING_BRACKETS = "([{"
CLOSING_BRACKETS = ")]}"


@dataclass(frozen=True)
class CommentSyntax:
    """Comment and string-literal delimiters of one language."""

    line_comments: tuple[str, ...] = ()
    block_comment: tuple[str, str] | None = None
    string_delimiters: tuple[str, ...] = ('"', "'")
    raw_delimiters: frozenset[str] = field(default_factory=frozenset)
    multiline_delimiters: frozenset[str] = field(default_factory=frozenset)

    def opener_pattern(self) -> re.Pattern:
        markers = list(self.line_comments) + list(self.string_delimiters)
        if self.block_comment:
            markers.append(self.block_comment[0])
        markers.sort(key=len, reverse=True)
        return re.compile("|".join(re.escape(marker) for marker in markers))


PYTHON_SYNTAX = CommentSyntax(
    line_comments=("#",),
    string_delimiters=('"""', "'''", '"', "'"),
    multiline_delimiters=frozenset({'"""', "'''"}),
)

GO_SYNTAX = CommentSyntax(
    line_comments=("//",),
    block_comment=("/*", "*/"),
    string_delimiters=('"', "'", "`"),
    raw_delimiters=frozenset({"`"}),
    multiline_delimiters=frozenset({"`"}),
)

JAVA_SYNTAX = CommentSyntax(
    line_comments=("//",),
    block_comment=("/*", "*/"),
    string_delimiters=('"""', '"', "'"),
    multiline_delimiters=frozenset({'"""'}),
)


@dataclass(frozen=True)
class Segment:
    kind: str
    start: int
    end: int


def _string_end(text: str, pos: int, delimiter: str, syntax: CommentSyntax) -> int:
    raw = delimiter in syntax.raw_delimiters
    multiline = delimiter in syntax.multiline_delimiters
    n = len(text)
    i = pos
    while i < n:
        ch = text[i]
        if ch == "\\" and not raw:
            i += 2
            continue
        if text.startswith(delimiter, i):
            return i + len(delimiter)
        if ch == "\n" and not multiline:
            # Unterminated single-line literal ends at the newline
            return i
        i += 1
    return n


def scan_segments(text: str, syntax: CommentSyntax) -> list[Segment]:
    """Split ``text`` into string and comment segments, in source order.

    Unterminated block comments and multi-line strings run to the end of the
    text.
    """
    segments: list[Segment] = []
    opener = syntax.opener_pattern()
    n = len(text)
    i = 0
    while i < n:
        match = opener.search(text, i)
        if match is None:
            break
        token = match.group()
        start = match.start()
        if token in syntax.line_comments:
            end = text.find("\n", start)
            end = n if end == -1 else end
            segments.append(Segment(COMMENT, start, end))
        elif syntax.block_comment and token == syntax.block_comment[0]:
            close = text.find(syntax.block_comment[1], start + len(token))
            end = n if close == -1 else close + len(syntax.block_comment[1])
            segments.append(Segment(COMMENT, start, end))
        else:
            end = _string_end(text, start + len(token), token, syntax)
            segments.append(Segment(STRING, start, end))
        i = max(end, start + 1)
    return segments


def _blank(chunk: str) -> str:
    return re.sub(r"[^\n]", " ", chunk)


def mask(text: str, segments: list[Segment]) -> str:
    """Return ``text`` with all segment characters except newlines blanked."""
    pieces = []
    last = 0
    for segment in segments:
        pieces.append(text[last:segment.start])
        pieces.append(_blank(text[segment.start:segment.end]))
        last = segment.end
    pieces.append(text[last:])
    return "".join(pieces)


def remove_segments(text: str, segments: list[Segment]) -> str:
    """Delete ``segments`` from ``text``.

    Lines that held only removed content are dropped, lines that were blank
    to begin with are kept, and trailing whitespace is trimmed.
    """
    pieces = []
    last = 0
    for segment in segments:
        pieces.append(text[last:segment.start])
        pieces.append("\n" * text.count("\n", segment.start, segment.end))
        last = segment.end
    pieces.append(text[last:])
    stripped = "".join(pieces)

    lines = []
    for before, line in zip(text.split("\n"), stripped.split("\n")):
        if line.strip() or not before.strip():
            lines.append(line.rstrip())
    return "\n".join(lines)


def strip_comments(text: str, syntax: CommentSyntax) -> str:
    """Remove comments from ``text``, leaving string literals untouched."""
    comments = [s for s in scan_segments(text, syntax) if s.kind == COMMENT]
    return remove_segments(text, comments)


def count_brackets(line: str, opening: str = OPENING_BRACKETS, closing: str = CLOSING_BRACKETS) -> int:
    """Net bracket depth change of a (masked) line."""
    depth = 0
    for ch in line:
        if ch in opening:
            depth += 1
        elif ch in closing:
            depth -= 1
    return depth


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, so indices line up with line_offsets()."""
    return text.split("\n")


def line_offsets(text: str) -> list[int]:
    """Character offset of the start of each line."""
    offsets = [0]
    position = text.find("\n")
    while position != -1:
        offsets.append(position + 1)
        position = text.find("\n", position + 1)
    return offsets


def line_index(offsets: list[int], offset: int) -> int:
    """0-based line containing ``offset``."""
    return max(bisect.bisect_right(offsets, offset) - 1, 0)


def indent_width(line: str) -> int:
    return len(line.expandtabs(4)) - len(line.expandtabs(4).lstrip())


def continued_string_lines(segments: list[Segment], offsets: list[int]) -> set[int]:
    """0-based indices of lines that begin inside a multi-line string."""
    lines: set[int] = set()
    for segment in segments:
        if segment.kind != STRING:
            continue
        first = line_index(offsets, segment.start)
        last = line_index(offsets, max(segment.end - 1, segment.start))
        lines.update(range(first + 1, last + 1))
    return lines
