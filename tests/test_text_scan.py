"""Tests for string/comment segmentation and masking."""

import pytest

from callctx import text_scan
from callctx.text_scan import COMMENT, GO_SYNTAX, JAVA_SYNTAX, PYTHON_SYNTAX, STRING


def kinds(text, syntax):
    return [(s.kind, text[s.start:s.end]) for s in text_scan.scan_segments(text, syntax)]


class TestScanSegments:
    def test_python_comment_and_strings(self):
        text = 'x = "a # not comment"  # real\ny = \'b\'\n'
        assert kinds(text, PYTHON_SYNTAX) == [
            (STRING, '"a # not comment"'),
            (COMMENT, "# real"),
            (STRING, "'b'"),
        ]

    def test_python_triple_quoted_spans_lines(self):
        text = 'def f():\n    """Doc\n    more # text\n    """\n    return 1\n'
        segments = text_scan.scan_segments(text, PYTHON_SYNTAX)
        assert len(segments) == 1
        assert segments[0].kind == STRING
        assert text[segments[0].start:segments[0].end].endswith('"""')

    def test_escaped_quote_does_not_end_string(self):
        text = 'x = "say \\"hi\\"" + y\n'
        assert kinds(text, PYTHON_SYNTAX) == [(STRING, '"say \\"hi\\""')]

    def test_go_raw_string_ignores_backslash_and_newlines(self):
        text = "s := `C:\\path\n// inside`\n// outside\n"
        assert kinds(text, GO_SYNTAX) == [
            (STRING, "`C:\\path\n// inside`"),
            (COMMENT, "// outside"),
        ]

    def test_block_comment(self):
        text = "a /* one\n two */ b // three\n"
        assert kinds(text, JAVA_SYNTAX) == [(COMMENT, "/* one\n two */"), (COMMENT, "// three")]

    def test_unterminated_block_comment_runs_to_end(self):
        text = "int x; /* open\nstill open"
        segments = text_scan.scan_segments(text, JAVA_SYNTAX)
        assert segments[-1].end == len(text)

    def test_unterminated_single_line_string_stops_at_newline(self):
        text = 'x = "broken\ny = f()\n'
        segments = text_scan.scan_segments(text, PYTHON_SYNTAX)
        assert text[segments[0].start:segments[0].end] == '"broken'

    def test_java_text_block(self):
        text = 'String s = """\n  // not a comment\n  """;\n'
        assert [k for k, _ in kinds(text, JAVA_SYNTAX)] == [STRING]


class TestMask:
    def test_preserves_length_and_newlines(self):
        text = 'call("x(") # y()\nnext()\n'
        masked = text_scan.mask(text, text_scan.scan_segments(text, PYTHON_SYNTAX))
        assert len(masked) == len(text)
        assert masked.count("\n") == text.count("\n")
        assert "x(" not in masked
        assert "y()" not in masked
        assert masked.startswith("call(")
        assert "next()" in masked


class TestStripComments:
    def test_java_comments_removed_strings_kept(self):
        text = (
            "void run() {\n"
            "    // explanatory comment\n"
            '    String s = "//not-a-comment";\n'
            "    call(); /* trailing */\n"
            "}"
        )
        stripped = text_scan.strip_comments(text, JAVA_SYNTAX)
        assert "explanatory" not in stripped
        assert "trailing" not in stripped
        assert '"//not-a-comment"' in stripped
        assert stripped.split("\n") == [
            "void run() {",
            '    String s = "//not-a-comment";',
            "    call();",
            "}",
        ]

    def test_blank_lines_are_kept(self):
        text = "a()\n\n# gone\nb()"
        assert text_scan.strip_comments(text, PYTHON_SYNTAX) == "a()\n\nb()"

    def test_multiline_block_comment_lines_dropped(self):
        text = "x := 1\n/*\n * doc\n */\ny := 2"
        assert text_scan.strip_comments(text, GO_SYNTAX) == "x := 1\ny := 2"


class TestLineHelpers:
    def test_line_offsets_and_index(self):
        text = "ab\ncd\n\nef"
        offsets = text_scan.line_offsets(text)
        assert offsets == [0, 3, 6, 7]
        assert text_scan.line_index(offsets, 0) == 0
        assert text_scan.line_index(offsets, 4) == 1
        assert text_scan.line_index(offsets, 7) == 3

    @pytest.mark.parametrize(
        "line,width",
        [("x", 0), ("    x", 4), ("\tx", 4), ("  \tx", 4), ("", 0)],
    )
    def test_indent_width(self, line, width):
        assert text_scan.indent_width(line) == width

    def test_count_brackets(self):
        assert text_scan.count_brackets("f(a, [b") == 2
        assert text_scan.count_brackets("])") == -2

    def test_continued_string_lines(self):
        text = 'x = """\nin\nside"""\ny = 1\n'
        segments = text_scan.scan_segments(text, PYTHON_SYNTAX)
        offsets = text_scan.line_offsets(text)
        assert text_scan.continued_string_lines(segments, offsets) == {1, 2}
