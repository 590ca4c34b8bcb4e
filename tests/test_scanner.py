"""
Scanner tests - finding directive comments

Tests which comments count as directives, what payload they carry and the
positions reported for them.
"""

import pytest

from condcomp.lib.scanner import LineIndex, Scanner, contentLine_find, directive_match
from condcomp.models.directives import DirectiveTag


def scan(source):
    """Return (tag, line, column, raw_expression) for every directive"""
    return [
        (event.tag.value, event.line, event.column, event.raw_expression)
        for event in Scanner(source).directives_scan()
    ]


class TestDirectiveMatch:
    """Test recognition of directive text inside a single comment"""

    def test_if_with_expression(self):
        """Payload is everything after the tag"""
        assert directive_match(" #if A && B", False) == (DirectiveTag.IF, "A && B")

    def test_tag_without_space(self):
        """A directive may follow the comment delimiter directly"""
        assert directive_match("#endif", False) == (DirectiveTag.ENDIF, "")

    def test_else_with_trailing_whitespace(self):
        """Only whitespace after the tag means no payload"""
        assert directive_match(" #else   ", False) == (DirectiveTag.ELSE, "")

    def test_endif_keeps_payload(self):
        """Text after #endif is reported but ignored later on"""
        assert directive_match(" #endif FOO", False) == (DirectiveTag.ENDIF, "FOO")

    def test_tab_separates_payload(self):
        """Any whitespace separates the tag from its payload"""
        assert directive_match(" #elseif\tB", False) == (DirectiveTag.ELSEIF, "B")

    @pytest.mark.parametrize("text", [" #ifdef A", " #elsewhere", " #endiff", " # if A", " note #if A", " ifA"])
    def test_non_directives(self, text):
        """Tags must be whole words right at the start of the comment"""
        assert directive_match(text, False) is None


class TestContentLine:
    """Test which line of a block comment can hold a directive"""

    def test_line_comment_is_whole_text(self):
        assert contentLine_find(" #if A", False) == " #if A"

    def test_block_comment_skips_opening_star(self):
        """The '*' of '/**' and leading '*' of content lines are ignored"""
        assert contentLine_find("*\n * #if A\n * && B\n ", True) == " #if A"

    def test_block_comment_empty(self):
        assert contentLine_find("*\n *\n ", True) is None

    def test_block_comment_first_content_line_only(self):
        """A directive on a later content line is not recognised"""
        assert directive_match(" note\n * #if A\n ", True) is None


class TestLineIndex:
    """Test offset to (line, column) mapping"""

    def test_lf(self):
        index = LineIndex("ab\ncd\nef")
        assert index.position_locate(0) == (1, 0)
        assert index.position_locate(4) == (2, 1)
        assert index.position_locate(6) == (3, 0)

    def test_crlf_counts_once(self):
        index = LineIndex("a\r\nb")
        assert index.position_locate(3) == (2, 0)

    def test_unicode_line_terminators(self):
        index = LineIndex("a\u2028b\u2029c\rd")
        assert index.position_locate(2) == (2, 0)
        assert index.position_locate(4) == (3, 0)
        assert index.position_locate(6) == (4, 0)


class TestScanner:
    """Test directive events produced from whole sources"""

    def test_no_comments(self):
        assert scan("let a = 1;\nlet b = 2;\n") == []

    def test_line_comments(self):
        source = "a();\n// #if DEBUG\nb();\n// #endif"
        assert scan(source) == [("if", 2, 0, "DEBUG"), ("endif", 4, 0, "")]

    def test_indented_directive_column(self):
        """Column is that of the comment start"""
        source = "if (x) {\n    // #if A\n    y();\n    // #endif\n}"
        assert scan(source) == [("if", 2, 4, "A"), ("endif", 4, 4, "")]

    def test_ordinary_comments_ignored(self):
        source = "// just a comment\n/* another */\n// #if A\n// #endif"
        assert [tag for tag, *_ in scan(source)] == ["if", "endif"]

    def test_directive_text_in_string_ignored(self):
        """Comment-like text inside string literals is not a comment"""
        source = "const s = \"// #if A\";\nconst t = '/* #endif */';"
        assert scan(source) == []

    def test_block_comment_single_line(self):
        source = "/* #if true */\n1\n/* #endif */"
        assert scan(source) == [("if", 1, 0, "true "), ("endif", 3, 0, "")]

    def test_block_comment_multiline(self):
        source = "/**\n * #if A\n * && B\n */\n1\n/**\n * #endif\n */"
        assert scan(source) == [("if", 1, 0, "A"), ("endif", 6, 0, "")]

    def test_event_span_covers_comment(self):
        """start/end cover the comment delimiters, not the line terminator"""
        source = "x;\n// #if A\n// #endif\n"
        events = list(Scanner(source).directives_scan())
        assert source[events[0].start:events[0].end] == "// #if A"
        assert source[events[1].start:events[1].end] == "// #endif"

    def test_block_comment_span(self):
        source = "/* #if A */x/* #endif */"
        events = list(Scanner(source).directives_scan())
        assert (events[0].start, events[0].end) == (0, 11)
        assert (events[1].start, events[1].end) == (12, 24)

    def test_crlf_excluded_from_span(self):
        source = "a\r\n// #if A\r\nb\r\n// #endif\r\n"
        events = list(Scanner(source).directives_scan())
        assert [(e.line, e.raw_expression) for e in events] == [(2, "A"), (4, "")]
        assert source[events[0].start:events[0].end] == "// #if A"

    def test_lone_cr_ends_line_comment(self):
        """A CR on its own terminates a line comment"""
        source = "1\r// #if A\r2\r// #endif\r3"
        assert scan(source) == [("if", 2, 0, "A"), ("endif", 4, 0, "")]

    def test_unicode_separators_end_line_comment(self):
        source = "// #if A\u2028b();\u2029// #endif"
        assert scan(source) == [("if", 1, 0, "A"), ("endif", 3, 0, "")]
