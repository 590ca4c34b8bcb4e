"""
Parser tests - block structure and error recovery

Tests how directive streams become IfBlock trees, and which errors are
reported (with positions) for malformed directive structure.
"""

import pytest

from condcomp.lib.errors import CondCompParseError
from condcomp.lib.parser import Parser
from condcomp.models.directives import BlockKind
from condcomp.models.parser import ParseErrorSubtype


def parse_errors(source):
    """Parse ``source`` and return the reported (subtype, line, column) triples"""
    with pytest.raises(CondCompParseError) as excinfo:
        Parser(source).parse()
    return [(entry.subtype.value, entry.line, entry.column) for entry in excinfo.value.entries]


class TestBlockStructure:
    """Test the shape of the parsed block tree"""

    def test_no_directives(self):
        assert Parser("let a = 1;\n").parse() == []

    def test_empty_source(self):
        assert Parser("").parse() == []

    def test_single_if(self):
        blocks = Parser("// #if A\n1\n// #endif").parse()

        assert len(blocks) == 1
        block = blocks[0]
        assert block.kind is BlockKind.IF
        assert block.expression == "A"
        assert (block.start, block.end, block.line, block.column) == (0, 8, 1, 0)
        assert (block.endif.line, block.endif.column) == (3, 0)
        assert block.children is None
        assert block.elseifs is None
        assert block.else_ is None
        assert block.dummy is False
        assert block.taken_branch is None

    def test_if_elseif_else(self):
        source = "// #if A\n1\n// #elseif B\n2\n// #elseif C\n3\n// #else\n4\n// #endif"
        block = Parser(source).parse()[0]

        assert [e.expression for e in block.elseifs] == ["B", "C"]
        assert [e.kind for e in block.elseifs] == [BlockKind.ELSEIF, BlockKind.ELSEIF]
        assert [e.line for e in block.elseifs] == [3, 5]
        assert block.else_.kind is BlockKind.ELSE
        assert [b.kind for b in block.branches()] == [
            BlockKind.IF, BlockKind.ELSEIF, BlockKind.ELSEIF, BlockKind.ELSE
        ]
        assert block.else_.line == 7
        assert block.endif.line == 9

    def test_sequential_blocks(self):
        source = "// #if A\n// #endif\n// #if B\n// #endif"
        blocks = Parser(source).parse()
        assert [b.expression for b in blocks] == ["A", "B"]

    def test_children_attach_to_their_branch(self):
        """Nested #if blocks belong to the branch they appear in"""
        source = (
            "// #if A\n"
            "// #if B\n// #endif\n"
            "// #elseif C\n"
            "// #if D\n// #endif\n"
            "// #else\n"
            "// #if E\n// #endif\n"
            "// #endif"
        )
        blocks = Parser(source).parse()

        assert len(blocks) == 1
        block = blocks[0]
        assert [c.expression for c in block.children] == ["B"]
        assert [c.expression for c in block.elseifs[0].children] == ["D"]
        assert [c.expression for c in block.else_.children] == ["E"]
        assert block.endif.line == 10

    def test_deep_nesting(self):
        source = "// #if true\n" * 7 + "1\n" + "// #endif\n" * 7
        block = Parser(source).parse()[0]
        depth = 1
        while block.children:
            block = block.children[0]
            depth += 1
        assert depth == 7

    def test_expression_is_normalised(self):
        """Stored guard text is the exact expression span"""
        block = Parser("// #if   A && B;   // why\n// #endif").parse()[0]
        assert block.expression == "A && B"
        assert block.node is not None

    def test_block_comment_directives(self):
        source = "/**\n * #if A\n */\n1\n/* #else */\n2\n/* #endif */"
        block = Parser(source).parse()[0]
        assert block.expression == "A"
        assert block.else_.line == 5
        assert block.endif.line == 7


class TestParseErrors:
    """Test error entries for malformed directive structure"""

    def test_error_message_and_entry_type(self):
        with pytest.raises(CondCompParseError) as excinfo:
            Parser("// #endif").parse()
        assert str(excinfo.value) == "Encountered one or more errors during parsing."
        entry = excinfo.value.entries[0]
        assert entry.type == "parse"
        assert entry.subtype == "endif_without_if"
        assert entry.message == "Found #endif without matching #if, #elseif, or #else."

    def test_duplicate_else(self):
        source = "// #if A\n1\n// #else\n2\n// #else\n3\n// #endif"
        assert parse_errors(source) == [("duplicate_else", 5, 0)]

    def test_elseif_after_else(self):
        source = "// #if A\n// #else\n// #elseif B\n// #endif"
        assert parse_errors(source) == [("elseif_after_else", 3, 0)]

    def test_elseif_without_if(self):
        assert parse_errors("// #elseif A\n1\n// #endif") == [("elseif_without_if", 1, 0)]

    def test_elseif_without_if_and_without_endif(self):
        """The dummy #if opened for recovery is still unterminated"""
        assert parse_errors("// #elseif A\n1") == [
            ("elseif_without_if", 1, 0),
            ("missing_endif", 1, 0),
        ]

    def test_many_elseif_without_if(self):
        """Only the first orphan is reported"""
        source = "// #elseif A\n1\n// #elseif B\n2\n// #endif"
        assert parse_errors(source) == [("elseif_without_if", 1, 0)]

    def test_elseif_and_else_without_if(self):
        source = "// #elseif A\n1\n// #else\n2\n// #endif"
        assert parse_errors(source) == [("elseif_without_if", 1, 0)]

    def test_else_without_if(self):
        assert parse_errors("// #else\n1\n// #endif") == [("else_without_if", 1, 0)]

    def test_else_without_if_and_without_endif(self):
        assert parse_errors("// #else\n1") == [
            ("else_without_if", 1, 0),
            ("missing_endif", 1, 0),
        ]

    def test_endif_without_if(self):
        assert parse_errors("// #endif") == [("endif_without_if", 1, 0)]

    def test_if_else_missing_endif(self):
        assert parse_errors("// #if A\n1\n// #else\n2") == [("missing_endif", 1, 0)]

    def test_if_elseif_missing_endif(self):
        assert parse_errors("// #if A\n1\n// #elseif B\n2") == [("missing_endif", 1, 0)]

    def test_missing_endif_outer(self):
        source = "1\n// #if A\n2\n// #if B\n3\n//#endif\n4"
        assert parse_errors(source) == [("missing_endif", 2, 0)]

    def test_missing_endif_reported_outermost_first(self):
        source = "1\n// #if A\n2\n// #if B\n3"
        assert parse_errors(source) == [("missing_endif", 2, 0), ("missing_endif", 4, 0)]

    def test_missing_endif_indented(self):
        assert parse_errors("x;\n    // #if A\n") == [("missing_endif", 2, 4)]

    def test_all_errors_reported(self):
        """Parsing continues past the first error"""
        source = "// #endif\n// #if A\n// #else\n// #else\n// #endif\n// #if while (1) {}\n// #endif"
        assert parse_errors(source) == [
            ("endif_without_if", 1, 0),
            ("duplicate_else", 4, 0),
            ("invalid_expression", 6, 0),
        ]


class TestInvalidExpressions:
    """Test guard text that is not exactly one expression"""

    def test_if_without_expression(self):
        with pytest.raises(CondCompParseError) as excinfo:
            Parser("// #if\n// #endif").parse()
        entries = excinfo.value.entries
        assert [(e.subtype, e.line, e.column) for e in entries] == [
            (ParseErrorSubtype.INVALID_EXPRESSION, 1, 0)
        ]
        assert entries[0].message == "Found #if without expression."

    def test_elseif_without_expression(self):
        with pytest.raises(CondCompParseError) as excinfo:
            Parser("// #if A\n// #elseif   \n// #endif").parse()
        entry = excinfo.value.entries[0]
        assert (entry.subtype, entry.line) == (ParseErrorSubtype.INVALID_EXPRESSION, 2)
        assert entry.message == "Found #elseif without expression."

    def test_statement_instead_of_expression(self):
        with pytest.raises(CondCompParseError) as excinfo:
            Parser("// #if while (false) {}\n// #endif").parse()
        entry = excinfo.value.entries[0]
        assert (entry.subtype.value, entry.line, entry.column) == ("invalid_expression", 1, 0)
        assert entry.message == "Expected an expression, found WhileStatement."

    def test_more_than_one_expression(self):
        source = "1\n// #if A; B;\n2\n// #endif\n3"
        assert parse_errors(source) == [("invalid_expression", 2, 0)]

    def test_syntax_error(self):
        assert parse_errors("// #if A &&\n// #endif") == [("invalid_expression", 1, 0)]

    def test_invalid_expression_does_not_break_structure(self):
        """A bad guard is reported once; its block still matches #endif"""
        source = "// #if )(\n// #else\n// #endif"
        assert parse_errors(source) == [("invalid_expression", 1, 0)]
