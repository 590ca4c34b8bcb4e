"""
Parser for #if/#elseif/#else/#endif directive comments

Transforms the Scanner's directive stream into a tree of IfBlocks.

The parser keeps two explicit stacks in a ParseState:
1. if_stack: open IfBlocks, used to match #elseif, #else and #endif
2. scope_stack: the branch (If, ElseIf or Else) that nested #if blocks
   currently attach to

Key features:
- Guard text of #if/#elseif is validated as a single expression while parsing
- Every error is recorded; parsing never stops early
- A missing #if before #elseif/#else is replaced by a dummy IfBlock so one
  mistake does not cascade into errors for every following directive
- Unterminated #if blocks are reported once each, outermost first

Example:
    >>> blocks = Parser("// #if A\\na();\\n// #else\\nb();\\n// #endif").parse()
    >>> blocks[0].expression, blocks[0].else_ is not None
    ('A', True)
"""

from typing import List, Optional, Union

from ..models.directives import (
    DirectiveEvent,
    DirectiveTag,
    ElseBlock,
    ElseIfBlock,
    IfBlock,
)
from ..models.parser import ParseErrorEntry, ParseErrorSubtype, ParseState
from .errors import CondCompParseError, ExpressionSyntaxError
from .expression import expression_compile
from .log import LOG
from .scanner import Scanner


class Parser:
    """
    Parser for directive comments in scripting-language source

    Handles:
    - Arbitrarily deep #if nesting inside any branch
    - Any number of #elseif alternatives and one #else per #if
    - Multi-error recovery with line/column for every error
    """

    def __init__(self, source: str, scanner: Optional[Scanner] = None) -> None:
        """
        Initialize parser with source text

        Args:
            source: Raw source text
            scanner: Optional pre-configured Scanner for ``source``
        """
        self.source = source
        self.scanner = scanner if scanner is not None else Scanner(source)

    def parse(self) -> List[IfBlock]:
        """
        Parse source text into a forest of IfBlocks

        Returns:
            Top-level IfBlocks in source order (empty if there are no
            directives).

        Raises:
            CondCompParseError: If any directive is malformed or misplaced;
                ``entries`` lists every problem found in the whole source.
        """
        state = ParseState()

        for event in self.scanner.directives_scan():
            self.event_handle(event, state)

        for if_block in state.if_stack:
            self.error_add(
                state,
                ParseErrorSubtype.MISSING_ENDIF,
                "Found #if without matching #endif.",
                if_block.line,
                if_block.column,
            )

        if state.errors:
            LOG(f"Parsing failed with {len(state.errors)} errors", level=2)
            raise CondCompParseError("Encountered one or more errors during parsing.", state.errors)

        LOG(f"Parsed {len(state.toplevel)} top-level #if blocks", level=2)
        return state.toplevel

    def event_handle(self, event: DirectiveEvent, state: ParseState) -> None:
        """Dispatch one directive to its handler"""
        if event.tag is DirectiveTag.IF:
            self.if_handle(event, state)
        elif event.tag is DirectiveTag.ELSEIF:
            self.elseif_handle(event, state)
        elif event.tag is DirectiveTag.ELSE:
            self.else_handle(event, state)
        else:
            self.endif_handle(event, state)

    def if_handle(self, event: DirectiveEvent, state: ParseState) -> None:
        if_block = IfBlock(
            start=event.start,
            end=event.end,
            line=event.line,
            column=event.column,
        )
        self.expression_set(event, if_block, state)
        self.if_push(if_block, state)

    def elseif_handle(self, event: DirectiveEvent, state: ParseState) -> None:
        elseif_block = ElseIfBlock(
            start=event.start,
            end=event.end,
            line=event.line,
            column=event.column,
        )
        self.expression_set(event, elseif_block, state)

        if_block = self.ifBlock_match(
            event,
            state,
            ParseErrorSubtype.ELSEIF_WITHOUT_IF,
            "Found #elseif without matching #if.",
        )
        if if_block.else_ is not None:
            self.error_add(
                state,
                ParseErrorSubtype.ELSEIF_AFTER_ELSE,
                "Found invalid #elseif after #else.",
                event.line,
                event.column,
            )

        if if_block.elseifs is None:
            if_block.elseifs = []
        if_block.elseifs.append(elseif_block)

        # Nested #if blocks now attach to the #elseif branch
        state.scope_stack[-1] = elseif_block

    def else_handle(self, event: DirectiveEvent, state: ParseState) -> None:
        else_block = ElseBlock(
            start=event.start,
            end=event.end,
            line=event.line,
            column=event.column,
        )

        if_block = self.ifBlock_match(
            event,
            state,
            ParseErrorSubtype.ELSE_WITHOUT_IF,
            "Found #else without matching #if or #elseif.",
        )
        if if_block.else_ is not None:
            self.error_add(
                state,
                ParseErrorSubtype.DUPLICATE_ELSE,
                "Found duplicate #else.",
                event.line,
                event.column,
            )

        if_block.else_ = else_block
        state.scope_stack[-1] = else_block

    def endif_handle(self, event: DirectiveEvent, state: ParseState) -> None:
        if not state.if_stack:
            self.error_add(
                state,
                ParseErrorSubtype.ENDIF_WITHOUT_IF,
                "Found #endif without matching #if, #elseif, or #else.",
                event.line,
                event.column,
            )
            return

        if_block = state.if_stack.pop()
        if_block.endif.start = event.start
        if_block.endif.end = event.end
        if_block.endif.line = event.line
        if_block.endif.column = event.column

        state.scope_stack.pop()
        if not state.scope_stack:
            state.toplevel.append(if_block)

    def if_push(self, if_block: IfBlock, state: ParseState) -> None:
        """Open ``if_block``, attaching it to the current branch if there is one"""
        if state.scope_stack:
            scope = state.scope_stack[-1]
            if scope.children is None:
                scope.children = []
            scope.children.append(if_block)
        state.scope_stack.append(if_block)
        state.if_stack.append(if_block)

    def ifBlock_match(
        self,
        event: DirectiveEvent,
        state: ParseState,
        subtype: ParseErrorSubtype,
        message: str,
    ) -> IfBlock:
        """
        Return the open IfBlock an #elseif/#else belongs to

        When there is none, record ``subtype`` and open a dummy IfBlock at
        the directive's position so that parsing continues without
        follow-up errors.
        """
        if state.if_stack:
            return state.if_stack[-1]

        self.error_add(state, subtype, message, event.line, event.column)
        dummy = IfBlock(
            start=event.start,
            end=event.end,
            line=event.line,
            column=event.column,
            dummy=True,
        )
        self.if_push(dummy, state)
        return dummy

    def expression_set(
        self,
        event: DirectiveEvent,
        block: Union[IfBlock, ElseIfBlock],
        state: ParseState,
    ) -> None:
        """Validate the guard text of an #if/#elseif and store it on ``block``"""
        tag = event.tag.value
        if event.raw_expression == '':
            self.error_add(
                state,
                ParseErrorSubtype.INVALID_EXPRESSION,
                f"Found #{tag} without expression.",
                event.line,
                event.column,
            )
            return

        try:
            compiled = expression_compile(event.raw_expression)
        except ExpressionSyntaxError as e:
            self.error_add(
                state,
                ParseErrorSubtype.INVALID_EXPRESSION,
                str(e),
                event.line,
                event.column,
            )
            return

        block.expression = compiled.code
        block.node = compiled

    def error_add(
        self,
        state: ParseState,
        subtype: ParseErrorSubtype,
        message: str,
        line: int,
        column: int,
    ) -> None:
        LOG(f"{subtype.value} at {line}:{column}: {message}", level=3)
        state.errors.append(
            ParseErrorEntry(subtype=subtype, message=message, line=line, column=column)
        )
