"""
Parser-specific data models

Error entries reported by the Parser and the explicit state it threads
through the directive stream.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import List

from .directives import Block, IfBlock


class ParseErrorSubtype(str, Enum):
    """
    Kinds of structural error the Parser reports

    A str-valued enum, so entries compare equal to the plain names
    (``entry.subtype == "duplicate_else"``).
    """
    INVALID_EXPRESSION = "invalid_expression"
    MISSING_ENDIF = "missing_endif"
    ELSEIF_WITHOUT_IF = "elseif_without_if"
    ELSEIF_AFTER_ELSE = "elseif_after_else"
    ELSE_WITHOUT_IF = "else_without_if"
    DUPLICATE_ELSE = "duplicate_else"
    ENDIF_WITHOUT_IF = "endif_without_if"


@dataclass
class ParseErrorEntry:
    """
    One parse error, pinned to the directive that caused it

    Attributes:
        subtype: Which structural rule was broken
        message: Human-readable description
        line: 1-based line of the offending directive comment
        column: 0-based column of the offending directive comment
        type: Always "parse"
    """
    subtype: ParseErrorSubtype
    message: str
    line: int
    column: int
    type: str = "parse"


@dataclass
class ParseState:
    """
    Explicit parser state, threaded through every directive handler

    Attributes:
        toplevel: Completed top-level IfBlocks, in source order
        if_stack: Open IfBlocks (used to match #elseif/#else/#endif)
        scope_stack: Open branch scopes; nested #if blocks attach to the top
        errors: Accumulated error entries, in discovery order
    """
    toplevel: List[IfBlock] = field(default_factory=list)
    if_stack: List[IfBlock] = field(default_factory=list)
    scope_stack: List[Block] = field(default_factory=list)
    errors: List[ParseErrorEntry] = field(default_factory=list)
