"""
Directive and block models

Defines the directive tags recognised inside comments and the block tree
built from them by the parser.

Blocks are a tagged union: IfBlock, ElseIfBlock and ElseBlock each carry a
``kind`` discriminant and share no base class. A dummy IfBlock (synthesised
during error recovery) is an ordinary IfBlock with ``dummy=True``.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


class DirectiveTag(Enum):
    """
    Tags recognised in directive comments

    The value is the literal text that follows the ``#``.
    """
    IF = "if"
    ELSEIF = "elseif"
    ELSE = "else"
    ENDIF = "endif"


class BlockKind(Enum):
    """Discriminant for the block tagged union"""
    IF = "if"
    ELSEIF = "elseif"
    ELSE = "else"


@dataclass
class DirectiveEvent:
    """
    One recognised directive comment

    Produced by the Scanner and consumed immediately by the Parser.

    Attributes:
        tag: Which directive the comment holds
        start: Offset of the first character of the comment
        end: Offset one past the last character of the comment
        line: 1-based line of the comment start
        column: 0-based column of the comment start
        raw_expression: Text following the tag on the same line ("" if none)
    """
    tag: DirectiveTag
    start: int
    end: int
    line: int
    column: int
    raw_expression: str = ""


@dataclass
class Endif:
    """Position of the ``#endif`` comment closing an IfBlock"""
    start: int = -1
    end: int = -1
    line: int = -1
    column: int = -1


@dataclass
class ElseBlock:
    start: int
    end: int
    line: int
    column: int
    children: Optional[List["IfBlock"]] = None
    kind: BlockKind = field(default=BlockKind.ELSE, init=False)


@dataclass
class ElseIfBlock:
    start: int
    end: int
    line: int
    column: int
    expression: str = ""
    node: Optional[Any] = None
    children: Optional[List["IfBlock"]] = None
    kind: BlockKind = field(default=BlockKind.ELSEIF, init=False)


@dataclass
class IfBlock:
    """
    An ``#if`` directive together with its alternatives

    Attributes:
        start/end/line/column: Position of the ``#if`` comment itself
        expression: Normalised guard source ("" on dummies or invalid guards)
        node: Compiled guard expression tree (None when invalid)
        children: If blocks nested in the ``#if`` branch body
        elseifs: ``#elseif`` alternatives in source order (None if there are none)
        else_: The ``#else`` alternative, if present
        endif: Position of the closing ``#endif``
        dummy: True when synthesised to recover from a missing ``#if``
        taken_branch: Set after evaluation: 0 = if, k = k-th elseif, -1 = else/none
    """
    start: int
    end: int
    line: int
    column: int
    expression: str = ""
    node: Optional[Any] = None
    children: Optional[List["IfBlock"]] = None
    elseifs: Optional[List[ElseIfBlock]] = None
    else_: Optional[ElseBlock] = None
    endif: Endif = field(default_factory=Endif)
    dummy: bool = False
    taken_branch: Optional[int] = None
    kind: BlockKind = field(default=BlockKind.IF, init=False)

    def branches(self) -> List[Union["IfBlock", ElseIfBlock, ElseBlock]]:
        """The #if itself, its #elseifs and its #else, in source order"""
        branches: List[Union[IfBlock, ElseIfBlock, ElseBlock]] = [self]
        branches.extend(self.elseifs or [])
        if self.else_ is not None:
            branches.append(self.else_)
        return branches


Block = Union[IfBlock, ElseIfBlock, ElseBlock]
