"""
Guard expression tree and evaluation result models

Guard expressions are parsed into these nodes by lib.expression and
interpreted by lib.interpreter. The node set covers the expression subset
of the scripting language that guards may use.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Iterator, List, Optional, Union


@dataclass
class Literal:
    value: Any


@dataclass
class Identifier:
    name: str


@dataclass
class Spread:
    argument: "Expr"


@dataclass
class ArrayLiteral:
    elements: List[Union["Expr", Spread]]


@dataclass
class Property:
    """Object literal entry; ``key`` is a str unless ``computed``"""
    key: Any
    value: "Expr"
    computed: bool = False


@dataclass
class ObjectLiteral:
    properties: List[Union[Property, Spread]]


@dataclass
class Unary:
    operator: str
    operand: "Expr"


@dataclass
class Await:
    operand: "Expr"


@dataclass
class Binary:
    operator: str
    left: "Expr"
    right: "Expr"


@dataclass
class Logical:
    operator: str  # "&&", "||" or "??"
    left: "Expr"
    right: "Expr"


@dataclass
class Conditional:
    test: "Expr"
    consequent: "Expr"
    alternate: "Expr"


@dataclass
class Assign:
    operator: str
    target: "Expr"
    value: "Expr"


@dataclass
class Sequence:
    expressions: List["Expr"]


@dataclass
class Member:
    """Property read; ``prop`` is a Literal name unless ``computed``"""
    obj: "Expr"
    prop: "Expr"
    computed: bool = False
    optional: bool = False


@dataclass
class Call:
    callee: "Expr"
    arguments: List[Union["Expr", Spread]]
    optional: bool = False


@dataclass
class Arrow:
    params: List[str]
    body: "Expr"


@dataclass
class OptionalChain:
    """
    Boundary of an optional chain (``a?.b.c``)

    A nullish base at any ``?.`` inside the chain makes the whole chain
    evaluate to undefined. A parenthesised chain is closed and is not
    extended by further member accesses or calls.
    """
    expression: "Expr"
    parenthesized: bool = False


Expr = Union[
    Literal, Identifier, ArrayLiteral, ObjectLiteral, Unary, Await, Binary,
    Logical, Conditional, Assign, Sequence, Member, Call, Arrow, OptionalChain,
]


def node_walk(node: Any) -> Iterator[Any]:
    """Yield ``node`` and every expression node below it, depth first"""
    yield node
    if not is_dataclass(node):
        return
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, list):
            for item in value:
                if is_dataclass(item):
                    yield from node_walk(item)
        elif is_dataclass(value):
            yield from node_walk(value)


def node_suspends(node: Any) -> bool:
    """True when the expression contains a suspension point (``await``)"""
    return any(isinstance(n, Await) for n in node_walk(node))


@dataclass
class CompiledExpression:
    """
    A validated guard expression

    Attributes:
        code: Normalised source: the exact span of the single expression
        node: Expression tree for the interpreter
        suspends: Whether the expression contains ``await``
    """
    code: str
    node: Expr
    suspends: bool = False


@dataclass
class EvaluationResultEntry:
    """
    Outcome of one IfBlock in a batch run

    Attributes:
        branch: 0 = if guard, k = k-th elseif guard, -1 = else/no match
        children: Results for the taken branch's nested blocks, aligned 1:1;
                  None when that branch has no nested blocks
    """
    branch: int
    children: Optional[List["EvaluationResultEntry"]] = field(default=None)
