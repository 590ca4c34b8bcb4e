"""
Guard expression compiler

Validates the raw text after #if/#elseif as exactly one expression of the
scripting language and builds the expression tree the interpreter runs.

The grammar lives in guard.lark and is parsed with an Earley parser;
GuardTransformer turns the parse tree into models.expression nodes.

Example:
    >>> compiled = expression_compile("DEBUG && level > 2;  // trailing")
    >>> compiled.code
    'DEBUG && level > 2'
"""

import re
from pathlib import Path
from typing import Any, Callable, List, Optional

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from ..models.expression import (
    ArrayLiteral,
    Arrow,
    Assign,
    Await,
    Binary,
    Call,
    CompiledExpression,
    Conditional,
    Identifier,
    Literal,
    Logical,
    Member,
    ObjectLiteral,
    OptionalChain,
    Property,
    Sequence,
    Spread,
    Unary,
    node_suspends,
)
from .errors import ExpressionSyntaxError
from .runtime import number_format

_GRAMMAR_PATH = Path(__file__).parent / "guard.lark"

_parser = Lark(
    _GRAMMAR_PATH.read_text(encoding="utf-8"),
    parser="earley",
    propagate_positions=True,
)

# Leading keywords that make the guard a statement rather than an expression
_STATEMENT_KINDS = {
    "if": "IfStatement",
    "for": "ForStatement",
    "while": "WhileStatement",
    "do": "DoWhileStatement",
    "var": "VariableDeclaration",
    "const": "VariableDeclaration",
    "function": "FunctionDeclaration",
    "class": "ClassDeclaration",
    "return": "ReturnStatement",
    "switch": "SwitchStatement",
    "try": "TryStatement",
    "throw": "ThrowStatement",
    "break": "BreakStatement",
    "continue": "ContinueStatement",
    "import": "ImportDeclaration",
    "export": "ExportNamedDeclaration",
    "debugger": "DebuggerStatement",
    "with": "WithStatement",
}

_STATEMENT_START = re.compile(
    r'\s*(?:(?P<keyword>' + '|'.join(_STATEMENT_KINDS) + r')(?![\w$])'
    r'|(?P<let>let\s+[\w$\[{])'
    r'|(?P<block>\{)'
    r'|(?P<empty>;))'
)

_STRING_ESCAPE = re.compile(
    r'\\(?:u\{([0-9a-fA-F]+)\}|u([0-9a-fA-F]{4})|x([0-9a-fA-F]{2})|(\r\n|[\s\S]))'
)

_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    'v': '\v',
    '0': '\0',
}


def statement_kind(text: str) -> Optional[str]:
    """
    Name of the statement that ``text`` starts with, if it is not an expression

    Example:
        >>> statement_kind("for (;;) {}")
        'ForStatement'
        >>> statement_kind("format(x)") is None
        True
    """
    match = _STATEMENT_START.match(text)
    if match is None:
        return None
    if match.group('keyword'):
        return _STATEMENT_KINDS[match.group('keyword')]
    if match.group('let'):
        return "VariableDeclaration"
    if match.group('block'):
        return "BlockStatement"
    return "EmptyStatement"


def number_parse(text: str) -> Any:
    """Value of a numeric literal (int where exact, float otherwise)"""
    if text[:2].lower() in ('0x', '0o', '0b'):
        return int(text, 0)
    if any(c in text for c in '.eE'):
        return float(text)
    return int(text, 10)


def string_decode(text: str) -> str:
    """Value of a quoted string literal, escapes resolved"""
    def escape_replace(match: 're.Match') -> str:
        braced, four, two, single = match.groups()
        if braced is not None:
            return chr(int(braced, 16))
        if four is not None:
            return chr(int(four, 16))
        if two is not None:
            return chr(int(two, 16))
        if single in ('\n', '\r', '\r\n', '\u2028', '\u2029'):
            return ''
        return _SIMPLE_ESCAPES.get(single, single)

    return _STRING_ESCAPE.sub(escape_replace, text[1:-1])


def _left_assoc_ops(args: List[Any]) -> Any:
    """Fold an interleaved operand/operator/operand list into Binary nodes"""
    result = args[0]
    for i in range(1, len(args), 2):
        result = Binary(str(args[i]), result, args[i + 1])
    return result


class GuardTransformer(Transformer):
    """Builds models.expression nodes from the guard.lark parse tree"""

    # --- Comma, assignment, arrow ---

    def sequence(self, args):
        left, right = args
        if isinstance(left, Sequence):
            return Sequence(left.expressions + [right])
        return Sequence([left, right])

    def assign(self, args):
        target, op, value = args
        if not isinstance(target, (Identifier, Member)):
            raise ExpressionSyntaxError("Assigning to rvalue")
        return Assign(str(op), target, value)

    def arrow(self, args):
        params, body = args
        if node_suspends(body):
            raise ExpressionSyntaxError("Cannot use keyword 'await' outside an async function")
        return Arrow(params, body)

    def arrow_params(self, args):
        return [str(name) for name in args]

    # --- Conditional and logical ---

    def conditional(self, args):
        return Conditional(*args)

    def coalesce(self, args):
        result = args[0]
        for operand in args[1:]:
            result = Logical("??", result, operand)
        return result

    def logical_or(self, args):
        return Logical("||", args[0], args[1])

    def logical_and(self, args):
        return Logical("&&", args[0], args[1])

    # --- Binary operators ---

    def bit_or(self, args):
        return _left_assoc_ops(args)

    def bit_xor(self, args):
        return _left_assoc_ops(args)

    def bit_and(self, args):
        return _left_assoc_ops(args)

    def equality(self, args):
        return _left_assoc_ops(args)

    def relational(self, args):
        return _left_assoc_ops(args)

    def shift(self, args):
        return _left_assoc_ops(args)

    def additive(self, args):
        return _left_assoc_ops(args)

    def multiplicative(self, args):
        return _left_assoc_ops(args)

    def pow(self, args):
        return Binary("**", args[0], args[1])

    def unary(self, args):
        return Unary(str(args[0]), args[1])

    def await_expr(self, args):
        return Await(args[0])

    # --- Member access and calls ---

    def member(self, args):
        obj, name = args
        return self.chain_extend(obj, lambda base: Member(base, Literal(str(name))))

    def index(self, args):
        obj, prop = args
        return self.chain_extend(obj, lambda base: Member(base, prop, computed=True))

    def call(self, args):
        callee, arguments = args
        return self.chain_extend(callee, lambda base: Call(base, arguments))

    def optional_member(self, args):
        obj, name = args
        return self.chain_start(obj, lambda base: Member(base, Literal(str(name)), optional=True))

    def optional_index(self, args):
        obj, prop = args
        return self.chain_start(obj, lambda base: Member(base, prop, computed=True, optional=True))

    def optional_call(self, args):
        callee, arguments = args
        return self.chain_start(callee, lambda base: Call(base, arguments, optional=True))

    def arguments(self, args):
        return list(args)

    def spread(self, args):
        return Spread(args[0])

    def chain_extend(self, obj: Any, build: Callable[[Any], Any]) -> Any:
        """Apply a plain access, continuing an open optional chain"""
        if isinstance(obj, OptionalChain) and not obj.parenthesized:
            return OptionalChain(build(obj.expression))
        return build(obj)

    def chain_start(self, obj: Any, build: Callable[[Any], Any]) -> OptionalChain:
        """Apply a ``?.`` access, opening (or continuing) an optional chain"""
        if isinstance(obj, OptionalChain) and not obj.parenthesized:
            obj = obj.expression
        return OptionalChain(build(obj))

    # --- Primary expressions ---

    def number(self, args):
        return Literal(number_parse(str(args[0])))

    def string(self, args):
        return Literal(string_decode(str(args[0])))

    def true(self, args):
        return Literal(True)

    def false(self, args):
        return Literal(False)

    def null(self, args):
        return Literal(None)

    def identifier(self, args):
        return Identifier(str(args[0]))

    def paren(self, args):
        inner = args[0]
        if isinstance(inner, OptionalChain):
            return OptionalChain(inner.expression, parenthesized=True)
        return inner

    def array(self, args):
        return ArrayLiteral(list(args))

    def object(self, args):
        return ObjectLiteral(list(args))

    def named_property(self, args):
        return Property(str(args[0]), args[1])

    def string_property(self, args):
        return Property(string_decode(str(args[0])), args[1])

    def number_property(self, args):
        return Property(number_format(number_parse(str(args[0]))), args[1])

    def computed_property(self, args):
        return Property(args[0], args[1], computed=True)

    def shorthand_property(self, args):
        name = str(args[0])
        return Property(name, Identifier(name))


def expression_compile(raw: str) -> CompiledExpression:
    """
    Validate guard text and compile it to an expression tree

    Args:
        raw: Text following #if/#elseif on the directive line

    Returns:
        CompiledExpression whose ``code`` is the exact span of the expression

    Raises:
        ExpressionSyntaxError: If ``raw`` is not exactly one valid expression

    Example:
        >>> expression_compile("while (true) {}")
        Traceback (most recent call last):
        ...
        condcomp.lib.errors.ExpressionSyntaxError: Expected an expression, found WhileStatement.
    """
    kind = statement_kind(raw)
    if kind is not None:
        raise ExpressionSyntaxError(f"Expected an expression, found {kind}.")

    try:
        tree = _parser.parse(raw)
    except UnexpectedInput as e:
        position = e.column - 1 if isinstance(e.column, int) and e.column > 0 else len(raw)
        raise ExpressionSyntaxError(f"Unexpected token (1:{position})") from e

    statements = list(tree.children)
    # "A;" ends in an empty statement slot that is not a statement of its own
    if statements and not statements[-1].children:
        statements.pop()

    if statements and not statements[0].children:
        raise ExpressionSyntaxError("Expected an expression, found EmptyStatement.")
    if len(statements) != 1:
        raise ExpressionSyntaxError("Expected exactly one expression.")

    stmt = statements[0]
    try:
        node = GuardTransformer().transform(stmt.children[0])
    except VisitError as e:
        if isinstance(e.orig_exc, ExpressionSyntaxError):
            raise e.orig_exc from None
        raise

    return CompiledExpression(
        code=raw[stmt.meta.start_pos:stmt.meta.end_pos],
        node=node,
        suspends=node_suspends(node),
    )
