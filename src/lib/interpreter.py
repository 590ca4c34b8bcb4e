"""
Guard expression interpreter

Evaluates models.expression trees against a Scope rooted at the caller's
context. Evaluation is written as coroutines so that ``await`` inside a
guard can suspend on the caller's event loop; synchronous callers drive
the same coroutines with coroutine_runSync.

Example:
    >>> from condcomp.lib.expression import expression_compile
    >>> context = {"level": 3}
    >>> node = expression_compile("level = level + 1, level > 3").node
    >>> coroutine_runSync(expression_evaluate(node, Scope(context)))
    True
    >>> context["level"]
    4
"""

import inspect
from collections.abc import Mapping
from typing import Any, Coroutine, List, Tuple

from ..models.expression import (
    ArrayLiteral,
    Arrow,
    Assign,
    Await,
    Binary,
    Call,
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
)
from .errors import GuardTypeError, SuspensionError
from .runtime import (
    UNDEFINED,
    Scope,
    binary_apply,
    is_array,
    nullish,
    property_delete,
    property_get,
    property_key,
    property_set,
    to_string,
    truthy,
    unary_apply,
)


class _ShortCircuit(Exception):
    """Raised at a ``?.`` whose base is nullish; caught by the enclosing chain"""


def coroutine_runSync(coroutine: Coroutine) -> Any:
    """
    Run a coroutine to completion without an event loop

    Raises:
        SuspensionError: If the coroutine tries to suspend
    """
    try:
        coroutine.send(None)
    except StopIteration as e:
        return e.value
    coroutine.close()
    raise SuspensionError("Guard expression suspended where suspension is not allowed")


class ArrowFunction:
    """A guard arrow function closed over the scope it was created in"""

    def __init__(self, node: Arrow, scope: Scope) -> None:
        self.node = node
        self.scope = scope

    def __call__(self, *args: Any) -> Any:
        variables = {
            name: args[i] if i < len(args) else UNDEFINED
            for i, name in enumerate(self.node.params)
        }
        return coroutine_runSync(expression_evaluate(self.node.body, Scope(variables, self.scope)))

    def __repr__(self) -> str:
        return f"ArrowFunction({', '.join(self.node.params)})"


def callee_describe(node: Any) -> str:
    """Source-like name of a callee, for error messages"""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Member) and not node.computed:
        return f"{callee_describe(node.obj)}.{node.prop.value}"
    if isinstance(node, OptionalChain):
        return callee_describe(node.expression)
    return "expression"


async def expression_evaluate(node: Any, scope: Scope) -> Any:
    """Evaluate one expression node"""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Identifier):
        return scope.lookup(node.name)
    if isinstance(node, Logical):
        return await logical_evaluate(node, scope)
    if isinstance(node, Binary):
        left = await expression_evaluate(node.left, scope)
        right = await expression_evaluate(node.right, scope)
        return binary_apply(node.operator, left, right)
    if isinstance(node, Unary):
        return await unary_evaluate(node, scope)
    if isinstance(node, Await):
        value = await expression_evaluate(node.operand, scope)
        if inspect.isawaitable(value):
            value = await value
        return value
    if isinstance(node, Conditional):
        if truthy(await expression_evaluate(node.test, scope)):
            return await expression_evaluate(node.consequent, scope)
        return await expression_evaluate(node.alternate, scope)
    if isinstance(node, Assign):
        return await assign_evaluate(node, scope)
    if isinstance(node, Sequence):
        value = UNDEFINED
        for expression in node.expressions:
            value = await expression_evaluate(expression, scope)
        return value
    if isinstance(node, Member):
        obj, key = await member_resolve(node, scope)
        return property_get(obj, key)
    if isinstance(node, Call):
        return await call_evaluate(node, scope)
    if isinstance(node, OptionalChain):
        try:
            return await expression_evaluate(node.expression, scope)
        except _ShortCircuit:
            return UNDEFINED
    if isinstance(node, Arrow):
        return ArrowFunction(node, scope)
    if isinstance(node, ArrayLiteral):
        return await elements_evaluate(node.elements, scope)
    if isinstance(node, ObjectLiteral):
        return await object_evaluate(node, scope)
    raise GuardTypeError(f"Cannot evaluate {type(node).__name__}")


async def logical_evaluate(node: Logical, scope: Scope) -> Any:
    left = await expression_evaluate(node.left, scope)
    if node.operator == "&&" and not truthy(left):
        return left
    if node.operator == "||" and truthy(left):
        return left
    if node.operator == "??" and not nullish(left):
        return left
    return await expression_evaluate(node.right, scope)


async def unary_evaluate(node: Unary, scope: Scope) -> Any:
    operand = node.operand
    if node.operator == "typeof" and isinstance(operand, Identifier) and not scope.declared(operand.name):
        return "undefined"
    if node.operator == "delete":
        if isinstance(operand, Identifier):
            return scope.delete(operand.name)
        if isinstance(operand, Member):
            obj, key = await member_resolve(operand, scope)
            return property_delete(obj, key)
        await expression_evaluate(operand, scope)
        return True
    return unary_apply(node.operator, await expression_evaluate(operand, scope))


async def member_resolve(node: Member, scope: Scope) -> Tuple[Any, Any]:
    """Evaluate the object and key of a member access"""
    obj = await expression_evaluate(node.obj, scope)
    if node.optional and nullish(obj):
        raise _ShortCircuit()
    if node.computed:
        key = await expression_evaluate(node.prop, scope)
    else:
        key = node.prop.value
    return obj, key


async def assign_evaluate(node: Assign, scope: Scope) -> Any:
    target = node.target
    if isinstance(target, Identifier):
        def current_get() -> Any:
            return scope.lookup(target.name)

        def target_set(value: Any) -> None:
            scope.assign(target.name, value)
    else:
        obj, key = await member_resolve(target, scope)

        def current_get() -> Any:
            return property_get(obj, key)

        def target_set(value: Any) -> None:
            property_set(obj, key, value)

    operator = node.operator
    if operator == "=":
        value = await expression_evaluate(node.value, scope)
    elif operator in ("&&=", "||=", "??="):
        current = current_get()
        keep = {
            "&&=": not truthy(current),
            "||=": truthy(current),
            "??=": not nullish(current),
        }[operator]
        if keep:
            return current
        value = await expression_evaluate(node.value, scope)
    else:
        current = current_get()
        value = binary_apply(operator[:-1], current, await expression_evaluate(node.value, scope))

    target_set(value)
    return value


async def call_evaluate(node: Call, scope: Scope) -> Any:
    callee = node.callee
    if isinstance(callee, Member):
        obj, key = await member_resolve(callee, scope)
        function = property_get(obj, key)
    else:
        function = await expression_evaluate(callee, scope)

    if node.optional and nullish(function):
        raise _ShortCircuit()
    arguments = await elements_evaluate(node.arguments, scope)
    if not callable(function):
        raise GuardTypeError(f"{callee_describe(callee)} is not a function")
    return function(*arguments)


async def elements_evaluate(elements: List[Any], scope: Scope) -> List[Any]:
    """Evaluate array elements or call arguments, expanding spreads"""
    values: List[Any] = []
    for element in elements:
        if isinstance(element, Spread):
            iterable = await expression_evaluate(element.argument, scope)
            if not (is_array(iterable) or isinstance(iterable, str)):
                raise GuardTypeError(f"{to_string(iterable)} is not iterable")
            values.extend(iterable)
        else:
            values.append(await expression_evaluate(element, scope))
    return values


async def object_evaluate(node: ObjectLiteral, scope: Scope) -> dict:
    result: dict = {}
    for entry in node.properties:
        if isinstance(entry, Spread):
            source = await expression_evaluate(entry.argument, scope)
            if isinstance(source, Mapping):
                result.update((property_key(k), v) for k, v in source.items())
            elif is_array(source) or isinstance(source, str):
                result.update((str(i), v) for i, v in enumerate(source))
            continue
        prop: Property = entry
        key = await expression_evaluate(prop.key, scope) if prop.computed else prop.key
        result[property_key(key)] = await expression_evaluate(prop.value, scope)
    return result
