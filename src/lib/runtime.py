"""
Value semantics of the guard language

Guards are written in JavaScript but run against Python values. This
module maps between the two:

    JavaScript        Python
    ----------        ------
    undefined         UNDEFINED
    null              None
    boolean           bool
    number            int / float
    string            str
    array             list / tuple
    object            Mapping (or any object's public attributes)
    function          any callable

and implements the coercions, operators and built-in globals guards may use.
"""

import json
import math
import random
import re
import time
from collections.abc import Mapping, MutableMapping
from functools import partial
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import GuardReferenceError, GuardTypeError


class _Undefined:
    """The ``undefined`` value"""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_NUMERIC_STRING = re.compile(
    r'[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+'
)
_EXPONENT = re.compile(r'e([+-])0*(\d)')


def nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def truthy(value: Any) -> bool:
    """JavaScript truthiness: empty arrays and objects are truthy"""
    if nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return len(value) > 0
    return True


def number_format(value: Any) -> str:
    """
    JavaScript rendering of a number

    Example:
        >>> number_format(3.0), number_format(0.1), number_format(float('inf'))
        ('3', '0.1', 'Infinity')
    """
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return _EXPONENT.sub(r'e\1\2', repr(value))


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_format(value)
    if isinstance(value, str):
        return value
    if is_array(value):
        return ",".join("" if nullish(item) else to_string(item) for item in value)
    if callable(value):
        return "function () { [native code] }"
    return "[object Object]"


def to_number(value: Any) -> Any:
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0
        if not _NUMERIC_STRING.fullmatch(text):
            return math.nan
        if text[:2].lower() in ('0x', '0o', '0b'):
            return int(text, 0)
        if text.lstrip('+-') == "Infinity":
            return -math.inf if text.startswith('-') else math.inf
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text)
        return float(text)
    if is_array(value) or isinstance(value, Mapping):
        return to_number(to_string(value))
    return math.nan


def to_int32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return 0
        number = int(number)
    number &= 0xFFFFFFFF
    return number - 0x100000000 if number >= 0x80000000 else number


def to_uint32(value: Any) -> int:
    return to_int32(value) & 0xFFFFFFFF


def to_primitive(value: Any) -> Any:
    if nullish(value) or isinstance(value, (bool, int, float, str)):
        return value
    return to_string(value)


def property_key(value: Any) -> str:
    return value if isinstance(value, str) else to_string(value)


def typeof(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    if nullish(left) or nullish(right):
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    if nullish(left) or nullish(right):
        return nullish(left) and nullish(right)
    if typeof(left) == typeof(right):
        return strict_equals(left, right)
    if isinstance(left, bool):
        return loose_equals(int(left), right)
    if isinstance(right, bool):
        return loose_equals(left, int(right))
    if is_number(left) and isinstance(right, str):
        return left == to_number(right)
    if isinstance(left, str) and is_number(right):
        return to_number(left) == right
    primitive_left, primitive_right = to_primitive(left), to_primitive(right)
    if primitive_left is left and primitive_right is right:
        return False
    return loose_equals(primitive_left, primitive_right)


def _divide(left: Any, right: Any) -> Any:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1, right)
    return left / right


def _remainder(left: Any, right: Any) -> Any:
    if right == 0 or math.isinf(left) or math.isnan(left) or math.isnan(right):
        return math.nan
    if math.isinf(right):
        return left
    if isinstance(left, int) and isinstance(right, int):
        return int(math.fmod(left, right))
    return math.fmod(left, right)


def _power(left: Any, right: Any) -> Any:
    if math.isnan(right) or (abs(left) == 1 and math.isinf(right)):
        return math.nan
    if left < 0 and isinstance(right, float) and not right.is_integer():
        return math.nan
    try:
        return left ** right
    except ZeroDivisionError:
        return math.inf
    except OverflowError:
        return math.inf


def _compare(left: Any, right: Any, test) -> bool:
    left, right = to_primitive(left), to_primitive(right)
    if isinstance(left, str) and isinstance(right, str):
        return test(left, right)
    left, right = to_number(left), to_number(right)
    if math.isnan(left) or math.isnan(right):
        return False
    return test(left, right)


def instance_of(value: Any, constructor: Any) -> bool:
    if isinstance(constructor, type):
        return isinstance(value, constructor)
    if not callable(constructor):
        raise GuardTypeError("Right-hand side of 'instanceof' is not callable")
    return False


def has_property(obj: Any, key: Any) -> bool:
    if nullish(obj) or isinstance(obj, (bool, int, float, str)):
        raise GuardTypeError(f"Cannot use 'in' operator to search for '{to_string(key)}' in {to_string(obj)}")
    return property_get(obj, key) is not UNDEFINED


def binary_apply(operator: str, left: Any, right: Any) -> Any:
    """Apply a non-logical binary operator to two evaluated operands"""
    if operator == "+":
        left, right = to_primitive(left), to_primitive(right)
        if isinstance(left, str) or isinstance(right, str):
            return to_string(left) + to_string(right)
        return to_number(left) + to_number(right)
    if operator == "===":
        return strict_equals(left, right)
    if operator == "!==":
        return not strict_equals(left, right)
    if operator == "==":
        return loose_equals(left, right)
    if operator == "!=":
        return not loose_equals(left, right)
    if operator == "<":
        return _compare(left, right, lambda a, b: a < b)
    if operator == ">":
        return _compare(left, right, lambda a, b: a > b)
    if operator == "<=":
        return _compare(left, right, lambda a, b: a <= b)
    if operator == ">=":
        return _compare(left, right, lambda a, b: a >= b)
    if operator == "instanceof":
        return instance_of(left, right)
    if operator == "in":
        return has_property(right, left)
    if operator == "&":
        return to_int32(left) & to_int32(right)
    if operator == "|":
        return to_int32(to_int32(left) | to_int32(right))
    if operator == "^":
        return to_int32(to_int32(left) ^ to_int32(right))
    if operator == "<<":
        return to_int32(to_int32(left) << (to_uint32(right) & 31))
    if operator == ">>":
        return to_int32(left) >> (to_uint32(right) & 31)
    if operator == ">>>":
        return to_uint32(left) >> (to_uint32(right) & 31)

    left, right = to_number(left), to_number(right)
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if operator == "/":
        return _divide(left, right)
    if operator == "%":
        return _remainder(left, right)
    if operator == "**":
        return _power(left, right)
    raise GuardTypeError(f"Unsupported operator {operator}")


def unary_apply(operator: str, value: Any) -> Any:
    if operator == "!":
        return not truthy(value)
    if operator == "-":
        return -to_number(value)
    if operator == "+":
        return to_number(value)
    if operator == "~":
        return ~to_int32(value)
    if operator == "typeof":
        return typeof(value)
    if operator == "void":
        return UNDEFINED
    raise GuardTypeError(f"Unsupported operator {operator}")


# --- Built-in methods of strings and arrays ---

def _index_argument(value: Any, length: int, default: int) -> int:
    if value is UNDEFINED:
        return default
    index = to_number(value)
    if isinstance(index, float):
        if math.isnan(index):
            return 0
        if math.isinf(index):
            return length if index > 0 else 0
        index = int(index)
    if index < 0:
        return max(length + index, 0)
    return min(index, length)


def _slice(sequence: Any, start: Any = UNDEFINED, end: Any = UNDEFINED) -> Any:
    length = len(sequence)
    result = sequence[_index_argument(start, length, 0):_index_argument(end, length, length)]
    return result if isinstance(result, str) else list(result)


def _string_includes(text: str, search: Any, position: Any = UNDEFINED) -> bool:
    return to_string(search) in text[_index_argument(position, len(text), 0):]


def _string_starts_with(text: str, search: Any, position: Any = UNDEFINED) -> bool:
    return text.startswith(to_string(search), _index_argument(position, len(text), 0))


def _string_ends_with(text: str, search: Any, end: Any = UNDEFINED) -> bool:
    return text[:_index_argument(end, len(text), len(text))].endswith(to_string(search))


def _string_index_of(text: str, search: Any, position: Any = UNDEFINED) -> int:
    return text.find(to_string(search), _index_argument(position, len(text), 0))


def _string_split(text: str, separator: Any = UNDEFINED, limit: Any = UNDEFINED) -> List[str]:
    if separator is UNDEFINED:
        parts = [text]
    elif to_string(separator) == "":
        parts = list(text)
    else:
        parts = text.split(to_string(separator))
    if limit is not UNDEFINED:
        parts = parts[:to_uint32(limit)]
    return parts


_STRING_METHODS = {
    "includes": _string_includes,
    "startsWith": _string_starts_with,
    "endsWith": _string_ends_with,
    "indexOf": _string_index_of,
    "toLowerCase": lambda text: text.lower(),
    "toUpperCase": lambda text: text.upper(),
    "trim": lambda text: text.strip(),
    "split": _string_split,
    "slice": _slice,
    "toString": lambda text: text,
}


def _array_includes(items: Any, search: Any) -> bool:
    if is_number(search) and math.isnan(search):
        return any(is_number(item) and math.isnan(item) for item in items)
    return any(strict_equals(item, search) for item in items)


def _array_index_of(items: Any, search: Any) -> int:
    for index, item in enumerate(items):
        if strict_equals(item, search):
            return index
    return -1


def _array_join(items: Any, separator: Any = UNDEFINED) -> str:
    separator = "," if separator is UNDEFINED else to_string(separator)
    return separator.join("" if nullish(item) else to_string(item) for item in items)


def _callback_results(items: Any, callback: Any) -> Iterator[Tuple[Any, Any]]:
    if not callable(callback):
        raise GuardTypeError(f"{to_string(callback)} is not a function")
    for index, item in enumerate(items):
        yield item, callback(item, index, items)


def _array_concat(items: Any, *others: Any) -> List[Any]:
    result = list(items)
    for other in others:
        if is_array(other):
            result.extend(other)
        else:
            result.append(other)
    return result


def _array_find(items: Any, callback: Any) -> Any:
    for item, result in _callback_results(items, callback):
        if truthy(result):
            return item
    return UNDEFINED


_ARRAY_METHODS = {
    "includes": _array_includes,
    "indexOf": _array_index_of,
    "join": _array_join,
    "filter": lambda items, callback: [item for item, keep in _callback_results(items, callback) if truthy(keep)],
    "map": lambda items, callback: [result for _, result in _callback_results(items, callback)],
    "some": lambda items, callback: any(truthy(result) for _, result in _callback_results(items, callback)),
    "every": lambda items, callback: all(truthy(result) for _, result in _callback_results(items, callback)),
    "find": _array_find,
    "slice": _slice,
    "concat": _array_concat,
    "toString": _array_join,
}

_NUMBER_METHODS = {
    "toFixed": lambda number, digits=0: f"{to_number(number):.{int(to_number(digits))}f}",
    "toString": lambda number: number_format(number),
}


def _array_index(key: Any) -> Optional[int]:
    if is_number(key) and float(key).is_integer() and key >= 0:
        return int(key)
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None


def property_get(obj: Any, key: Any) -> Any:
    """
    Read ``obj[key]`` the way a guard sees it

    Raises:
        GuardTypeError: When ``obj`` is null or undefined
    """
    if nullish(obj):
        raise GuardTypeError(f"Cannot read properties of {to_string(obj)} (reading '{to_string(key)}')")

    name = property_key(key)
    if isinstance(obj, str) or is_array(obj):
        if name == "length":
            return len(obj)
        index = _array_index(key)
        if index is not None:
            return obj[index] if index < len(obj) else UNDEFINED
        methods = _STRING_METHODS if isinstance(obj, str) else _ARRAY_METHODS
        if name in methods:
            return partial(methods[name], obj)
        return UNDEFINED

    if isinstance(obj, bool):
        return UNDEFINED
    if is_number(obj):
        return partial(_NUMBER_METHODS[name], obj) if name in _NUMBER_METHODS else UNDEFINED

    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
        if is_number(key) and key in obj:
            return obj[key]
        return UNDEFINED

    if name.startswith('_'):
        return UNDEFINED
    return getattr(obj, name, UNDEFINED)


def property_set(obj: Any, key: Any, value: Any) -> None:
    """
    Write ``obj[key] = value``; writes to primitives are silently dropped

    Raises:
        GuardTypeError: When ``obj`` is null or undefined, or refuses the write
    """
    if nullish(obj):
        raise GuardTypeError(f"Cannot set properties of {to_string(obj)} (setting '{to_string(key)}')")

    name = property_key(key)
    if isinstance(obj, (bool, int, float, str, tuple)):
        return
    if isinstance(obj, list):
        index = _array_index(key)
        if index is None:
            raise GuardTypeError(f"Cannot set property '{name}' of an array")
        if index >= len(obj):
            obj.extend([UNDEFINED] * (index + 1 - len(obj)))
        obj[index] = value
        return
    if isinstance(obj, MutableMapping):
        obj[name] = value
        return
    if isinstance(obj, Mapping) or name.startswith('_'):
        raise GuardTypeError(f"Cannot assign to read only property '{name}' of object")
    try:
        setattr(obj, name, value)
    except AttributeError as e:
        raise GuardTypeError(f"Cannot assign to read only property '{name}' of object") from e


def property_delete(obj: Any, key: Any) -> bool:
    if nullish(obj):
        raise GuardTypeError("Cannot convert undefined or null to object")
    name = property_key(key)
    if isinstance(obj, MutableMapping):
        obj.pop(name, None)
        return True
    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None and index < len(obj):
            obj[index] = UNDEFINED
        return True
    return not isinstance(obj, (Mapping, tuple, str))


# --- Global objects ---

def _parse_int(value: Any, radix: Any = UNDEFINED) -> Any:
    text = to_string(value).strip()
    base = 10 if radix is UNDEFINED else to_int32(radix)
    sign = -1 if text.startswith('-') else 1
    text = text.lstrip('+-')
    if base in (0, 16) and text[:2].lower() == '0x':
        text, base = text[2:], 16
    base = base or 10
    if base < 2 or base > 36:
        return math.nan
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"[:base]
    prefix = re.match(f"[{digits}]*", text.lower()).group(0)
    return sign * int(prefix, base) if prefix else math.nan


def _parse_float(value: Any) -> Any:
    match = re.match(r'[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)', to_string(value).strip())
    if match is None:
        return math.nan
    return to_number(match.group(0))


def _json_value(value: Any) -> Any:
    if value is UNDEFINED or callable(value):
        return None
    if is_number(value) and (math.isnan(value) or math.isinf(value)):
        return None
    if is_array(value):
        return [_json_value(item) for item in value]
    if isinstance(value, Mapping):
        return {property_key(k): _json_value(v) for k, v in value.items() if v is not UNDEFINED}
    return value


def _json_stringify(value: Any, *_: Any) -> Any:
    if value is UNDEFINED or callable(value):
        return UNDEFINED
    return json.dumps(_json_value(value), separators=(',', ':'), ensure_ascii=False)


def _json_parse(text: Any, *_: Any) -> Any:
    try:
        return json.loads(to_string(text))
    except ValueError as e:
        raise GuardTypeError(f"Unexpected token in JSON: {e}") from e


def _math_min(*values: Any) -> Any:
    numbers = [to_number(v) for v in values]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers, default=math.inf)


def _math_max(*values: Any) -> Any:
    numbers = [to_number(v) for v in values]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return max(numbers, default=-math.inf)


def _math_round(value: Any) -> Any:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return number
    return math.floor(number + 0.5)


def _rounding(function):
    def apply(value: Any) -> Any:
        number = to_number(value)
        if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
            return number
        return function(number)
    return apply


def _math_sqrt(value: Any) -> Any:
    number = to_number(value)
    if math.isnan(number) or number < 0:
        return math.nan
    return math.sqrt(number)


def _is_nan(value: Any) -> bool:
    number = to_number(value)
    return isinstance(number, float) and math.isnan(number)


def _object_entries(obj: Any) -> List[Tuple[str, Any]]:
    if nullish(obj):
        raise GuardTypeError("Cannot convert undefined or null to object")
    if isinstance(obj, Mapping):
        return [(property_key(k), v) for k, v in obj.items()]
    if is_array(obj) or isinstance(obj, str):
        return [(str(i), v) for i, v in enumerate(obj)]
    return [(k, v) for k, v in vars(obj).items() if not k.startswith('_')] if hasattr(obj, '__dict__') else []


def globals_create() -> Dict[str, Any]:
    """
    Fresh set of global objects for one root scope

    Guards may write to these (``Math.PI = 0``, ``delete JSON.parse``);
    every evaluation run starts from its own copy.
    """
    return {
        "undefined": UNDEFINED,
        "NaN": math.nan,
        "Infinity": math.inf,
        "Math": {
            "PI": math.pi,
            "E": math.e,
            "abs": lambda value: abs(to_number(value)),
            "floor": _rounding(math.floor),
            "ceil": _rounding(math.ceil),
            "trunc": _rounding(math.trunc),
            "round": _math_round,
            "sqrt": _math_sqrt,
            "min": _math_min,
            "max": _math_max,
            "pow": lambda base, exponent: _power(to_number(base), to_number(exponent)),
            "random": random.random,
        },
        "JSON": {"stringify": _json_stringify, "parse": _json_parse},
        "Array": {"isArray": is_array},
        "Object": {
            "keys": lambda obj: [k for k, _ in _object_entries(obj)],
            "values": lambda obj: [v for _, v in _object_entries(obj)],
            "entries": lambda obj: [[k, v] for k, v in _object_entries(obj)],
        },
        "Date": {"now": lambda: int(time.time() * 1000)},
        "Number": lambda value=0: to_number(value),
        "String": lambda value="": to_string(value),
        "Boolean": lambda value=False: truthy(value),
        "parseInt": _parse_int,
        "parseFloat": _parse_float,
        "isNaN": _is_nan,
        "isFinite": lambda value: math.isfinite(to_number(value)),
    }


class Scope:
    """
    Identifier bindings visible to a guard

    The root scope's variables are the caller's context itself (same
    object), so assignments land in the context. Arrow function calls push
    a child scope holding their parameters and sharing the root's globals.
    Names missing everywhere fall back to the root's globals, which are
    created per root scope and never written by identifier assignment.
    """

    def __init__(self, variables: MutableMapping, parent: Optional["Scope"] = None) -> None:
        self.variables = variables
        self.parent = parent
        self.globals = parent.globals if parent is not None else globals_create()

    def owner_find(self, name: str) -> Optional["Scope"]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.variables:
                return scope
            scope = scope.parent
        return None

    def root(self) -> "Scope":
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def declared(self, name: str) -> bool:
        return self.owner_find(name) is not None or name in self.globals

    def lookup(self, name: str) -> Any:
        owner = self.owner_find(name)
        if owner is not None:
            return owner.variables[name]
        if name in self.globals:
            return self.globals[name]
        raise GuardReferenceError(f"{name} is not defined")

    def assign(self, name: str, value: Any) -> None:
        """Bind ``name`` where it is declared, else create it in the context"""
        owner = self.owner_find(name) or self.root()
        owner.variables[name] = value

    def delete(self, name: str) -> bool:
        owner = self.owner_find(name)
        if owner is None:
            return True
        if owner.parent is not None:
            return False
        del owner.variables[name]
        return True
