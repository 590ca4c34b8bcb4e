"""
Exception types for conditional compilation

Two disjoint failure classes reach the caller:
    - CondCompParseError: every structural/guard-syntax problem in the input,
      accumulated and raised once after scanning completes
    - CondCompEvalError: the first guard that failed while evaluating

The remaining classes are raised while interpreting guard expressions and
arrive at the caller as the ``cause`` of a CondCompEvalError.
"""

from typing import Any, List, Optional

from ..models.parser import ParseErrorEntry


class CondCompError(Exception):
    """Base class for all conditional compilation failures"""


class CondCompParseError(CondCompError):
    """
    Structural errors found while parsing directives

    Attributes:
        entries: Every error found, in discovery order
    """

    def __init__(self, message: str, entries: Optional[List[ParseErrorEntry]] = None) -> None:
        super().__init__(message)
        self.entries: List[ParseErrorEntry] = list(entries or [])


class CondCompEvalError(CondCompError):
    """
    A guard expression failed during evaluation

    Attributes:
        line: Line of the #if/#elseif whose guard failed (0 when the failure
              is not attributable to a single guard)
        column: Column of that directive (0 likewise)
        cause: The original exception
    """

    def __init__(self, message: str, line: int, column: int, cause: Any = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column
        self.cause = cause

    @classmethod
    def error_make(cls, cause: BaseException, line: int = 0, column: int = 0) -> "CondCompEvalError":
        """Build the caller-facing error for a failure at ``line``/``column``"""
        message = f"Evaluation error at line {line} and column {column}"
        detail = str(cause)
        if detail:
            message += f": {detail}"
        error = cls(message, line, column, cause)
        error.__cause__ = cause
        return error


class ExpressionSyntaxError(ValueError):
    """Guard text is not exactly one valid expression"""


class GuardRuntimeError(Exception):
    """Base for errors thrown by the guard language itself"""


class GuardReferenceError(GuardRuntimeError):
    """Read of an identifier that is neither in the context nor a global"""


class GuardTypeError(GuardRuntimeError):
    """Operation applied to a value of the wrong kind"""


class SuspensionError(RuntimeError):
    """A guard tried to suspend where suspension is not allowed"""


class GuardFailure(Exception):
    """
    Internal: a specific guard threw while the batch program ran

    Carries the directive position so the evaluator can build a
    CondCompEvalError for the caller.
    """

    def __init__(self, cause: BaseException, line: int, column: int) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.line = line
        self.column = column
