"""
condcomp - Conditional compilation for JavaScript-family source

Comment directives (#if, #elseif, #else, #endif) with guard expressions
evaluated against a caller-supplied context.
"""

__version__ = "1.0.0"

from .compiler import Compiler, cond_comp, cond_comp_sync
from .errors import CondCompError, CondCompEvalError, CondCompParseError
from .parser import Parser
from .log import LOG, state_connectToLogger

__all__ = [
    "Compiler",
    "cond_comp",
    "cond_comp_sync",
    "CondCompError",
    "CondCompEvalError",
    "CondCompParseError",
    "Parser",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
