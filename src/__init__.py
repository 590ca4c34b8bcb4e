"""
condcomp - Conditional compilation for JavaScript-family source

Removes or keeps blocks of code based on comment directives:

    // #if DEBUG
    console.log("debug build");
    // #else
    console.log("release build");
    // #endif
"""

__version__ = "1.0.0"

from .lib import (
    Compiler,
    cond_comp,
    cond_comp_sync,
    CondCompError,
    CondCompEvalError,
    CondCompParseError,
    Parser,
    LOG,
    state_connectToLogger,
)

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
