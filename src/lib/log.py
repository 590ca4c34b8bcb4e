"""
Centralized logging using Loguru with context-aware verbosity.

This module provides a LOG() function that respects the current ProgramState's
verbosity level without requiring explicit state passing.

The engine modules (scanner, parser, evaluator, reconstructor) call LOG()
freely. Used as a library, with no state connected, nothing is emitted and
no loguru handlers are touched; the CLI connects its ProgramState, which
installs the condcomp stderr sink.

Usage:
    from condcomp.lib.log import LOG, state_connectToLogger

    # At start of the CLI pipeline:
    state_connectToLogger(state)

    # Anywhere in that context:
    LOG("This message appears if verbosity >= 1", level=1)
    LOG("Debug details appear if verbosity >= 2", level=2)
    LOG("Verbose trace appears if verbosity >= 3", level=3)
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

# Context variable to hold current ProgramState
_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

# Handler id of the condcomp sink, once installed
_sink_id: Optional[int] = None

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <5}</level> │ "
    "<cyan>{module: <13}</cyan> ║ "
    "<level>{message}</level>"
)


def sink_install() -> None:
    """Replace loguru's default handler with the condcomp stderr sink (once)"""
    global _sink_id
    if _sink_id is not None:
        return
    logger.remove()
    _sink_id = logger.add(sys.stderr, format=logger_format, level="DEBUG")


def state_connectToLogger(state: Any) -> None:
    """
    Connect a ProgramState to the logging context.

    Makes the state's verbosity setting available to LOG() calls throughout
    the current context and installs the condcomp sink.

    Args:
        state: ProgramState instance with verbosity attribute
    """
    sink_install()
    _program_state.set(state)


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log message if current state's verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity level required (1=normal, 2=verbose, 3=debug)
        **kwargs: Additional loguru metadata

    Example:
        LOG("done    src/app.js", level=1)
        LOG("Parsed 3 top-level #if blocks", level=2)
        LOG("#elseif at 14:4", level=3)
    """
    state = _program_state.get()

    if state and hasattr(state, 'verbosity') and state.verbosity >= level:
        logger.opt(depth=1).debug(message, **kwargs)
