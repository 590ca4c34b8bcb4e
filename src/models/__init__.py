"""
Models package for condcomp

Contains data structures and type definitions for scanning, parsing,
evaluation and the CLI pipeline.
"""

from .state import ProgramState, pipeline
from .directives import (
    DirectiveTag,
    DirectiveEvent,
    BlockKind,
    Block,
    IfBlock,
    ElseIfBlock,
    ElseBlock,
    Endif,
)
from .parser import ParseErrorSubtype, ParseErrorEntry, ParseState
from .expression import CompiledExpression, EvaluationResultEntry

__all__ = [
    "ProgramState",
    "pipeline",
    "DirectiveTag",
    "DirectiveEvent",
    "BlockKind",
    "Block",
    "IfBlock",
    "ElseIfBlock",
    "ElseBlock",
    "Endif",
    "ParseErrorSubtype",
    "ParseErrorEntry",
    "ParseState",
    "CompiledExpression",
    "EvaluationResultEntry",
]
