"""
Conditional compiler for scripting-language source

Runs the full pipeline on one source text:

    source -> Scanner -> Parser -> BatchEvaluator(context) -> Reconstructor -> output

Two entry points share it:
    - cond_comp (async): guards may ``await``; the caller awaits the result
    - cond_comp_sync: guards may not suspend

Both return the output text; the context mapping is mutated in place and
keeps every change guards made.

Example:
    >>> context = {"DEBUG": False}
    >>> cond_comp_sync("a();\\n// #if DEBUG\\ntrace();\\n// #endif\\nb();", context)
    'a();\\nb();'
"""

from typing import Any, List, MutableMapping

from ..models.directives import IfBlock
from .evaluator import BatchEvaluator
from .log import LOG
from .parser import Parser
from .reconstructor import Reconstructor


class Compiler:
    """
    Compiles one source text against an evaluation context

    Responsibilities:
    - Parse directives into IfBlocks (all parse errors reported together)
    - Evaluate every guard once, in document order, against the context
    - Cut untaken branches and directive comments from the text
    """

    def __init__(self, source: str, context: MutableMapping[str, Any]) -> None:
        """
        Initialize compiler

        Args:
            source: Raw source text
            context: Caller-owned evaluation context; guards read and write it
        """
        self.source = source
        self.context = context
        self.blocks: List[IfBlock] = []

    def blocks_parse(self) -> List[IfBlock]:
        LOG(f"Parsing {len(self.source)} characters", level=2)
        self.blocks = Parser(self.source).parse()
        return self.blocks

    def text_reconstruct(self) -> str:
        return Reconstructor(self.source).text_emit(self.blocks)

    def compile(self) -> str:
        """
        Compile without allowing guards to suspend

        Returns:
            The transformed text

        Raises:
            CondCompParseError: If the directives are malformed
            CondCompEvalError: If a guard throws or uses ``await``
        """
        if not self.blocks_parse():
            return self.source
        BatchEvaluator(self.blocks, self.context).evaluate()
        return self.text_reconstruct()

    async def compile_async(self) -> str:
        """
        Compile, awaiting guards that suspend

        Returns:
            The transformed text

        Raises:
            CondCompParseError: If the directives are malformed
            CondCompEvalError: If a guard throws
        """
        if not self.blocks_parse():
            return self.source
        await BatchEvaluator(self.blocks, self.context).evaluate_async()
        return self.text_reconstruct()


async def cond_comp(code: str, context: MutableMapping[str, Any]) -> str:
    """Conditionally compile ``code``; guards may ``await``"""
    return await Compiler(code, context).compile_async()


def cond_comp_sync(code: str, context: MutableMapping[str, Any]) -> str:
    """Conditionally compile ``code``; guards may not suspend"""
    return Compiler(code, context).compile()
