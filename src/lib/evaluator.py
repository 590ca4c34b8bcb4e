"""
Batch evaluation of guard expressions

The whole IfBlock tree is compiled into one program and run once against
the shared context:

    BlockListProgram  ->  [IfProgram, ...]
    IfProgram         ->  guards [GuardProgram(if), GuardProgram(elseif), ...]
                          + the #else branch's children
    GuardProgram      ->  compiled guard + the children of its branch

Children programs hang off the branch that selects them, so a nested
guard can only run after its branch has been taken. Guards run strictly
in document order and share one Scope rooted at the caller's context.

The run yields one EvaluationResultEntry per block, which results_bind
then stamps onto the blocks as ``taken_branch``.
"""

from dataclasses import dataclass, field
from typing import Any, List, MutableMapping, Optional, Tuple

from ..models.directives import BlockKind, IfBlock
from ..models.expression import CompiledExpression, EvaluationResultEntry
from .errors import CondCompEvalError, GuardFailure, SuspensionError
from .interpreter import coroutine_runSync, expression_evaluate
from .log import LOG
from .runtime import Scope, truthy


@dataclass
class GuardProgram:
    """One #if/#elseif test together with its branch body"""
    expression: CompiledExpression
    line: int
    column: int
    children: Optional["BlockListProgram"] = None


@dataclass
class IfProgram:
    guards: List[GuardProgram] = field(default_factory=list)
    else_children: Optional["BlockListProgram"] = None


@dataclass
class BlockListProgram:
    blocks: List[IfProgram] = field(default_factory=list)

    def suspends(self) -> bool:
        """True when any guard anywhere in the program contains ``await``"""
        pending = [self]
        while pending:
            program = pending.pop()
            for block in program.blocks:
                for guard in block.guards:
                    if guard.expression.suspends:
                        return True
                    if guard.children is not None:
                        pending.append(guard.children)
                if block.else_children is not None:
                    pending.append(block.else_children)
        return False


def program_compile(blocks: Optional[List[IfBlock]]) -> Optional[BlockListProgram]:
    """
    Compile a block list (and everything nested in it) into a program

    Returns None for an absent block list, mirroring ``children=None``.
    Nesting depth is bounded by memory only; no call recursion is used.
    """
    if blocks is None:
        return None

    program = BlockListProgram()
    pending = [(blocks, program)]
    while pending:
        source, target = pending.pop()
        for if_block in source:
            if_program = IfProgram()
            for branch in if_block.branches():
                children = None
                if branch.children is not None:
                    children = BlockListProgram()
                    pending.append((branch.children, children))
                if branch.kind is BlockKind.ELSE:
                    if_program.else_children = children
                else:
                    if_program.guards.append(GuardProgram(
                        expression=branch.node,
                        line=branch.line,
                        column=branch.column,
                        children=children,
                    ))
            target.blocks.append(if_program)
    return program


async def branch_select(program: IfProgram, scope: Scope) -> Tuple[int, Optional[BlockListProgram]]:
    """
    Run the guards of one block until one is true

    Returns:
        (branch index, children program of that branch)

    Raises:
        GuardFailure: If a guard throws
    """
    for branch, guard in enumerate(program.guards):
        try:
            taken = truthy(await expression_evaluate(guard.expression.node, scope))
        except Exception as e:
            raise GuardFailure(e, guard.line, guard.column) from e
        if taken:
            return branch, guard.children
    return -1, program.else_children


async def program_run(program: BlockListProgram, scope: Scope) -> List[EvaluationResultEntry]:
    """
    Run a block list program, returning one result per block

    Blocks are visited depth first with an explicit stack, so the children
    of a taken branch run before the next sibling block.

    Raises:
        GuardFailure: For the first guard that throws
    """
    results: List[EvaluationResultEntry] = []
    pending = [(iter(program.blocks), results)]
    while pending:
        blocks, out = pending[-1]
        if_program = next(blocks, None)
        if if_program is None:
            pending.pop()
            continue
        branch, children = await branch_select(if_program, scope)
        entry = EvaluationResultEntry(branch=branch)
        out.append(entry)
        if children is not None:
            entry.children = []
            pending.append((iter(children.blocks), entry.children))
    return results


class BatchEvaluator:
    """
    Evaluates every guard of a block tree in one pass

    Handles:
    - Suspension-capable runs (``evaluate_async``) awaiting ``await`` guards
    - Synchronous runs (``evaluate``) that refuse any ``await``
    - Error attribution to the failing #if/#elseif
    """

    def __init__(self, blocks: List[IfBlock], context: MutableMapping[str, Any]) -> None:
        """
        Args:
            blocks: Top-level IfBlocks from the Parser
            context: Caller's evaluation context; mutated in place
        """
        self.blocks = blocks
        self.context = context
        self.program = program_compile(blocks)

    def evaluate(self) -> None:
        """
        Run the program synchronously and bind the results to the blocks

        Raises:
            CondCompEvalError: If a guard throws, or any guard uses ``await``
        """
        if self.program.suspends():
            raise CondCompEvalError.error_make(
                SuspensionError("Cannot use 'await' when compiling synchronously")
            )

        LOG(f"Evaluating {len(self.blocks)} top-level blocks synchronously", level=2)
        try:
            results = coroutine_runSync(program_run(self.program, Scope(self.context)))
        except GuardFailure as failure:
            raise CondCompEvalError.error_make(failure.cause, failure.line, failure.column) from failure.cause
        except SuspensionError as e:
            raise CondCompEvalError.error_make(e) from e
        results_bind(self.blocks, results)

    async def evaluate_async(self) -> None:
        """
        Run the program, awaiting suspending guards, and bind the results

        Raises:
            CondCompEvalError: If a guard throws
        """
        LOG(f"Evaluating {len(self.blocks)} top-level blocks", level=2)
        try:
            results = await program_run(self.program, Scope(self.context))
        except GuardFailure as failure:
            raise CondCompEvalError.error_make(failure.cause, failure.line, failure.column) from failure.cause
        results_bind(self.blocks, results)


def results_bind(blocks: List[IfBlock], results: Any) -> None:
    """
    Stamp ``taken_branch`` on each block, descending only into taken branches

    Args:
        blocks: Block list the results were produced for
        results: One EvaluationResultEntry per block

    Raises:
        CondCompEvalError: At line 0, column 0 if ``results`` is ill-shaped
    """
    pending = [(blocks, results)]
    while pending:
        block_list, entries = pending.pop()
        if not isinstance(entries, list) or len(entries) != len(block_list):
            raise CondCompEvalError.error_make(TypeError(f"Malformed evaluation result: {entries!r}"))

        for if_block, result in zip(block_list, entries):
            if not isinstance(result, EvaluationResultEntry):
                raise CondCompEvalError.error_make(TypeError(f"Malformed evaluation result: {result!r}"))

            branch = result.branch
            elseif_count = len(if_block.elseifs or [])
            if not isinstance(branch, int) or branch < -1 or branch > elseif_count:
                raise CondCompEvalError.error_make(
                    ValueError(f"Invalid branch {branch!r} for #if at line {if_block.line}")
                )

            if_block.taken_branch = branch
            LOG(f"#if at {if_block.line}:{if_block.column} took branch {branch}", level=3)

            if result.children is None:
                continue
            taken = if_block.branches()[branch] if branch >= 0 else if_block.else_
            if taken is not None and taken.children is not None:
                pending.append((taken.children, result.children))
