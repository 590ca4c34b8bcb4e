"""
Evaluator tests - batch guard evaluation

Tests which branches are taken, the order guards run in, side effects on
the context and how guard failures are attributed.
"""

import asyncio

import pytest

from condcomp.lib.errors import CondCompEvalError, GuardReferenceError, SuspensionError
from condcomp.lib.evaluator import BatchEvaluator, program_compile, results_bind
from condcomp.lib.parser import Parser
from condcomp.models.expression import EvaluationResultEntry


def boom(*args):
    raise RuntimeError("boom")


def evaluate(source, context):
    """Parse ``source``, evaluate it synchronously and return the blocks"""
    blocks = Parser(source).parse()
    BatchEvaluator(blocks, context).evaluate()
    return blocks


class TestBranchSelection:
    """Test taken_branch annotations"""

    @pytest.mark.parametrize("context, branch", [
        ({"A": True, "B": True}, 0),
        ({"A": False, "B": True}, 1),
        ({"A": False, "B": False}, -1),
    ])
    def test_if_elseif_else(self, context, branch):
        source = "// #if A\n// #elseif B\n// #else\n// #endif"
        assert evaluate(source, context)[0].taken_branch == branch

    def test_no_match_without_else(self):
        assert evaluate("// #if A\n// #endif", {"A": 0})[0].taken_branch == -1

    def test_second_elseif(self):
        source = "// #if A\n// #elseif B\n// #elseif C\n// #endif"
        blocks = evaluate(source, {"A": False, "B": False, "C": True})
        assert blocks[0].taken_branch == 2

    def test_nested_blocks_of_taken_branch(self):
        source = "// #if A\n// #if B\n// #endif\n// #else\n// #if C\n// #endif\n// #endif"
        block = evaluate(source, {"A": True, "B": False, "C": True})[0]
        assert block.taken_branch == 0
        assert block.children[0].taken_branch == -1
        assert block.else_.children[0].taken_branch is None

    def test_untaken_branch_guards_not_evaluated(self):
        """Guards below an untaken branch never run"""
        source = "// #if false\n// #if fail()\n// #endif\n// #endif"
        block = evaluate(source, {"fail": boom})[0]
        assert block.taken_branch == -1
        assert block.children[0].taken_branch is None

    def test_deep_nesting(self):
        depth = 2000
        source = "// #if true\n" * depth + "// #endif\n" * depth
        block = evaluate(source, {})[0]
        for _ in range(depth - 1):
            assert block.taken_branch == 0
            block = block.children[0]
        assert block.taken_branch == 0
        assert block.children is None


class TestOrderAndSideEffects:
    """Test document order and context mutation"""

    def test_mutable_state_in_guards(self):
        source = "// #if A\n// #endif\n// #if A = true\n// #endif\n// #if A\n// #endif"
        blocks = evaluate(source, {"A": False})
        assert [b.taken_branch for b in blocks] == [-1, 0, 0]

    def test_context_is_mutated_in_place(self):
        context = {"A": 1}
        evaluate("// #if A = 2\n// #endif", context)
        assert context == {"A": 2}

    def test_new_names_land_in_context(self):
        context = {}
        evaluate("// #if seen = 1, true\n// #endif", context)
        assert context == {"seen": 1}

    def test_first_true_guard_stops_evaluation(self):
        """Later #elseif guards of a block are skipped once one is true"""
        context = {"count": 0}
        evaluate("// #if true\n// #elseif count = count + 1\n// #endif", context)
        assert context["count"] == 0

    def test_guards_run_in_document_order(self):
        calls = []

        def track(name):
            calls.append(name)
            return False

        source = (
            "// #if track('a')\n"
            "// #elseif true\n"
            "// #if track('b')\n// #endif\n"
            "// #endif\n"
            "// #if track('c')\n// #endif"
        )
        evaluate(source, {"track": track})
        assert calls == ["a", "b", "c"]


class TestErrorAttribution:
    """Test line/column reported for failing guards"""

    def eval_error(self, source, context=None):
        with pytest.raises(CondCompEvalError) as excinfo:
            evaluate(source, {"fail": boom} if context is None else context)
        return excinfo.value

    def test_if_exception(self):
        error = self.eval_error("// #if fail()\n1\n// #endif")
        assert (error.line, error.column) == (1, 0)
        assert isinstance(error.cause, RuntimeError)
        assert error.__cause__ is error.cause
        assert str(error) == "Evaluation error at line 1 and column 0: boom"

    def test_elseif_exception(self):
        error = self.eval_error("// #if false\n1\n// #elseif fail()\n2\n// #endif")
        assert (error.line, error.column) == (3, 0)

    def test_first_failure_wins(self):
        error = self.eval_error("// #if fail()\n1\n// #endif\n\n// #if fail()\n2\n// #endif")
        assert (error.line, error.column) == (1, 0)

    def test_nested_guard_attributed_to_itself(self):
        source = "// #if true\n    // #if fail()\n    // #endif\n// #endif"
        error = self.eval_error(source)
        assert (error.line, error.column) == (2, 4)

    def test_reference_error(self):
        error = self.eval_error("// #if missing\n// #endif", {})
        assert isinstance(error.cause, GuardReferenceError)
        assert str(error) == "Evaluation error at line 1 and column 0: missing is not defined"

    def test_earlier_side_effects_kept(self):
        context = {"fail": boom}
        with pytest.raises(CondCompEvalError):
            evaluate("// #if x = 1\n// #endif\n// #if fail()\n// #endif", context)
        assert context["x"] == 1


class TestSuspension:
    """Test await in guards"""

    def test_sync_rejects_await(self):
        """Await anywhere makes a synchronous run fail before any guard runs"""
        context = {"A": True, "ready": boom}
        source = "// #if A = false\n// #endif\n// #if false\n// #if await ready()\n// #endif\n// #endif"
        with pytest.raises(CondCompEvalError) as excinfo:
            evaluate(source, context)
        error = excinfo.value
        assert (error.line, error.column) == (0, 0)
        assert isinstance(error.cause, SuspensionError)
        assert context["A"] is True

    def test_async_awaits_guard(self):
        async def ready():
            await asyncio.sleep(0.01)
            return True

        blocks = Parser("// #if await ready()\n// #endif").parse()
        asyncio.run(BatchEvaluator(blocks, {"ready": ready}).evaluate_async())
        assert blocks[0].taken_branch == 0

    def test_async_error_attribution(self):
        async def failing():
            await asyncio.sleep(0)
            raise ValueError("late")

        blocks = Parser("// #if true\n// #elseif x\n// #endif\n// #if await failing()\n// #endif").parse()
        with pytest.raises(CondCompEvalError) as excinfo:
            asyncio.run(BatchEvaluator(blocks, {"failing": failing}).evaluate_async())
        assert (excinfo.value.line, excinfo.value.column) == (4, 0)
        assert isinstance(excinfo.value.cause, ValueError)

    def test_program_suspends(self):
        blocks = Parser("// #if A\n// #else\n// #if await B\n// #endif\n// #endif").parse()
        assert program_compile(blocks).suspends() is True
        blocks = Parser("// #if A\n// #endif").parse()
        assert program_compile(blocks).suspends() is False


class TestResultsBind:
    """Test validation of evaluation results"""

    def test_binds_nested_results(self):
        blocks = Parser("// #if A\n// #elseif B\n// #if C\n// #endif\n// #endif").parse()
        results_bind(blocks, [EvaluationResultEntry(branch=1, children=[EvaluationResultEntry(branch=0)])])
        assert blocks[0].taken_branch == 1
        assert blocks[0].elseifs[0].children[0].taken_branch == 0

    @pytest.mark.parametrize("results", [
        "nope",
        [],
        [EvaluationResultEntry(branch=0), EvaluationResultEntry(branch=0)],
        [{"branch": 0}],
        [EvaluationResultEntry(branch=2)],
        [EvaluationResultEntry(branch=-2)],
        [EvaluationResultEntry(branch="0")],
    ])
    def test_malformed_results(self, results):
        blocks = Parser("// #if A\n// #elseif B\n// #endif").parse()
        with pytest.raises(CondCompEvalError) as excinfo:
            results_bind(blocks, results)
        assert (excinfo.value.line, excinfo.value.column) == (0, 0)
