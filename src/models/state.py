"""
Program state model and pipeline helper

Defines ProgramState dataclass for the functional pipeline pattern and
the pipeline() helper for composing CLI stages.
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, List, Dict, Callable
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the CLI pipeline (state bus pattern).

    This dataclass carries all program state through the functional pipeline,
    with each stage adding new fields as processing progresses.

    Pipeline stages and their state additions:
        - Initial: files, glob, var, env, dryRun, inPlace, verbosity
        - context_create: context
        - paths_resolve: paths
        - files_compile: compileResult
        - results_report: (no additions, terminal stage)

    Attributes:
        files: File arguments (paths, or glob patterns with --glob)
        glob: Treat file arguments as glob patterns
        var: NAME or NAME=VALUE context assignments
        env: Optional dotenv file loaded as the initial context
        dryRun: Compile without writing results back
        inPlace: Rewrite each file with its compiled text
        verbosity: Logging verbosity level (1-3)
        context: Evaluation context shared by every file
        paths: Resolved, de-duplicated absolute file paths
        compileResult: Per-run statistics (files, changed)
    """

    # CLI arguments
    files: List[str] = field(default_factory=list)
    glob: bool = field(default=False)
    var: List[str] = field(default_factory=list)
    env: Optional[str] = field(default=None)
    dryRun: bool = field(default=False)
    inPlace: bool = field(default=False)
    verbosity: int = field(default=1)

    # Pipeline state
    context: Dict[str, Any] = field(default_factory=dict)
    paths: List[Path] = field(default_factory=list)
    compileResult: Optional[Dict] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace
    ) -> "ProgramState":
        """
        Create ProgramState from an argparse Namespace.

        Options that do not correspond to a ProgramState field are ignored;
        options left as None keep the dataclass default.

        Args:
            options: Parsed CLI arguments

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        import dataclasses
        valid_fields = {f.name for f in dataclasses.fields(cls)}

        filtered_options = {
            k: v for k, v in vars(options).items() if k in valid_fields and v is not None
        }
        return cls(**filtered_options)

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        The context dict is shared, not copied: every stage sees (and
        mutates) the same evaluation context.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Example:
        final_state = pipeline(
            initial_state,
            context_create,
            paths_resolve,
            files_compile,
            results_report
        )

    This is equivalent to:
        results_report(files_compile(paths_resolve(context_create(initial_state))))
    """
    from functools import reduce
    return reduce(lambda state, stage: stage(state), stages, initial_state)
