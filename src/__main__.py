#!/usr/bin/env python3
"""
condcomp - Conditional compilation for JavaScript-family source files

Rewrites source files in place, keeping or removing blocks of code based on
#if/#elseif/#else/#endif comment directives whose guards are evaluated
against a context built from the command line and an optional env file.

Philosophy:
    - Comments only: Unprocessed files stay valid, runnable source
    - One context: Every file is compiled against the same context, in order
    - All or nothing: A file with errors is reported and left untouched

Usage:
    condcomp -i [options] files...

Examples:
    # Compile two files with DEBUG set
    condcomp -i -D DEBUG src/app.js src/util.js

    # Every .js file below src/, context from .env.production
    condcomp -i -g -e .env.production 'src/**/*.js'

    # Check what would happen without writing anything
    condcomp -i --dry-run -D TARGET=web src/app.js -vv
"""

import asyncio
import glob as globbing
import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter
from typing import Any, Dict, List, Optional, Tuple

from dotenv import dotenv_values
from dotenv.variables import parse_variables

from .config import appsettings
from .lib import cond_comp, CondCompEvalError, CondCompParseError, __version__, LOG, state_connectToLogger
from .models import ProgramState, pipeline


# Define CLI arguments
parser = ArgumentParser(
    prog="condcomp",
    description=(
        "Conditionally compile JS code files with #if, #elseif, #else, #endif comments. "
        "Currently files can only be modified in place via the required option -i."
    ),
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument("files", nargs="+", help="Input files (glob patterns with --glob)")

parser.add_argument(
    "-g", "--glob", action="store_true", help="Treat input files as glob patterns (** recurses)"
)

parser.add_argument(
    "-D",
    "--var",
    action="append",
    default=None,
    metavar="NAME[=VALUE]",
    help="Context variable, e.g. DEBUG or ENV=local (repeatable)",
)

parser.add_argument(
    "-e", "--env", default=None, type=str, help="Env file to use as the context (dotenv syntax)"
)

parser.add_argument(
    "--dry-run", dest="dryRun", action="store_true", help="Do not modify files"
)

parser.add_argument(
    "-i", "--in-place", dest="inPlace", action="store_true", required=True, help="Modify files in place"
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def var_parse(assignment: str) -> Tuple[str, Any]:
    """
    Split a --var argument into a context key and value.

    A bare NAME is True; NAME=VALUE keeps VALUE as a string (split at the
    first '=').

    Example:
        >>> var_parse("DEBUG")
        ('DEBUG', True)
        >>> var_parse("URL=http://x/?a=b")
        ('URL', 'http://x/?a=b')
    """
    key, sep, value = assignment.partition("=")
    if not sep:
        return key, True
    return key, value


def env_load(env_path: Path) -> Dict[str, Optional[str]]:
    """
    Read a dotenv file, expanding ${VAR} references from the file itself.

    References resolve against entries defined earlier in the same file
    only; the process environment is never consulted. Unknown names
    expand to their ${VAR:-default} default, or "".

    Example:
        BASE=app
        NAME=${BASE}-web     ->  {"BASE": "app", "NAME": "app-web"}
    """
    values = dotenv_values(env_path, interpolate=False, encoding=appsettings.file_encoding)
    if not appsettings.env_interpolate:
        return values
    expanded: Dict[str, Optional[str]] = {}
    for key, value in values.items():
        if value is None:
            expanded[key] = None
        else:
            expanded[key] = "".join(atom.resolve(expanded) for atom in parse_variables(value))
    return expanded


def context_create(inputstate: ProgramState) -> ProgramState:
    """
    Build the evaluation context shared by every file.

    Loads the env file (if any) first, then applies --var assignments,
    which override env file entries.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added field:
            - context: Dict of context variables

    Exits:
        1 if the env file cannot be read
    """
    state = inputstate.copy()
    context = {}

    if state.env is not None:
        env_path = Path(state.env)
        if not env_path.is_file():
            print(f"Error: Env file not found: {env_path}", file=sys.stderr)
            sys.exit(1)
        values = env_load(env_path)
        for key, value in values.items():
            # A key without '=' in the env file reads like a bare --var NAME
            context[key] = True if value is None else value
        LOG(f"Loaded {len(values)} variables from {env_path}", level=2)

    for assignment in state.var:
        key, value = var_parse(assignment)
        context[key] = value

    LOG(f"Context: {sorted(context)}", level=3)
    state.context = context
    return state


def paths_resolve(inputstate: ProgramState) -> ProgramState:
    """
    Resolve file arguments to absolute paths.

    With --glob every argument is expanded as a (recursive) glob pattern and
    directories are skipped. Duplicates are dropped, first occurrence wins.

    Args:
        inputstate: Program state with files set

    Returns:
        ProgramState with added field:
            - paths: List of unique absolute file paths
    """
    state = inputstate.copy()
    paths: List[Path] = []

    for file in state.files:
        if state.glob:
            candidates = [Path(p) for p in sorted(globbing.glob(file, recursive=True))]
            candidates = [p for p in candidates if not p.is_dir()]
            LOG(f"Pattern {file} matched {len(candidates)} files", level=2)
        else:
            candidates = [Path(file)]
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved not in paths:
                paths.append(resolved)

    state.paths = paths
    return state


def errors_print(path: Path, error: Exception) -> None:
    """Print a compilation error as path:line:column lines on stderr."""
    if isinstance(error, CondCompParseError):
        for entry in error.entries:
            print(
                f"{path}:{entry.line}:{entry.column}: {entry.subtype.value}: {entry.message}",
                file=sys.stderr,
            )
    elif isinstance(error, CondCompEvalError):
        print(f"{path}:{error.line}:{error.column}: {error}", file=sys.stderr)
    else:
        print(f"{path}: {error}", file=sys.stderr)


async def source_compile(path: Path, context: dict) -> Tuple[str, str]:
    source = path.read_text(encoding=appsettings.file_encoding)
    return source, await cond_comp(source, context)


def files_compile(inputstate: ProgramState) -> ProgramState:
    """
    Compile every file against the shared context.

    Files are compiled in order; guard side effects on the context carry
    over to later files. Unless --dry-run is given, each file is rewritten
    with its compiled text.

    Args:
        inputstate: Program state with context and paths

    Returns:
        ProgramState with added field:
            - compileResult: Dict containing:
                - files: int (number of files compiled)
                - changed: int (files whose text changed)

    Exits:
        1 on the first file that cannot be read or compiled
    """
    state = inputstate.copy()
    changed = 0

    for path in state.paths:
        try:
            source, output = asyncio.run(source_compile(path, state.context))
        except (CondCompParseError, CondCompEvalError, OSError, UnicodeDecodeError) as e:
            errors_print(path, e)
            sys.exit(1)

        if output != source:
            changed += 1
            if not state.dryRun:
                path.write_text(output, encoding=appsettings.file_encoding)
        LOG(f"done    {path}", level=1)

    state.compileResult = {"files": len(state.paths), "changed": changed}
    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Summarize the run.

    Args:
        inputstate: Program state with compileResult populated

    Returns:
        ProgramState unchanged (terminal pipeline stage)
    """
    state: ProgramState = inputstate.copy()
    result = state.compileResult or {"files": 0, "changed": 0}
    suffix = " (dry run, nothing written)" if state.dryRun else ""
    LOG(f"Compiled {result['files']} files, {result['changed']} changed{suffix}", level=2)
    return state


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point - conditionally compile the given files in place.

    Orchestrates the pipeline:
        1. context_create: Build the context from --env and --var
        2. paths_resolve: Expand and de-duplicate the file arguments
        3. files_compile: Compile (and rewrite) every file
        4. results_report: Summarize

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
    """
    options: Namespace = parser.parse_args(argv)
    state: ProgramState = ProgramState.state_createFromNamespace(options=options)
    state.verbosity = appsettings.verbosity_resolve(state.verbosity)

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, context_create, paths_resolve, files_compile, results_report)


if __name__ == "__main__":
    main()
