"""CLI entry point for running Typst regression tests."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from typst_test.compare import ComparisonSettings
from typst_test.compilers.loading import CompilerNotFoundError, load_compiler_manifest
from typst_test.models.result import RunReport
from typst_test.models.test import InvalidTestIdError, TestId, TestRecord
from typst_test.orchestrator import RunMode, TestRunner, clean, requires_confirmation
from typst_test.project import ProjectNotFoundError, load_project
from typst_test.registry import DiscoveryError, TestRegistry, discover
from typst_test.test_set import (
    TestSetError,
    TestSetExpression,
    evaluate,
    with_implicit_skip,
)
from typst_test.test_set.ast import IdMatch, Node, union
from typst_test.test_set.matcher import Exact

type Command = Literal["list", "run", "compile", "update", "clean"]

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

DEFAULT_EXPRESSION = "all()"
DEFAULT_COMPILER = "typst-cli"

COMMAND_MODES: Mapping[str, RunMode] = {
    "run": "compare",
    "compile": "compile",
    "update": "update",
}

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "errored": "❗",
    "skipped": "⏭️",
}


class SelectionError(Exception):
    """Raised when the requested tests cannot be selected."""


def log_results_summary(log: logging.Logger, report: RunReport) -> None:
    """Log a formatted summary of test results with diff locations."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for result in report.results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s: %s (%.2fs)",
            symbol,
            result.test_id,
            result.state,
            result.duration,
        )
        if result.message:
            log.info("  Message: %s", result.message)
        for location in result.diff_locations:
            log.info("  Diff: %s", location)

    log.info("=" * 80)
    log.info(
        "%d passed, %d failed, %d errored, %d skipped in %.2fs%s",
        report.passed,
        report.failed,
        report.errored,
        report.skipped,
        report.duration,
        " (cancelled)" if report.cancelled else "",
    )


def format_output(report: RunReport) -> dict[str, Any]:
    """Format a run report for JSON output."""
    results = [
        {
            "test": str(result.test_id),
            "status": result.status,
            "state": result.state,
            "duration": result.duration,
            "message": result.message,
            "diff_locations": [str(path) for path in result.diff_locations],
        }
        for result in report.results
    ]

    return {
        "total": len(results),
        "passed": report.passed,
        "failed": report.failed,
        "errored": report.errored,
        "skipped": report.skipped,
        "cancelled": report.cancelled,
        "duration": report.duration,
        "results": results,
    }


def format_test(test: TestRecord) -> str:
    """Format a test for the `list` command."""
    line = f"{test.id} ({test.kind})"
    if test.annotations:
        line += " " + " ".join(str(annotation) for annotation in test.annotations)
    return line


def build_selection(
    test_ids: Sequence[str],
    expression: str | None,
    implicit_skip: bool = True,
) -> tuple[Node, bool]:
    """Build the selection from positional identifiers or an expression.

    Explicitly named tests are selected even when annotated with skip and
    are run as if `implicit_skip` were off. An expression excludes skipped
    tests unless `implicit_skip` is off.

    Returns:
        The selection and whether it was confirmed with the `all:` prefix

    Raises:
        SelectionError: If both identifiers and an expression are given, or
            an identifier is invalid
        TestSetError: If the expression is invalid

    """
    if test_ids and expression is not None:
        raise SelectionError("Give either test identifiers or an expression, not both")

    if test_ids:
        nodes: list[Node] = []
        for value in test_ids:
            try:
                nodes.append(IdMatch("full", Exact(TestId(value).value)))
            except InvalidTestIdError as e:
                raise SelectionError(str(e)) from e
        node = nodes[0]
        for other in nodes[1:]:
            node = union(node, other)
        return node, False

    parsed = TestSetExpression.parse(expression or DEFAULT_EXPRESSION)
    node = with_implicit_skip(parsed.node) if implicit_skip else parsed.node
    return node, parsed.all_modifier


def select_tests(
    registry: TestRegistry, test_ids: Sequence[str], node: Node
) -> Sequence[TestRecord]:
    """Evaluate the selection, rejecting explicitly named tests that do not exist."""
    missing = [value for value in test_ids if value not in registry]
    if missing:
        raise SelectionError(f"Unknown test(s): {', '.join(missing)}")
    return evaluate(node, registry)


def prompt_confirmation(message: str) -> bool:
    """Ask for confirmation on an interactive terminal."""
    if not sys.stdin.isatty():
        return False
    try:
        answer = input(f"{message} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _register_signal_handlers(
    loop: asyncio.AbstractEventLoop, handler: Callable[[], None]
) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handler)
        except NotImplementedError:
            continue


def _remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            continue


async def run(
    command: Command,
    *,
    root: Path | None = None,
    compiler_key: str = DEFAULT_COMPILER,
    compiler_config_json: str = "{}",
    jobs: int | None = None,
    test_ids: Sequence[str] = (),
    expression: str | None = None,
    implicit_skip: bool = True,
    max_deviation: int = 0,
    min_delta: int = 0,
    fail_fast: bool = True,
    confirm: Callable[[str], bool] = prompt_confirmation,
    shutdown_event: asyncio.Event | None = None,
) -> int:
    """Run a command and return the exit code."""
    log = logging.getLogger("typst_test")

    try:
        node, confirmed = build_selection(test_ids, expression, implicit_skip)
        project = load_project(root)
        log.info("Discovering tests in %s", project.tests_root)
        registry = discover(project.tests_root)
        for issue in registry.issues:
            log.warning("Excluded test: %s", issue)

        tests = select_tests(registry, test_ids, node)
        comparison = ComparisonSettings(max_deviation=max_deviation, min_delta=min_delta)
    except (
        ProjectNotFoundError,
        DiscoveryError,
        SelectionError,
        TestSetError,
        ValueError,
    ) as e:
        log.error("%s", e)
        return EXIT_USAGE

    log.info("Selected %d of %d test(s)", len(tests), len(registry))

    if command == "list":
        for test in tests:
            print(format_test(test))
        return EXIT_OK

    if command == "clean":
        removed = clean(tests)
        log.info("Cleaned %d test(s), removed %d director(ies)", len(tests), removed)
        return EXIT_OK

    mode = COMMAND_MODES[command]
    if (
        requires_confirmation(tests, mode)
        and not confirmed
        and not confirm(f"{command.capitalize()} {len(tests)} tests?")
    ):
        log.error(
            "Refusing to %s %d tests without confirmation, prefix the expression "
            "with 'all:' to confirm",
            command,
            len(tests),
        )
        return EXIT_USAGE

    try:
        log.info("Loading compiler: %s", compiler_key)
        manifest = load_compiler_manifest(compiler_key)
        config = manifest.config_cls(**json.loads(compiler_config_json))
    except (CompilerNotFoundError, ValidationError, ValueError, TypeError) as e:
        log.error("Invalid compiler configuration: %s", e)
        return EXIT_USAGE

    shutdown_event = shutdown_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    _register_signal_handlers(loop, shutdown_event.set)
    try:
        async with manifest.compiler_factory(config) as compiler:
            runner = TestRunner(
                compiler=compiler,
                project_root=project.root,
                comparison=comparison,
                jobs=jobs or os.cpu_count() or 1,
                skip_annotated=implicit_skip and not test_ids,
                fail_fast=fail_fast,
            )
            report = await runner.run(tests, mode, shutdown_event=shutdown_event)
    except CompilerNotFoundError as e:
        log.error("%s", e)
        return EXIT_USAGE
    finally:
        _remove_signal_handlers(loop)

    log_results_summary(log, report)

    output = format_output(report)
    print(json.dumps(output, indent=2))

    return EXIT_OK if report.ok else EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per command."""
    parser = argparse.ArgumentParser(description="Run regression tests for Typst documents")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root (default: nearest directory containing typst.toml)",
    )
    parser.add_argument(
        "--compiler",
        default=DEFAULT_COMPILER,
        help=f"Compiler key (default: {DEFAULT_COMPILER})",
    )
    parser.add_argument(
        "--compiler-config",
        default="{}",
        help="JSON configuration for the compiler",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Number of tests to run concurrently (default: CPU count)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    selection = argparse.ArgumentParser(add_help=False)
    selection.add_argument(
        "tests",
        nargs="*",
        metavar="TEST",
        help="Identifiers of the tests to select",
    )
    selection.add_argument(
        "-e",
        "--expression",
        default=None,
        help=f"Test set expression selecting tests (default: {DEFAULT_EXPRESSION})",
    )
    selection.add_argument(
        "--no-implicit-skip",
        action="store_true",
        help="Do not exclude tests annotated with [skip]",
    )

    execution = argparse.ArgumentParser(add_help=False)
    execution.add_argument(
        "--no-fail-fast",
        action="store_true",
        help="Keep starting tests after a test failed",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", parents=[selection], help="List selected tests")
    run_parser = subparsers.add_parser(
        "run",
        aliases=["compare"],
        parents=[selection, execution],
        help="Compile selected tests and compare them against their references",
    )
    run_parser.add_argument(
        "--max-deviation",
        type=int,
        default=0,
        help="Number of deviating pixels allowed per page",
    )
    run_parser.add_argument(
        "--min-delta",
        type=int,
        default=0,
        help="Channel difference (0-255) at which a pixel counts as deviating",
    )
    subparsers.add_parser(
        "compile", parents=[selection, execution], help="Compile selected tests"
    )
    subparsers.add_parser(
        "update",
        parents=[selection, execution],
        help="Update references of selected tests",
    )
    subparsers.add_parser(
        "clean", parents=[selection], help="Remove generated files of selected tests"
    )
    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    command: Command = "run" if args.command == "compare" else args.command
    exit_code = asyncio.run(
        run(
            command,
            root=args.root,
            compiler_key=args.compiler,
            compiler_config_json=args.compiler_config,
            jobs=args.jobs,
            test_ids=args.tests,
            expression=args.expression,
            implicit_skip=not args.no_implicit_skip,
            max_deviation=getattr(args, "max_deviation", 0),
            min_delta=getattr(args, "min_delta", 0),
            fail_fast=not getattr(args, "no_fail_fast", False),
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
