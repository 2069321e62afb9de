"""Execution engine running selected tests against a compiler."""

import asyncio
import logging
import os
import shutil
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from typst_test.compare import ComparisonSettings, compare_directories, page_files
from typst_test.compilers.base import CompileError, Compiler
from typst_test.models.result import RunReport, TerminalState, TestResult, TestStatus
from typst_test.models.test import TestRecord

log = logging.getLogger(__name__)

type RunMode = Literal["compile", "compare", "update"]

DESTRUCTIVE_MODES: frozenset[RunMode] = frozenset({"update"})


def requires_confirmation(selected: Sequence[TestRecord], mode: RunMode) -> bool:
    """Whether running `mode` on `selected` needs explicit confirmation."""
    return mode in DESTRUCTIVE_MODES and len(selected) > 1


def reset_directory(directory: Path) -> None:
    """Remove `directory` with its contents and create it empty."""
    if directory.exists():
        shutil.rmtree(directory)
    directory.mkdir(parents=True)


def remove_directory(directory: Path) -> None:
    if directory.exists():
        shutil.rmtree(directory)


def backup_directory(reference_dir: Path) -> Path:
    """Where `persist_references` keeps the old references during the swap."""
    return reference_dir.with_name(f".{reference_dir.name}.old")


def persist_references(pages: Sequence[Path], reference_dir: Path) -> None:
    """Replace the contents of `reference_dir` with `pages`.

    Pages are staged in a sibling directory first and swapped in by renames,
    so `reference_dir` never holds a mix of old and new pages. A backup left
    behind by an interrupted swap is restored before staging.
    """
    staging = reference_dir.with_name(f".{reference_dir.name}.new")
    backup = backup_directory(reference_dir)
    if backup.is_dir() and not reference_dir.exists():
        log.warning("Restoring references interrupted during an update: %s", backup)
        backup.rename(reference_dir)
    remove_directory(staging)
    remove_directory(backup)

    staging.mkdir(parents=True)
    try:
        for page in pages:
            shutil.copyfile(page, staging / page.name)
    except OSError:
        remove_directory(staging)
        raise

    if reference_dir.exists():
        reference_dir.rename(backup)
        staging.rename(reference_dir)
        shutil.rmtree(backup)
    else:
        staging.rename(reference_dir)


def clean(tests: Sequence[TestRecord]) -> int:
    """Remove generated directories of `tests`, returning how many were removed.

    Output and diff directories are always generated, references only for
    ephemeral tests.
    """
    removed = 0
    for test in tests:
        directories = [test.output_dir, test.diff_dir]
        if test.kind == "ephemeral":
            directories.append(test.reference_dir)
        for directory in directories:
            if directory.exists():
                shutil.rmtree(directory)
                log.debug("Removed %s", directory)
                removed += 1
    return removed


@dataclass(frozen=True, kw_only=True)
class Outcome:
    """How a test pipeline ended, before timing is attached."""

    status: TestStatus
    state: TerminalState
    message: str | None = None
    diff_locations: Sequence[Path] = field(default_factory=tuple)


@dataclass(frozen=True, kw_only=True)
class TestRunner:
    """Runs tests concurrently on a single compiler."""

    __test__ = False

    compiler: Compiler
    project_root: Path
    comparison: ComparisonSettings = ComparisonSettings()
    jobs: int = field(default_factory=lambda: os.cpu_count() or 1)
    skip_annotated: bool = True
    fail_fast: bool = True

    async def run(
        self,
        tests: Sequence[TestRecord],
        mode: RunMode,
        *,
        shutdown_event: asyncio.Event | None = None,
    ) -> RunReport:
        """Run `tests` in `mode`.

        Args:
            tests: Tests to run, the report keeps their order
            mode: Whether to only compile, compare against references or
                update references
            shutdown_event: Once set, tests that have not started are
                reported as cancelled and the run is marked cancelled

        Returns:
            Report with one result per test

        """
        started = time.monotonic()
        if not tests:
            log.info("No tests selected")
            return RunReport(results=(), duration=0.0)

        shutdown_event = shutdown_event or asyncio.Event()
        halted = asyncio.Event()
        semaphore = asyncio.Semaphore(max(self.jobs, 1))

        log.info(
            "Running %d test(s) in %s mode with %d job(s)...",
            len(tests),
            mode,
            max(self.jobs, 1),
        )
        results = await asyncio.gather(
            *(
                self._run_limited(test, mode, semaphore, shutdown_event, halted)
                for test in tests
            ),
            return_exceptions=True,
        )
        log.info("Test execution completed")

        return RunReport(
            results=self._process_results(tests, results),
            duration=time.monotonic() - started,
            cancelled=shutdown_event.is_set(),
        )

    def _process_results(
        self,
        tests: Sequence[TestRecord],
        results: Sequence[TestResult | BaseException],
    ) -> Sequence[TestResult]:
        """Turn exceptions escaping a test into errored results."""
        final_results: list[TestResult] = []

        for test, result in zip(tests, results, strict=True):
            if isinstance(result, TestResult):
                final_results.append(result)
            else:
                log.error("Test %s failed unexpectedly: %s", test.id, result, exc_info=result)
                final_results.append(
                    TestResult(
                        test_id=test.id,
                        status="errored",
                        state="errored",
                        duration=0.0,
                        message=str(result) or type(result).__name__,
                    )
                )

        return final_results

    async def _run_limited(
        self,
        test: TestRecord,
        mode: RunMode,
        semaphore: asyncio.Semaphore,
        shutdown_event: asyncio.Event,
        halted: asyncio.Event,
    ) -> TestResult:
        async with semaphore:
            if shutdown_event.is_set() or halted.is_set():
                reason = "cancelled" if shutdown_event.is_set() else "stopped after a failure"
                return TestResult(
                    test_id=test.id,
                    status="skipped",
                    state="cancelled",
                    duration=0.0,
                    message=f"Run {reason} before the test started",
                )
            try:
                result = await self.run_test(test, mode)
            except Exception:
                if self.fail_fast:
                    halted.set()
                raise

        log.info(
            "Test completed: test=%s status=%s state=%s duration=%.2fs",
            test.id,
            result.status,
            result.state,
            result.duration,
        )

        if self.fail_fast and not result.ok and not halted.is_set():
            log.info("Test %s did not pass, no further tests will start", test.id)
            halted.set()
        return result

    async def run_test(self, test: TestRecord, mode: RunMode) -> TestResult:
        """Run a single test through its pipeline."""
        started = time.monotonic()
        outcome = await self._outcome(test, mode)
        return TestResult(
            test_id=test.id,
            status=outcome.status,
            state=outcome.state,
            duration=time.monotonic() - started,
            message=outcome.message,
            diff_locations=outcome.diff_locations,
        )

    async def _outcome(self, test: TestRecord, mode: RunMode) -> Outcome:
        if self.skip_annotated and test.is_skipped:
            return Outcome(status="skipped", state="skipped", message="Annotated with [skip]")

        try:
            await asyncio.to_thread(reset_directory, test.output_dir)
            await asyncio.to_thread(remove_directory, test.diff_dir)
            try:
                pages = await self.compiler.compile(
                    test.script, root=self.project_root, output_dir=test.output_dir
                )
            except CompileError as e:
                return Outcome(status="failed", state="compile-failed", message=str(e))

            match mode:
                case "compile":
                    return Outcome(status="passed", state="compiled")
                case "update":
                    return await self._update(test, pages)
                case _:
                    return await self._compare(test)
        except OSError as e:
            log.error("Test %s errored: %s", test.id, e)
            return Outcome(status="errored", state="errored", message=f"{type(e).__name__}: {e}")

    async def _update(self, test: TestRecord, pages: Sequence[Path]) -> Outcome:
        if test.kind != "persistent":
            return Outcome(status="passed", state="compiled")

        try:
            await asyncio.to_thread(persist_references, pages, test.reference_dir)
        except OSError as e:
            log.error("Failed to update references of %s: %s", test.id, e)
            return Outcome(
                status="errored",
                state="update-failed",
                message=f"{type(e).__name__}: {e}",
            )

        log.debug("Updated %d reference page(s) of %s", len(pages), test.id)
        return Outcome(status="passed", state="updated")

    async def _compare(self, test: TestRecord) -> Outcome:
        if test.kind == "compile-only":
            return Outcome(status="passed", state="passed")

        if test.reference_script is not None:
            await asyncio.to_thread(reset_directory, test.reference_dir)
            try:
                await self.compiler.compile(
                    test.reference_script,
                    root=self.project_root,
                    output_dir=test.reference_dir,
                )
            except CompileError as e:
                return Outcome(
                    status="failed",
                    state="compile-failed",
                    message=f"Reference: {e}",
                )
        elif not await asyncio.to_thread(page_files, test.reference_dir):
            return Outcome(
                status="failed",
                state="failed",
                message=f"No reference pages in {test.reference_dir}",
            )

        comparison, diff_locations = await asyncio.to_thread(
            compare_directories,
            test.output_dir,
            test.reference_dir,
            test.diff_dir,
            self.comparison,
        )
        if comparison.equal:
            return Outcome(status="passed", state="passed")
        return Outcome(
            status="failed",
            state="failed",
            message=comparison.reason,
            diff_locations=diff_locations,
        )
