"""Models for test execution results."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from typst_test.models.test import TestId

type TestStatus = Literal["passed", "failed", "skipped", "errored"]

type TerminalState = Literal[
    "compiled",
    "passed",
    "failed",
    "compile-failed",
    "updated",
    "update-failed",
    "skipped",
    "cancelled",
    "errored",
]


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Result of a single test execution.

    `status` is the coarse outcome used for exit codes and summaries, `state`
    is the terminal state the test pipeline ended in.
    """

    __test__ = False

    test_id: TestId
    status: TestStatus
    state: TerminalState
    duration: float
    message: str | None = None
    diff_locations: Sequence[Path] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        """Whether this result does not fail the run."""
        return self.status in {"passed", "skipped"}


@dataclass(frozen=True, kw_only=True)
class RunReport:
    """Aggregated results of one run, ordered by test discovery order."""

    results: Sequence[TestResult]
    duration: float
    cancelled: bool = False

    def count(self, status: TestStatus) -> int:
        """Number of results with the given status."""
        return sum(1 for result in self.results if result.status == status)

    @property
    def passed(self) -> int:
        return self.count("passed")

    @property
    def failed(self) -> int:
        return self.count("failed")

    @property
    def skipped(self) -> int:
        return self.count("skipped")

    @property
    def errored(self) -> int:
        return self.count("errored")

    @property
    def ok(self) -> bool:
        """Whether every selected test passed or was skipped."""
        return not self.cancelled and all(result.ok for result in self.results)
