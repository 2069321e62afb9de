"""Discovery of tests below a tests root."""

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from typst_test.annotations import AnnotationError, read_annotations
from typst_test.models.test import (
    ENTRY_SCRIPT,
    REFERENCE_BACKUP_DIR,
    REFERENCE_DIR,
    REFERENCE_SCRIPT,
    InvalidTestIdError,
    TestId,
    TestKind,
    TestRecord,
)

log = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the tests root itself cannot be used."""


@dataclass(frozen=True, kw_only=True)
class DiscoveryIssue:
    """A test directory that was excluded from discovery."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, kw_only=True)
class TestRegistry:
    """Discovered tests in discovery order, plus the issues found on the way."""

    __test__ = False

    root: Path
    tests: Sequence[TestRecord] = field(default_factory=tuple)
    issues: Sequence[DiscoveryIssue] = field(default_factory=tuple)
    _by_id: Mapping[TestId, TestRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {test.id: test for test in self.tests})

    def get(self, test_id: TestId | str) -> TestRecord | None:
        """Look up a test by identifier."""
        if isinstance(test_id, str):
            try:
                test_id = TestId(test_id)
            except InvalidTestIdError:
                return None
        return self._by_id.get(test_id)

    def __contains__(self, test_id: object) -> bool:
        if not isinstance(test_id, TestId | str):
            return False
        return self.get(test_id) is not None

    def __iter__(self) -> Iterator[TestRecord]:
        return iter(self.tests)

    def __len__(self) -> int:
        return len(self.tests)


def derive_kind(directory: Path) -> TestKind:
    """Derive a test's kind from the files present in its directory."""
    if (directory / REFERENCE_SCRIPT).is_file():
        return "ephemeral"
    if (directory / REFERENCE_DIR).is_dir():
        return "persistent"
    # an update interrupted mid-swap leaves only the backup
    if (directory / REFERENCE_BACKUP_DIR).is_dir():
        return "persistent"
    return "compile-only"


def load_test(tests_root: Path, directory: Path) -> TestRecord:
    """Build the record of the test in `directory`.

    Raises:
        InvalidTestIdError: If the directory does not form a valid identifier
        AnnotationError: If the script has malformed annotations
        OSError: If the script cannot be read

    """
    test_id = TestId.from_path(directory.relative_to(tests_root))
    return TestRecord(
        id=test_id,
        kind=derive_kind(directory),
        directory=directory,
        annotations=read_annotations(directory / ENTRY_SCRIPT),
    )


def _walk(
    tests_root: Path,
    directory: Path,
    tests: list[TestRecord],
    issues: list[DiscoveryIssue],
) -> None:
    if directory != tests_root and (directory / ENTRY_SCRIPT).is_file():
        try:
            tests.append(load_test(tests_root, directory))
        except (InvalidTestIdError, AnnotationError, OSError, UnicodeDecodeError) as exc:
            log.warning("Excluding test at %s: %s", directory, exc)
            issues.append(DiscoveryIssue(path=directory, message=str(exc)))
        # tests never contain other tests
        return

    try:
        with os.scandir(directory) as entries:
            children = sorted(
                entry.name
                for entry in entries
                if entry.is_dir() and not entry.name.startswith(".")
            )
    except OSError as exc:
        log.warning("Cannot read directory %s: %s", directory, exc)
        issues.append(DiscoveryIssue(path=directory, message=str(exc)))
        return

    for name in children:
        _walk(tests_root, directory / name, tests, issues)


def discover(tests_root: Path) -> TestRegistry:
    """Recursively discover all tests below `tests_root`.

    Any directory containing a `test.typ` script is a test, its identifier is
    its path relative to `tests_root`. Problems with individual tests are
    collected as issues and exclude only the affected test.

    Raises:
        DiscoveryError: If the tests root does not exist or is not a directory

    """
    if not tests_root.is_dir():
        raise DiscoveryError(f"Tests root not found: {tests_root}")

    tests: list[TestRecord] = []
    issues: list[DiscoveryIssue] = []
    _walk(tests_root, tests_root, tests, issues)

    log.debug(
        "Discovered %d test(s) in %s (%d issue(s))", len(tests), tests_root, len(issues)
    )
    return TestRegistry(root=tests_root, tests=tuple(tests), issues=tuple(issues))
