"""Models for discovered tests."""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import total_ordering
from pathlib import Path
from typing import Literal

type TestKind = Literal["compile-only", "ephemeral", "persistent"]

SEGMENT_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_-]*")
SEPARATOR = "/"

ENTRY_SCRIPT = "test.typ"
REFERENCE_SCRIPT = "ref.typ"
REFERENCE_DIR = "ref"
REFERENCE_BACKUP_DIR = f".{REFERENCE_DIR}.old"
OUTPUT_DIR = "out"
DIFF_DIR = "diff"


class InvalidTestIdError(ValueError):
    """Raised when a string is not a valid test identifier."""


def is_valid_segment(segment: str) -> bool:
    """Check whether a single identifier segment is valid."""
    return SEGMENT_PATTERN.fullmatch(segment) is not None


@total_ordering
@dataclass(frozen=True)
class TestId:
    """A `/`-separated test identifier, relative to the tests root.

    All segments must start with an ASCII letter and contain only ASCII
    letters, digits, underscores and minuses.
    """

    __test__ = False

    value: str

    def __post_init__(self) -> None:
        """Validate the identifier segments."""
        for segment in self.value.split(SEPARATOR):
            if not is_valid_segment(segment):
                raise InvalidTestIdError(
                    f"Invalid test identifier {self.value!r}: "
                    f"segment {segment!r} does not match {SEGMENT_PATTERN.pattern}"
                )

    @classmethod
    def from_path(cls, path: Path) -> "TestId":
        """Create an identifier from a path relative to the tests root."""
        return cls(SEPARATOR.join(path.parts))

    @property
    def segments(self) -> Sequence[str]:
        """The individual segments of this identifier."""
        return tuple(self.value.split(SEPARATOR))

    @property
    def name(self) -> str:
        """The last segment of this identifier."""
        return self.value.rpartition(SEPARATOR)[2]

    @property
    def module(self) -> str:
        """Everything before the last segment, empty for top-level tests."""
        return self.value.rpartition(SEPARATOR)[0]

    def to_path(self) -> Path:
        """The path of this test relative to the tests root."""
        return Path(*self.segments)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TestId):
            return NotImplemented
        return self.segments < other.segments

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Skip:
    """Excludes a test from default selections."""

    def __str__(self) -> str:
        return "[skip]"


@dataclass(frozen=True)
class Custom:
    """Places a test in a user-defined test set."""

    name: str

    def __str__(self) -> str:
        return f"[custom: {self.name}]"


type Annotation = Skip | Custom


@dataclass(frozen=True, kw_only=True)
class TestRecord:
    """A discovered test and the filesystem locations belonging to it."""

    __test__ = False

    id: TestId
    kind: TestKind
    directory: Path
    annotations: Sequence[Annotation] = field(default_factory=tuple)

    @property
    def script(self) -> Path:
        """The entry script compiled for this test."""
        return self.directory / ENTRY_SCRIPT

    @property
    def reference_script(self) -> Path | None:
        """The reference script, only ephemeral tests have one."""
        if self.kind != "ephemeral":
            return None
        return self.directory / REFERENCE_SCRIPT

    @property
    def reference_dir(self) -> Path:
        """Stored reference pages, or compiled reference pages for ephemeral tests."""
        return self.directory / REFERENCE_DIR

    @property
    def output_dir(self) -> Path:
        """Pages compiled during the current run."""
        return self.directory / OUTPUT_DIR

    @property
    def diff_dir(self) -> Path:
        """Diff images of mismatched pages."""
        return self.directory / DIFF_DIR

    @property
    def is_skipped(self) -> bool:
        """Whether the test carries the skip annotation."""
        return any(isinstance(annotation, Skip) for annotation in self.annotations)

    def has_custom(self, name: str) -> bool:
        """Whether the test carries a custom annotation with this exact name."""
        return any(
            isinstance(annotation, Custom) and annotation.name == name
            for annotation in self.annotations
        )
