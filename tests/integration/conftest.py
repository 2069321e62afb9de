"""Fixtures for integration tests."""

from pathlib import Path
from typing import Protocol

import pytest
from PIL import Image


class CreateTestFn(Protocol):
    """Protocol for test creation function."""

    def __call__(
        self,
        test_id: str,
        script: str = "// page: white\n",
        *,
        reference_script: str | None = None,
        references: tuple[str, ...] = (),
    ) -> Path:
        """Create a test directory and return its path."""


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a project with a typst.toml configuring the tests root."""
    (tmp_path / "typst.toml").write_text(
        """
[package]
name = "example"
version = "0.1.0"
entrypoint = "lib.typ"

[tool.typst-test]
tests = "tests"
"""
    )
    (tmp_path / "tests").mkdir()
    return tmp_path


@pytest.fixture
def create_test(project_root: Path) -> CreateTestFn:
    """Return a function to create tests in the project."""

    def _create(
        test_id: str,
        script: str = "// page: white\n",
        *,
        reference_script: str | None = None,
        references: tuple[str, ...] = (),
    ) -> Path:
        directory = project_root / "tests" / test_id
        directory.mkdir(parents=True)
        (directory / "test.typ").write_text(script)
        if reference_script is not None:
            (directory / "ref.typ").write_text(reference_script)
        if references:
            (directory / "ref").mkdir()
            for number, color in enumerate(references, start=1):
                Image.new("RGB", (8, 8), color).save(directory / "ref" / f"{number}.png")
        return directory

    return _create
