"""Tests for compiler loading module."""

import pytest

from typst_test.compilers.loading import CompilerNotFoundError, load_compiler_manifest
from typst_test.compilers.typst_cli import typst_cli_manifest


def test_load_compiler_manifest_returns_manifest() -> None:
    """Loads compiler manifest by key."""
    manifest = load_compiler_manifest("typst-cli")

    assert manifest is typst_cli_manifest


def test_load_compiler_manifest_raises_for_unknown_compiler() -> None:
    """Raises CompilerNotFoundError for unknown compiler key."""
    with pytest.raises(CompilerNotFoundError) as exc_info:
        load_compiler_manifest("unknown-compiler")

    assert "unknown-compiler" in str(exc_info.value)
    assert "Available compilers" in str(exc_info.value)
