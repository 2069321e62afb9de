"""Loading of compilers from entry points."""

from importlib.metadata import entry_points
from typing import Any

from typst_test.compilers.manifest import CompilerManifest

ENTRY_POINT_GROUP = "typst_test.compilers"


class CompilerNotFoundError(Exception):
    """Raised when a compiler plugin or its executable is not found."""


def load_compiler_manifest(key: str) -> CompilerManifest[Any]:
    """Load a compiler manifest by key.

    Args:
        key: The compiler key as registered in pyproject.toml (e.g., "typst-cli")

    Raises:
        CompilerNotFoundError: If no compiler with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: CompilerManifest[Any] = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise CompilerNotFoundError(
        f"Compiler '{key}' not found. Available compilers: {available}"
    )
