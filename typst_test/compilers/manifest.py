"""Compiler manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from typst_test.compilers.base import Compiler


@dataclass(frozen=True, kw_only=True)
class CompilerManifest[ConfigT: BaseModel]:
    """Manifest describing a compiler plugin.

    The configuration class validates the user supplied compiler settings and
    the factory turns them into a compiler for the duration of a run.
    """

    config_cls: type[ConfigT]
    compiler_factory: Callable[[ConfigT], AbstractAsyncContextManager[Compiler]]
