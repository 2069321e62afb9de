"""Typst CLI compiler module."""

from typst_test.compilers.typst_cli.compiler import TypstCompiler
from typst_test.compilers.typst_cli.config import TypstCLIConfig
from typst_test.compilers.typst_cli.manifest import typst_cli_manifest

__all__ = ["TypstCLIConfig", "TypstCompiler", "typst_cli_manifest"]
