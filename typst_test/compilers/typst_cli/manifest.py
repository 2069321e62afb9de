"""Typst CLI compiler manifest."""

from typst_test.compilers.manifest import CompilerManifest
from typst_test.compilers.typst_cli.compiler import TypstCompiler
from typst_test.compilers.typst_cli.config import TypstCLIConfig

typst_cli_manifest = CompilerManifest(
    config_cls=TypstCLIConfig,
    compiler_factory=TypstCompiler.from_config,
)
