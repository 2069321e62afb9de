"""Compiler running the `typst` command line executable."""

import asyncio
import logging
import re
import shutil
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from typst_test.compare import page_files
from typst_test.compilers.base import CompileError, Compiler, Diagnostic
from typst_test.compilers.loading import CompilerNotFoundError
from typst_test.compilers.typst_cli.config import TypstCLIConfig

log = logging.getLogger(__name__)

SHORT_DIAGNOSTIC = re.compile(
    r"^(?:(?P<file>.+?):(?P<line>\d+):(?P<column>\d+): )?"
    r"(?P<severity>error|warning): (?P<message>.*)$"
)


def parse_diagnostics(output: str) -> Sequence[Diagnostic]:
    """Parse diagnostics printed in Typst's short diagnostic format.

    Lines that are not diagnostics, such as hints, are ignored.
    """
    diagnostics: list[Diagnostic] = []
    for line in output.splitlines():
        if (match := SHORT_DIAGNOSTIC.match(line.strip())) is None:
            continue
        diagnostics.append(
            Diagnostic(
                message=match.group("message"),
                severity="error" if match.group("severity") == "error" else "warning",
                file=match.group("file"),
                line=int(match.group("line")) if match.group("line") else None,
                column=int(match.group("column")) if match.group("column") else None,
            )
        )
    return diagnostics


@dataclass(frozen=True, kw_only=True)
class TypstCompiler(Compiler):
    """Renders scripts to PNG pages with `typst compile`."""

    config: TypstCLIConfig
    executable: str

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: TypstCLIConfig
    ) -> AsyncGenerator["TypstCompiler", None]:
        """Create a compiler after locating the configured executable."""
        executable = shutil.which(config.binary)
        if executable is None:
            raise CompilerNotFoundError(
                f"Typst executable '{config.binary}' not found on PATH"
            )
        log.debug("Using Typst executable %s", executable)
        yield cls(config=config, executable=executable)

    def command(self, script: Path, *, root: Path, output_dir: Path) -> Sequence[str]:
        """Build the command line compiling `script` into `output_dir`."""
        command = [
            self.executable,
            "compile",
            "--root",
            str(root),
            "--format",
            "png",
            "--ppi",
            f"{self.config.ppi:g}",
            "--diagnostic-format",
            "short",
        ]
        for font_path in self.config.font_paths:
            command.extend(["--font-path", str(font_path)])
        if self.config.ignore_system_fonts:
            command.append("--ignore-system-fonts")
        command.extend([str(script), str(output_dir / "{p}.png")])
        return command

    async def compile(
        self,
        script: Path,
        *,
        root: Path,
        output_dir: Path,
    ) -> Sequence[Path]:
        """Compile `script` by running the Typst executable."""
        command = self.command(script, root=root, output_dir=output_dir)
        log.debug("Running %s", " ".join(command))

        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=root,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        diagnostics = parse_diagnostics(stderr.decode(errors="replace"))

        if process.returncode != 0:
            if not diagnostics:
                diagnostics = [Diagnostic(message=stderr.decode(errors="replace").strip())]
            raise CompileError(f"Failed to compile {script}", diagnostics)

        warnings = [d for d in diagnostics if d.severity == "warning"]
        if warnings and self.config.promote_warnings:
            raise CompileError(f"Compiled {script} with warnings", warnings)
        for warning in warnings:
            log.warning("%s", warning)

        pages = page_files(output_dir)
        if not pages:
            raise CompileError(f"Compiling {script} produced no pages")
        return pages
