"""Abstract base class for document compilers."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

type Severity = Literal["error", "warning"]


@dataclass(frozen=True, kw_only=True)
class Diagnostic:
    """A single compiler message."""

    message: str
    severity: Severity = "error"
    file: str | None = None
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        if self.file is None:
            return f"{self.severity}: {self.message}"
        location = self.file
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        return f"{location}: {self.severity}: {self.message}"


class CompileError(Exception):
    """Raised when a script fails to compile."""

    def __init__(self, message: str, diagnostics: Sequence[Diagnostic] = ()) -> None:
        super().__init__(message)
        self.diagnostics = tuple(diagnostics)

    def __str__(self) -> str:
        message = super().__str__()
        if not self.diagnostics:
            return message
        details = "\n".join(f"  {diagnostic}" for diagnostic in self.diagnostics)
        return f"{message}\n{details}"


@dataclass(frozen=True, kw_only=True)
class Compiler(ABC):
    """Abstract base for compilers rendering a script to page images."""

    @abstractmethod
    async def compile(
        self,
        script: Path,
        *,
        root: Path,
        output_dir: Path,
    ) -> Sequence[Path]:
        """Compile `script` into one PNG per page.

        Args:
            script: Entry script to compile
            root: Root directory for resolving absolute paths in the script
            output_dir: Existing directory receiving `1.png`, `2.png`, ...

        Returns:
            The page images, ordered by page number

        Raises:
            CompileError: If compilation fails

        """
