"""Configuration for the Typst CLI compiler."""

from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field


class TypstCLIConfig(BaseModel):
    """Configuration for the Typst CLI compiler."""

    binary: str = "typst"
    ppi: float = Field(default=144.0, gt=0)
    font_paths: Sequence[Path] = ()
    ignore_system_fonts: bool = False
    # Fail a compilation that only produced warnings
    promote_warnings: bool = False
