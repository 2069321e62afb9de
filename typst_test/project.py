"""Project root resolution and the `[tool.typst-test]` configuration table."""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, ValidationError

from typst_test.models.base import Model

log = logging.getLogger(__name__)

MANIFEST = "typst.toml"
TOOL_SECTION = "typst-test"


class ProjectNotFoundError(Exception):
    """Raised when no project root can be determined."""


class ProjectConfig(Model):
    """Project settings read from the manifest."""

    tests: Path = Field(
        default=Path("tests"), description="Tests root, relative to the project root"
    )


@dataclass(frozen=True, kw_only=True)
class Project:
    """A Typst project with its resolved configuration."""

    root: Path
    config: ProjectConfig = ProjectConfig()

    @property
    def manifest(self) -> Path:
        return self.root / MANIFEST

    @property
    def tests_root(self) -> Path:
        return self.root / self.config.tests


def find_project_root(start: Path) -> Path:
    """Find the nearest directory at or above `start` containing a manifest.

    Raises:
        ProjectNotFoundError: If no ancestor contains a `typst.toml`

    """
    start = start.resolve()
    for directory in (start, *start.parents):
        if (directory / MANIFEST).is_file():
            return directory
    raise ProjectNotFoundError(
        f"No {MANIFEST} found in {start} or any parent directory, use --root"
    )


def load_config(manifest: Path) -> ProjectConfig:
    """Load the project configuration from a manifest file.

    A missing manifest or a manifest without a `[tool.typst-test]` table
    yields the default configuration.

    Raises:
        ValueError: If the manifest is not valid TOML or the table is invalid

    """
    if not manifest.is_file():
        return ProjectConfig()

    try:
        with manifest.open("rb") as file:
            data = tomllib.load(file)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {manifest}: {e}") from e

    tool = data.get("tool", {})
    section = tool.get(TOOL_SECTION, {}) if isinstance(tool, dict) else None
    if not isinstance(section, dict):
        raise ValueError(
            f"Invalid project configuration schema in {manifest}: "
            f"[tool.{TOOL_SECTION}] must be a table"
        )

    try:
        return ProjectConfig.model_validate(section)
    except ValidationError as e:
        raise ValueError(f"Invalid project configuration schema in {manifest}: {e}") from e


def load_project(root: Path | None = None, *, cwd: Path | None = None) -> Project:
    """Resolve the project root and load its configuration.

    Args:
        root: Explicit project root, searched for from `cwd` when not given
        cwd: Directory to start searching from, the working directory by default

    Raises:
        ProjectNotFoundError: If the root cannot be determined or does not exist
        ValueError: If the configuration is invalid

    """
    if root is None:
        root = find_project_root(cwd or Path.cwd())
    elif not root.is_dir():
        raise ProjectNotFoundError(f"Project root not found: {root}")

    root = root.resolve()
    config = load_config(root / MANIFEST)
    log.debug("Project root %s, tests root %s", root, root / config.tests)
    return Project(root=root, config=config)
