"""Configuration loading.

Settings come from a ``releaser.toml`` file (top-level keys) or the
``[tool.releaser]`` table of ``pyproject.toml``. Uses tomlkit like the rest
of the project's TOML handling. Command-line options override both.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, Field, ValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import InvalidConfig
from .graph import DEFAULT_MAX_ORDER_PASSES
from .manifest import MANIFEST_PATH
from .models import NameFilter, ReleaseType, RunMode
from .scanner import DEFAULT_MAX_SCAN_PASSES

CONFIG_FILENAME = "releaser.toml"
PYPROJECT_FILENAME = "pyproject.toml"


class ReleaserConfig(BaseModel):
    """Settings for a release run.

    Attributes:
        owner: Hosting owner (user or organization) of every repository.
        include: Dependency names must contain one of these substrings.
        exclude: Dependency names containing any of these are skipped.
        type: Release type: major, minor or patch.
        source_ref: Ref of the root package to release from.
        mode: sandbox, interactive or non-interactive.
        manifest_path: Manifest file path inside each repository.
        max_scan_passes: Ceiling for dependency discovery passes.
        max_order_passes: Ceiling for release ordering passes.
    """

    owner: str | None = None
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    type: ReleaseType = "minor"
    source_ref: str = "master"
    mode: RunMode = "sandbox"
    manifest_path: str = MANIFEST_PATH
    max_scan_passes: int = Field(default=DEFAULT_MAX_SCAN_PASSES, ge=1)
    max_order_passes: int = Field(default=DEFAULT_MAX_ORDER_PASSES, ge=1)

    @property
    def name_filter(self) -> NameFilter:
        return NameFilter(include=self.include, exclude=self.exclude)


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file.

    Raises:
        InvalidConfig: If the file cannot be read or parsed.
    """
    try:
        return tomlkit.parse(path.read_text())
    except (OSError, TOMLKitError) as exc:
        raise InvalidConfig(f"Cannot read {path}: {exc}") from exc


def get_config_table(doc: tomlkit.TOMLDocument, path: Path) -> dict[str, Any]:
    """Extract the releaser settings table from a parsed document.

    pyproject.toml keeps them under [tool.releaser]; any other file keeps
    them at the top level.
    """
    data = doc.unwrap()
    if path.name == PYPROJECT_FILENAME:
        return data.get("tool", {}).get("releaser", {})
    return data


def find_config(root: Path) -> Path | None:
    """Find the config file in root: releaser.toml first, then pyproject.toml."""
    candidate = root / CONFIG_FILENAME
    if candidate.exists():
        return candidate
    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        table = get_config_table(load_toml(pyproject), pyproject)
        if table:
            return pyproject
    return None


def load_config(path: Path | None = None) -> ReleaserConfig:
    """Load settings from path, or from the current directory if None.

    Returns defaults when no config file exists.

    Raises:
        InvalidConfig: If the file is unreadable or a value is invalid.
    """
    if path is None:
        path = find_config(Path.cwd())
        if path is None:
            return ReleaserConfig()

    table = get_config_table(load_toml(path), path)
    try:
        return ReleaserConfig.model_validate(table)
    except ValidationError as exc:
        raise InvalidConfig(f"Invalid configuration in {path}:\n{exc}") from exc
