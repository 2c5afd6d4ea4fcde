"""Typed configuration loading and access.

Projects may carry a `monorel.toml` at the repository root:

    [project]
    name = "ploys"
    repository = "ploys/ploys"

    [release]
    branch-prefix = "release"
    max-retries = 3
    changelog = "CHANGELOG.md"
    update-dependents = true
    update-lockfile = true

    [release.bump]
    Deprecated = "patch"

The file is read through the repository backend at the project's revision,
so this module only parses text; it never touches the filesystem.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_int, get_str, get_table

__all__ = [
    "CONFIG_FILE",
    "Config",
    "ConfigError",
    "ProjectConfig",
    "ReleaseConfig",
    "load_config",
]

CONFIG_FILE = "monorel.toml"

DEFAULT_BRANCH_PREFIX = "release"
DEFAULT_MAX_RETRIES = 3
DEFAULT_CHANGELOG = "CHANGELOG.md"

_BUMP_KINDS = ("major", "minor", "patch")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be parsed."""

    message: str
    path: str | None = None


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Project identity overrides."""

    name: str | None = None
    repository: str | None = None


def _empty_bump_map() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release request behaviour.

    `bump` maps changelog category labels to bump kinds and overrides the
    default inference policy for those categories only.
    """

    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    max_retries: int = DEFAULT_MAX_RETRIES
    changelog: str = DEFAULT_CHANGELOG
    update_dependents: bool = True
    update_lockfile: bool = True
    bump: dict[str, str] = field(default_factory=_empty_bump_map)


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Unknown keys are ignored; wrongly-typed values fall back to defaults.
        """
        project: StrDict = get_table(data, "project") or {}
        release: StrDict = get_table(data, "release") or {}
        bump: StrDict = get_table(release, "bump") or {}

        max_retries = get_int(release, "max-retries")
        if max_retries is None or max_retries < 1:
            max_retries = DEFAULT_MAX_RETRIES

        update_dependents = get_bool(release, "update-dependents")
        update_lockfile = get_bool(release, "update-lockfile")

        return cls(
            project=ProjectConfig(
                name=get_str(project, "name"),
                repository=get_str(project, "repository"),
            ),
            release=ReleaseConfig(
                branch_prefix=(get_str(release, "branch-prefix") or DEFAULT_BRANCH_PREFIX).strip(
                    "/"
                ),
                max_retries=max_retries,
                changelog=get_str(release, "changelog") or DEFAULT_CHANGELOG,
                update_dependents=True if update_dependents is None else update_dependents,
                update_lockfile=True if update_lockfile is None else update_lockfile,
                bump={
                    label: kind
                    for label, kind in ((k, get_str(bump, k)) for k in bump)
                    if kind in _BUMP_KINDS
                },
            ),
        )


def load_config(text: str | None, *, path: str = CONFIG_FILE) -> Result[Config, ConfigError]:
    """Parse configuration text.

    Args:
        text: Raw TOML, or None when the project has no config file.
        path: Repository path the text came from (for error messages).

    Returns:
        Ok(Config) on success (defaults when text is None), Err(ConfigError)
        on invalid TOML.
    """
    if text is None:
        return Ok(Config())

    import tomllib

    try:
        data_obj: object = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(Config.from_dict(data))
