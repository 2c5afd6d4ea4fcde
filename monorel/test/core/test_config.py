"""Tests for monorel.core.config module."""

from __future__ import annotations

import pytest

from monorel.core.config import (
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_CHANGELOG,
    DEFAULT_MAX_RETRIES,
    Config,
    ConfigError,
    ReleaseConfig,
    load_config,
)
from monorel.core.result import Err, Ok


class TestDefaults:
    """Config defaults apply when there is no monorel.toml."""

    def test_none_text_gives_defaults(self) -> None:
        result = load_config(None)
        assert isinstance(result, Ok)
        config = result.value
        assert config.project.name is None
        assert config.release.branch_prefix == DEFAULT_BRANCH_PREFIX
        assert config.release.max_retries == DEFAULT_MAX_RETRIES
        assert config.release.changelog == DEFAULT_CHANGELOG
        assert config.release.update_dependents is True
        assert config.release.update_lockfile is True
        assert config.release.bump == {}

    def test_frozen(self) -> None:
        config = ReleaseConfig()
        with pytest.raises(AttributeError):
            config.max_retries = 9  # type: ignore[misc]


class TestLoadConfig:
    """Parsing monorel.toml text."""

    def test_full(self) -> None:
        text = """
[project]
name = "ploys"
repository = "ploys/ploys"

[release]
branch-prefix = "releases/"
max-retries = 5
changelog = "CHANGES.md"
update-dependents = false
update-lockfile = false

[release.bump]
Deprecated = "patch"
Security = "bogus"
"""
        result = load_config(text)
        assert isinstance(result, Ok)
        config = result.value
        assert config.project.name == "ploys"
        assert config.project.repository == "ploys/ploys"
        assert config.release.branch_prefix == "releases"
        assert config.release.max_retries == 5
        assert config.release.changelog == "CHANGES.md"
        assert config.release.update_dependents is False
        assert config.release.update_lockfile is False
        assert config.release.bump == {"Deprecated": "patch"}

    def test_invalid_toml(self) -> None:
        result = load_config("[release\n", path="monorel.toml")
        assert isinstance(result, Err)
        assert isinstance(result.error, ConfigError)
        assert result.error.path == "monorel.toml"
        assert "Invalid TOML" in result.error.message

    def test_wrong_types_fall_back(self) -> None:
        config = Config.from_dict({"release": {"max-retries": "3", "changelog": 1}})
        assert config.release.max_retries == DEFAULT_MAX_RETRIES
        assert config.release.changelog == DEFAULT_CHANGELOG

    def test_non_positive_retries_fall_back(self) -> None:
        config = Config.from_dict({"release": {"max-retries": 0}})
        assert config.release.max_retries == DEFAULT_MAX_RETRIES
