"""Lazy package handles.

A Package holds a kind and a manifest path. Everything else (name, version,
dependencies, lockfile, changelog) is read through the project's FileCache
on first access and memoized on the handle.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterator
from typing import TYPE_CHECKING

from monorel.changelog import Changelog, parse_changelog
from monorel.core.errors import MonorelError, parse_error
from monorel.core.result import Err, Ok, Result
from monorel.package import Dependency, Lockfile, Manifest, PackageKind, parse_lockfile, parse_manifest
from monorel.release.semver import SemVer, parse_version

if TYPE_CHECKING:
    from .project import Project

__all__ = ["Package"]


def _ancestors(directory: str) -> Iterator[str]:
    """Yield `a/b`, `a`, `` for directory `a/b`."""
    current = directory.strip("/")
    while True:
        yield current
        if not current:
            return
        current = posixpath.dirname(current)


class Package:
    def __init__(
        self,
        project: Project,
        kind: PackageKind,
        manifest_path: str,
        *,
        workspace_root: str | None = None,
    ) -> None:
        self.project = project
        self.kind = kind
        self.manifest_path = manifest_path.strip("/")
        self.workspace_root = workspace_root
        self._manifest: Result[Manifest, MonorelError] | None = None
        self._lockfile_path: Result[str | None, MonorelError] | None = None

    def __repr__(self) -> str:
        return f"Package({self.kind}, {self.manifest_path!r})"

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.manifest_path)

    # -------------------------------------------------------------------------
    # Manifest
    # -------------------------------------------------------------------------

    def manifest(self) -> Result[Manifest, MonorelError]:
        if self._manifest is None:
            text = self.project.read(self.manifest_path)
            if isinstance(text, Err):
                # Transient failures are not memoized; the next call retries.
                return text
            self._manifest = parse_manifest(self.kind, text.value, self.manifest_path)
        return self._manifest

    def name(self) -> Result[str, MonorelError]:
        manifest = self.manifest()
        if isinstance(manifest, Err):
            return manifest
        if manifest.value.name is None:
            return Err(parse_error("manifest declares no package name", path=self.manifest_path))
        return Ok(manifest.value.name)

    @property
    def inherits_version(self) -> bool:
        manifest = self.manifest()
        return isinstance(manifest, Ok) and manifest.value.inherits_version

    def version_source(self) -> str:
        """Path of the manifest that holds this package's version."""
        if self.inherits_version and self.workspace_root is not None:
            return self.workspace_root
        return self.manifest_path

    def raw_version(self) -> Result[str, MonorelError]:
        manifest = self.manifest()
        if isinstance(manifest, Err):
            return manifest

        if manifest.value.inherits_version:
            if self.workspace_root is None:
                return Err(
                    parse_error(
                        "version inherited from a workspace that was not found",
                        path=self.manifest_path,
                    )
                )
            root_text = self.project.read(self.workspace_root)
            if isinstance(root_text, Err):
                return root_text
            root = parse_manifest(self.kind, root_text.value, self.workspace_root)
            if isinstance(root, Err):
                return root
            version = root.value.workspace_version
        else:
            version = manifest.value.version

        if not isinstance(version, str):
            return Err(parse_error("manifest declares no version", path=self.version_source()))
        return Ok(version)

    def version(self) -> Result[SemVer, MonorelError]:
        raw = self.raw_version()
        if isinstance(raw, Err):
            return raw
        parsed = parse_version(raw.value)
        if parsed is None or raw.value.startswith("v"):
            return Err(
                parse_error(f"invalid semantic version: {raw.value}", path=self.version_source())
            )
        return Ok(parsed)

    def dependencies(self) -> Result[list[Dependency], MonorelError]:
        manifest = self.manifest()
        if isinstance(manifest, Err):
            return manifest
        return Ok(manifest.value.dependencies())

    def is_primary(self) -> bool:
        """True when the package shares the project's name."""
        name = self.name()
        return isinstance(name, Ok) and name.value == self.project.name()

    # -------------------------------------------------------------------------
    # Lockfile / changelog lookups
    # -------------------------------------------------------------------------

    def lockfile_path(self) -> Result[str | None, MonorelError]:
        """Nearest lockfile in this package's directory or an ancestor."""
        if self._lockfile_path is not None:
            return self._lockfile_path
        for directory in _ancestors(self.directory):
            candidate = posixpath.join(directory, self.kind.lockfile_name)
            found = self.project.read(candidate)
            match found:
                case Ok():
                    self._lockfile_path = Ok(candidate)
                    return self._lockfile_path
                case Err(error) if error.kind == "not_found":
                    continue
                case Err():
                    return found
        self._lockfile_path = Ok(None)
        return self._lockfile_path

    def lockfile(self) -> Result[Lockfile | None, MonorelError]:
        path = self.lockfile_path()
        if isinstance(path, Err):
            return path
        if path.value is None:
            return Ok(None)
        text = self.project.read(path.value)
        if isinstance(text, Err):
            return text
        return parse_lockfile(self.kind, text.value, path.value)

    def lockfile_directory(self) -> str:
        """This package's directory relative to its lockfile's directory."""
        path = self.lockfile_path()
        if isinstance(path, Err) or path.value is None:
            return ""
        base = posixpath.dirname(path.value)
        if not base:
            return self.directory
        if self.directory == base:
            return ""
        return posixpath.relpath(self.directory, base)

    @property
    def changelog_path(self) -> str:
        config = self.project.config()
        name = config.value.release.changelog if isinstance(config, Ok) else "CHANGELOG.md"
        return posixpath.join(self.directory, name)

    def changelog(self) -> Result[Changelog | None, MonorelError]:
        """Parsed changelog, or None when the package has none."""
        text = self.project.read(self.changelog_path)
        match text:
            case Ok(value):
                return Ok(parse_changelog(value))
            case Err(error) if error.kind == "not_found":
                return Ok(None)
            case Err():
                return text
