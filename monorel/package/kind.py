from __future__ import annotations

import posixpath
from enum import StrEnum

__all__ = ["PackageKind"]


class PackageKind(StrEnum):
    """Supported manifest formats."""

    CARGO = "cargo"
    NPM = "npm"

    @property
    def manifest_name(self) -> str:
        match self:
            case PackageKind.CARGO:
                return "Cargo.toml"
            case PackageKind.NPM:
                return "package.json"

    @property
    def lockfile_name(self) -> str:
        match self:
            case PackageKind.CARGO:
                return "Cargo.lock"
            case PackageKind.NPM:
                return "package-lock.json"

    @property
    def ignored_dirs(self) -> frozenset[str]:
        """Directories holding build output or vendored third-party packages."""
        match self:
            case PackageKind.CARGO:
                return frozenset({"target"})
            case PackageKind.NPM:
                return frozenset({"node_modules"})

    def is_ignored(self, path: str) -> bool:
        parts = path.split("/")[:-1]
        return any(part in self.ignored_dirs for part in parts)

    @classmethod
    def for_manifest(cls, path: str) -> PackageKind | None:
        filename = posixpath.basename(path)
        for kind in cls:
            if kind.manifest_name == filename:
                return kind
        return None
