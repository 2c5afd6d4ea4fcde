"""Manifest and lockfile formats."""

from __future__ import annotations

from monorel.core.errors import MonorelError
from monorel.core.result import Result

from .cargo import CargoLockfile, CargoManifest, new_cargo_manifest
from .dependency import Dependency, rewrite_requirement
from .kind import PackageKind
from .npm import NpmLockfile, NpmManifest, new_npm_manifest

__all__ = [
    "CargoLockfile",
    "CargoManifest",
    "Dependency",
    "Lockfile",
    "Manifest",
    "NpmLockfile",
    "NpmManifest",
    "PackageKind",
    "new_manifest_text",
    "parse_lockfile",
    "parse_manifest",
    "rewrite_requirement",
]

type Manifest = CargoManifest | NpmManifest
type Lockfile = CargoLockfile | NpmLockfile


def parse_manifest(kind: PackageKind, text: str, path: str) -> Result[Manifest, MonorelError]:
    match kind:
        case PackageKind.CARGO:
            return CargoManifest.parse(text, path)
        case PackageKind.NPM:
            return NpmManifest.parse(text, path)


def parse_lockfile(kind: PackageKind, text: str, path: str) -> Result[Lockfile, MonorelError]:
    match kind:
        case PackageKind.CARGO:
            return CargoLockfile.parse(text, path)
        case PackageKind.NPM:
            return NpmLockfile.parse(text, path)


def new_manifest_text(kind: PackageKind, name: str, version: str) -> str:
    match kind:
        case PackageKind.CARGO:
            return new_cargo_manifest(name, version)
        case PackageKind.NPM:
            return new_npm_manifest(name, version)
