"""Project handle: one backend bound to one revision.

A Project never caches across revisions. Moving to another revision means
`project.at(revision)`, which builds a fresh handle with its own FileCache;
package handles obtained from the old project keep reading the old revision.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterator
from dataclasses import dataclass

from monorel.core.config import CONFIG_FILE, Config, load_config
from monorel.core.errors import MonorelError, not_found, parse_error
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger
from monorel.package import PackageKind
from monorel.repository.cache import FileCache
from monorel.repository.glob import match_dir
from monorel.repository.protocol import RepositoryBackend
from monorel.repository.types import Revision

from .package import Package

__all__ = ["DependencyEdge", "Discovery", "Packages", "Project"]

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """A dependency seen from inside the project.

    `internal` is True when `name` is another package of the same project.
    """

    name: str
    requirement: str | None
    section: str
    internal: bool


@dataclass(frozen=True, slots=True)
class Discovery:
    """Result of a full discovery pass.

    Packages whose manifest failed to load or parse are reported in
    `errors`; they never hide their valid siblings.
    """

    packages: tuple[Package, ...]
    errors: tuple[MonorelError, ...]

    def names(self) -> list[str]:
        return [p.name().unwrap() for p in self.packages]


class Packages:
    """Lazy, restartable sequence of package handles.

    Every iteration lists the backend again (the FileCache still serves the
    manifests). Listing failures do not stop iteration over other kinds; they
    are collected in `errors` for the last pass.
    """

    def __init__(self, project: Project) -> None:
        self._project = project
        self.errors: list[MonorelError] = []

    def __iter__(self) -> Iterator[Package]:
        self.errors = []
        for kind in PackageKind:
            yield from self._project._packages_of(kind, self.errors)


class Project:
    def __init__(
        self,
        backend: RepositoryBackend,
        revision: Revision,
        cache: FileCache | None = None,
    ) -> None:
        self.backend = backend
        self.revision = revision
        self.cache = cache if cache is not None else FileCache(backend)
        self._config: Result[Config, MonorelError] | None = None

    @classmethod
    def open(
        cls, backend: RepositoryBackend, revision: Revision | None = None
    ) -> Result[Project, MonorelError]:
        """Bind a backend at `revision` (its current revision when omitted)."""
        if revision is None:
            current = backend.current_revision()
            if isinstance(current, Err):
                return current
            revision = current.value
        log.debug("project_open", backend=backend.name, revision=revision.short())
        return Ok(cls(backend, revision))

    def at(self, revision: Revision) -> Project:
        return Project(self.backend, revision)

    def __repr__(self) -> str:
        return f"Project({self.backend.name!r} @ {self.revision.short()})"

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def read(self, path: str) -> Result[str, MonorelError]:
        return self.cache.get(path, self.revision)

    def read_optional(self, path: str) -> Result[str | None, MonorelError]:
        """Like `read`, with a missing file as Ok(None)."""
        result = self.read(path)
        match result:
            case Ok(text):
                return Ok(text)
            case Err(error) if error.kind == "not_found":
                return Ok(None)
            case Err():
                return result

    def config(self) -> Result[Config, MonorelError]:
        if self._config is not None:
            return self._config
        text = self.read_optional(CONFIG_FILE)
        if isinstance(text, Err):
            return text
        loaded = load_config(text.value, path=CONFIG_FILE)
        if isinstance(loaded, Err):
            self._config = Err(parse_error(loaded.error.message, path=loaded.error.path))
        else:
            self._config = Ok(loaded.value)
        return self._config

    def name(self) -> str:
        """Configured name, else the root manifest's package name, else the repository name."""
        config = self.config()
        if isinstance(config, Ok) and config.value.project.name:
            return config.value.project.name

        for kind in PackageKind:
            root = Package(self, kind, kind.manifest_name).name()
            if isinstance(root, Ok):
                return root.value

        return self.backend.name.rstrip("/").rsplit("/", 1)[-1]

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def packages(self) -> Packages:
        return Packages(self)

    def _packages_of(self, kind: PackageKind, errors: list[MonorelError]) -> Iterator[Package]:
        listed = self.backend.list_files(kind.manifest_name, self.revision).collect()
        if isinstance(listed, Err):
            log.warning("listing_failed", kind=kind.value, error=listed.error.message)
            errors.append(listed.error)
            return
        paths = [p for p in listed.value if not kind.is_ignored(p)]

        root_path = kind.manifest_name
        if root_path not in paths:
            yield from (Package(self, kind, p) for p in paths)
            return

        root = Package(self, kind, root_path)
        manifest = root.manifest()
        if isinstance(manifest, Err) or not manifest.value.is_workspace:
            # A broken root surfaces its own error; its siblings are still listed.
            yield from (Package(self, kind, p) for p in paths)
            return

        workspace = manifest.value
        if not workspace.is_virtual and (workspace.version is not None or workspace.inherits_version):
            yield Package(self, kind, root_path, workspace_root=root_path)

        members = workspace.members()
        excludes = workspace.excludes()
        for path in paths:
            if path == root_path:
                continue
            directory = posixpath.dirname(path)
            if not any(match_dir(m, directory) for m in members):
                continue
            if any(match_dir(e, directory) for e in excludes):
                continue
            yield Package(self, kind, path, workspace_root=root_path)

    def discover(self) -> Discovery:
        """Load every package, separating usable ones from isolated errors.

        Manifests without a package of their own (virtual workspace roots,
        nameless package.json files) are skipped silently.
        """
        packages: list[Package] = []
        errors: list[MonorelError] = []
        listing = self.packages()
        for package in listing:
            manifest = package.manifest()
            if isinstance(manifest, Err):
                errors.append(manifest.error)
                continue
            if manifest.value.is_virtual:
                continue
            version = package.version()
            if isinstance(version, Err):
                errors.append(version.error)
                continue
            packages.append(package)
        errors.extend(listing.errors)

        log.debug("discovered", packages=len(packages), errors=len(errors))
        return Discovery(packages=tuple(packages), errors=tuple(errors))

    def get_package(self, name: str) -> Result[Package, MonorelError]:
        listing = self.packages()
        for package in listing:
            found = package.name()
            if isinstance(found, Ok) and found.value == name:
                return Ok(package)
        if listing.errors:
            return Err(listing.errors[0])
        return Err(not_found(f"package {name} not found", hint=f"in {self.backend.name}"))

    # -------------------------------------------------------------------------
    # Dependency graph
    # -------------------------------------------------------------------------

    def _package_names(self) -> set[str]:
        return set(self.discover().names())

    def dependency_edges(self, package: Package) -> Result[list[DependencyEdge], MonorelError]:
        deps = package.dependencies()
        if isinstance(deps, Err):
            return deps
        internal = self._package_names()
        return Ok(
            [
                DependencyEdge(
                    name=dep.name,
                    requirement=dep.requirement,
                    section=dep.section,
                    internal=dep.name in internal,
                )
                for dep in deps.value
            ]
        )

    def dependents(self, name: str) -> list[Package]:
        """Packages of this project that declare a dependency on `name`."""
        found: list[Package] = []
        for package in self.discover().packages:
            if package.name().unwrap() == name:
                continue
            deps = package.dependencies()
            if isinstance(deps, Ok) and any(d.name == name for d in deps.value):
                found.append(package)
        return found
