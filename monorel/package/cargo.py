"""Cargo.toml and Cargo.lock.

Documents are held as tomlkit trees so edits keep comments, key order and
formatting of everything they do not touch. Edits return new objects; the
parsed original stays unchanged for other readers of the same cache entry.

Version inheritance (`version.workspace = true`) resolves against the
workspace root's `[workspace.package].version`.
"""

from __future__ import annotations

from collections.abc import Iterator

import tomlkit
import tomlkit.exceptions
from tomlkit.toml_document import TOMLDocument

from monorel.core.errors import MonorelError, parse_error
from monorel.core.result import Err, Ok, Result
from monorel.core.structured import StrDict, as_obj_list, as_str_dict, get_bool, get_str, get_table

from .dependency import Dependency, rewrite_requirement
from .kind import PackageKind

__all__ = ["CargoLockfile", "CargoManifest", "new_cargo_manifest"]

_DEP_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def _parse_toml(text: str, path: str) -> Result[TOMLDocument, MonorelError]:
    try:
        return Ok(tomlkit.parse(text))
    except tomlkit.exceptions.TOMLKitError as e:
        return Err(parse_error("invalid TOML", path=path, hint=str(e)))


def _plain(doc: TOMLDocument) -> StrDict:
    return as_str_dict(doc.unwrap()) or {}


class CargoManifest:
    kind = PackageKind.CARGO

    def __init__(self, doc: TOMLDocument, path: str) -> None:
        self._doc = doc
        self._data = _plain(doc)
        self.path = path

    @classmethod
    def parse(cls, text: str, path: str) -> Result[CargoManifest, MonorelError]:
        doc = _parse_toml(text, path)
        if isinstance(doc, Err):
            return doc
        manifest = cls(doc.value, path)

        package = manifest._data.get("package")
        workspace = manifest._data.get("workspace")
        if package is None and workspace is None:
            return Err(parse_error("manifest has neither [package] nor [workspace]", path=path))
        if package is not None:
            table = as_str_dict(package)
            if table is None or get_str(table, "name") is None:
                return Err(parse_error("[package] has no name", path=path))
            version = table.get("version")
            if version is not None and not isinstance(version, str) and not manifest.inherits_version:
                return Err(parse_error("[package] version must be a string", path=path))
        return Ok(manifest)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def _package(self) -> StrDict:
        return get_table(self._data, "package") or {}

    @property
    def _workspace(self) -> StrDict:
        return get_table(self._data, "workspace") or {}

    @property
    def name(self) -> str | None:
        return get_str(self._package, "name")

    @property
    def inherits_version(self) -> bool:
        version = get_table(self._package, "version")
        return version is not None and get_bool(version, "workspace") is True

    @property
    def version(self) -> str | None:
        """Declared version; None when missing or inherited from the workspace."""
        return get_str(self._package, "version")

    @property
    def workspace_version(self) -> str | None:
        return get_str(get_table(self._workspace, "package") or {}, "version")

    @property
    def is_workspace(self) -> bool:
        return "workspace" in self._data

    @property
    def is_virtual(self) -> bool:
        """A workspace root with no package of its own."""
        return "package" not in self._data

    def members(self) -> list[str]:
        items = as_obj_list(self._workspace.get("members")) or []
        return [m for m in items if isinstance(m, str)]

    def excludes(self) -> list[str]:
        items = as_obj_list(self._workspace.get("exclude")) or []
        return [m for m in items if isinstance(m, str)]

    def _dependency_tables(self) -> Iterator[tuple[str, tuple[str, ...], StrDict]]:
        for key in _DEP_TABLES:
            table = get_table(self._data, key)
            if table is not None:
                yield key, (key,), table

        for target_name, target_obj in (get_table(self._data, "target") or {}).items():
            target = as_str_dict(target_obj) or {}
            for key in _DEP_TABLES:
                table = get_table(target, key)
                if table is not None:
                    yield f"target.{target_name}.{key}", ("target", target_name, key), table

        table = get_table(self._workspace, "dependencies")
        if table is not None:
            yield "workspace.dependencies", ("workspace", "dependencies"), table

    def dependencies(self) -> list[Dependency]:
        deps: list[Dependency] = []
        for section, _keys, table in self._dependency_tables():
            for key, value in table.items():
                if isinstance(value, str):
                    deps.append(Dependency(name=key, requirement=value, section=section))
                    continue
                entry = as_str_dict(value)
                if entry is None:
                    continue
                deps.append(
                    Dependency(
                        name=get_str(entry, "package") or key,
                        requirement=get_str(entry, "version"),
                        section=section,
                        path=get_str(entry, "path"),
                        workspace=get_bool(entry, "workspace") is True,
                    )
                )
        return deps

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def _copy(self) -> TOMLDocument:
        return tomlkit.parse(tomlkit.dumps(self._doc))

    def with_version(self, version: str) -> CargoManifest:
        """Set `[package].version`; inherited versions are set on the workspace root."""
        doc = self._copy()
        doc["package"]["version"] = version  # type: ignore[index]
        return CargoManifest(doc, self.path)

    def with_workspace_version(self, version: str) -> CargoManifest:
        doc = self._copy()
        doc["workspace"]["package"]["version"] = version  # type: ignore[index]
        return CargoManifest(doc, self.path)

    def with_dependency_version(self, name: str, version: str) -> tuple[CargoManifest, bool]:
        """Point every requirement on `name` at `version`.

        Returns the edited manifest and whether anything changed.
        """
        doc = self._copy()
        changed = False
        for _section, keys, table in self._dependency_tables():
            for key, value in table.items():
                entry = as_str_dict(value)
                dep_name = (get_str(entry, "package") if entry else None) or key
                if dep_name != name:
                    continue

                container = doc
                for part in keys:
                    container = container[part]  # type: ignore[assignment]

                if isinstance(value, str):
                    updated = rewrite_requirement(value, version)
                    if updated is not None and updated != value:
                        container[key] = updated
                        changed = True
                elif entry is not None and isinstance(entry.get("version"), str):
                    current = str(entry["version"])
                    updated = rewrite_requirement(current, version)
                    if updated is not None and updated != current:
                        container[key]["version"] = updated  # type: ignore[index]
                        changed = True

        return CargoManifest(doc, self.path), changed

    def render(self) -> str:
        return tomlkit.dumps(self._doc)


def new_cargo_manifest(name: str, version: str) -> str:
    doc = tomlkit.document()
    package = tomlkit.table()
    package.add("name", name)
    package.add("version", version)
    package.add("edition", "2021")
    doc.add("package", package)
    doc.add(tomlkit.nl())
    doc.add("dependencies", tomlkit.table())
    return tomlkit.dumps(doc)


class CargoLockfile:
    kind = PackageKind.CARGO

    def __init__(self, doc: TOMLDocument, path: str) -> None:
        self._doc = doc
        self._data = _plain(doc)
        self.path = path

    @classmethod
    def parse(cls, text: str, path: str) -> Result[CargoLockfile, MonorelError]:
        doc = _parse_toml(text, path)
        if isinstance(doc, Err):
            return doc
        lockfile = cls(doc.value, path)
        if "package" in lockfile._data and as_obj_list(lockfile._data["package"]) is None:
            return Err(parse_error("[[package]] must be an array of tables", path=path))
        return Ok(lockfile)

    def _local_entries(self) -> Iterator[tuple[int, StrDict]]:
        for index, obj in enumerate(as_obj_list(self._data.get("package")) or []):
            entry = as_str_dict(obj)
            # Registry and git packages carry a source; workspace members do not.
            if entry is not None and "source" not in entry:
                yield index, entry

    def package_version(self, name: str, directory: str = "") -> str | None:
        for _index, entry in self._local_entries():
            if get_str(entry, "name") == name:
                return get_str(entry, "version")
        return None

    def with_package_version(
        self, name: str, version: str, directory: str = ""
    ) -> tuple[CargoLockfile, bool]:
        doc = tomlkit.parse(tomlkit.dumps(self._doc))
        changed = False
        for index, entry in self._local_entries():
            if get_str(entry, "name") == name and get_str(entry, "version") != version:
                doc["package"][index]["version"] = version  # type: ignore[index]
                changed = True
        return CargoLockfile(doc, self.path), changed

    def render(self) -> str:
        return tomlkit.dumps(self._doc)
