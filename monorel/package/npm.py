"""package.json and package-lock.json.

JSON objects keep key order through json.loads/json.dumps; indentation and
the trailing newline are detected from the original text and reused.
"""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Iterator

from monorel.core.errors import MonorelError, parse_error
from monorel.core.result import Err, Ok, Result
from monorel.core.structured import StrDict, as_str_dict, get_str, get_str_list, get_table

from .dependency import Dependency, rewrite_requirement
from .kind import PackageKind

__all__ = ["NpmLockfile", "NpmManifest", "new_npm_manifest"]

_DEP_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")
_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)


class _JsonDocument:
    def __init__(self, data: StrDict, path: str, *, indent: str = "  ", newline: bool = True) -> None:
        self._data = data
        self.path = path
        self._indent = indent
        self._newline = newline

    @staticmethod
    def _load(text: str, path: str) -> Result[tuple[StrDict, str, bool], MonorelError]:
        try:
            obj: object = json.loads(text)
        except json.JSONDecodeError as e:
            return Err(parse_error("invalid JSON", path=path, hint=str(e)))
        data = as_str_dict(obj)
        if data is None:
            return Err(parse_error("expected a JSON object", path=path))
        m = _INDENT_RE.search(text)
        return Ok((data, m.group(1) if m else "  ", text.endswith("\n")))

    def _copy_data(self) -> StrDict:
        return copy.deepcopy(self._data)

    def render(self) -> str:
        text = json.dumps(self._data, indent=self._indent, ensure_ascii=False)
        return text + "\n" if self._newline else text


class NpmManifest(_JsonDocument):
    kind = PackageKind.NPM

    @classmethod
    def parse(cls, text: str, path: str) -> Result[NpmManifest, MonorelError]:
        loaded = cls._load(text, path)
        if isinstance(loaded, Err):
            return loaded
        data, indent, newline = loaded.value
        manifest = cls(data, path, indent=indent, newline=newline)
        if "name" in data and get_str(data, "name") is None:
            return Err(parse_error("name must be a non-empty string", path=path))
        if "version" in data and not isinstance(data["version"], str):
            return Err(parse_error("version must be a string", path=path))
        return Ok(manifest)

    @property
    def name(self) -> str | None:
        return get_str(self._data, "name")

    @property
    def version(self) -> str | None:
        return get_str(self._data, "version")

    @property
    def inherits_version(self) -> bool:
        return False

    @property
    def workspace_version(self) -> str | None:
        return None

    @property
    def is_workspace(self) -> bool:
        return "workspaces" in self._data

    @property
    def is_virtual(self) -> bool:
        return self.name is None

    def _workspace_patterns(self) -> list[str]:
        table = get_table(self._data, "workspaces")
        if table is not None:
            return get_str_list(table, "packages")
        return get_str_list(self._data, "workspaces")

    def members(self) -> list[str]:
        return [p for p in self._workspace_patterns() if not p.startswith("!")]

    def excludes(self) -> list[str]:
        return [p[1:] for p in self._workspace_patterns() if p.startswith("!")]

    def _sections(self) -> Iterator[tuple[str, StrDict]]:
        for section in _DEP_SECTIONS:
            table = get_table(self._data, section)
            if table is not None:
                yield section, table

    def dependencies(self) -> list[Dependency]:
        deps: list[Dependency] = []
        for section, table in self._sections():
            for name, value in table.items():
                if not isinstance(value, str):
                    continue
                deps.append(
                    Dependency(
                        name=name,
                        requirement=None if value.startswith(("workspace:", "file:")) else value,
                        section=section,
                        path=value[5:] if value.startswith("file:") else None,
                        workspace=value.startswith("workspace:"),
                    )
                )
        return deps

    def _derive(self, data: StrDict) -> NpmManifest:
        return NpmManifest(data, self.path, indent=self._indent, newline=self._newline)

    def with_version(self, version: str) -> NpmManifest:
        data = self._copy_data()
        data["version"] = version
        return self._derive(data)

    def with_dependency_version(self, name: str, version: str) -> tuple[NpmManifest, bool]:
        data = self._copy_data()
        changed = False
        for section in _DEP_SECTIONS:
            table = get_table(data, section)
            if table is None or not isinstance(table.get(name), str):
                continue
            current = str(table[name])
            updated = rewrite_requirement(current, version)
            if updated is not None and updated != current:
                table[name] = updated
                changed = True
        return self._derive(data), changed


def new_npm_manifest(name: str, version: str) -> str:
    return json.dumps({"name": name, "version": version}, indent=2) + "\n"


class NpmLockfile(_JsonDocument):
    """package-lock.json (lockfile versions 2 and 3).

    Workspace packages are keyed by their directory relative to the lockfile
    under `packages`; the root package is the `""` key.
    """

    kind = PackageKind.NPM

    @classmethod
    def parse(cls, text: str, path: str) -> Result[NpmLockfile, MonorelError]:
        loaded = cls._load(text, path)
        if isinstance(loaded, Err):
            return loaded
        data, indent, newline = loaded.value
        if "packages" in data and get_table(data, "packages") is None:
            return Err(parse_error("packages must be an object", path=path))
        return Ok(cls(data, path, indent=indent, newline=newline))

    def _entry(self, data: StrDict, directory: str) -> StrDict | None:
        packages = get_table(data, "packages") or {}
        return as_str_dict(packages.get(directory.strip("/")))

    def package_version(self, name: str, directory: str = "") -> str | None:
        entry = self._entry(self._data, directory)
        if entry is not None and (directory or get_str(entry, "name") in (None, name)):
            return get_str(entry, "version")
        if not directory and get_str(self._data, "name") == name:
            return get_str(self._data, "version")
        return None

    def with_package_version(
        self, name: str, version: str, directory: str = ""
    ) -> tuple[NpmLockfile, bool]:
        data = self._copy_data()
        changed = False

        if not directory and get_str(data, "name") == name and data.get("version") != version:
            data["version"] = version
            changed = True

        entry = self._entry(data, directory)
        if entry is not None and "version" in entry and entry["version"] != version:
            if directory or get_str(entry, "name") in (None, name):
                entry["version"] = version
                changed = True

        return NpmLockfile(data, self.path, indent=self._indent, newline=self._newline), changed
