from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["Dependency", "rewrite_requirement"]

_OPERATOR_RE = re.compile(r"^\s*((?:\^|~|=|>=|<=|>|<)?\s*)v?\d")


@dataclass(frozen=True, slots=True)
class Dependency:
    """A dependency declared by a manifest.

    Attributes:
        name: Package name as the registry knows it.
        requirement: Version requirement, None for path/workspace-only entries.
        section: Table the entry came from (`dependencies`, `devDependencies`,
            `target.'cfg(unix)'.dependencies`, ...).
        path: Local path for path dependencies.
        workspace: True for `{ workspace = true }` (Cargo) or `workspace:` (npm).
    """

    name: str
    requirement: str | None
    section: str
    path: str | None = None
    workspace: bool = False

    @property
    def is_dev(self) -> bool:
        return self.section.endswith(("dev-dependencies", "devDependencies"))


def rewrite_requirement(requirement: str, version: str) -> str | None:
    """Point a requirement at a new version, keeping its operator.

    Returns None when the requirement is not a single version (ranges,
    wildcards, `workspace:`/`file:` specifiers), which are left untouched.

    Example:
        rewrite_requirement("^0.1.0", "0.2.0")  -> "^0.2.0"
        rewrite_requirement("=1.0", "1.1.0")    -> "=1.1.0"
    """
    if any(token in requirement for token in (",", "||", " - ", "*", ":", ".x", ".X")):
        return None
    m = _OPERATOR_RE.match(requirement)
    if m is None:
        return None
    return f"{m.group(1).strip()}{version}"
