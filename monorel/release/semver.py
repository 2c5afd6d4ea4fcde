from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from enum import StrEnum

from monorel.core.errors import MonorelError, invalid_bump
from monorel.core.result import Err, Ok, Result

__all__ = ["Bump", "SemVer", "next_version", "parse_version"]

_SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Ladder order: a later stage may follow an earlier one, never the reverse.
_PRERELEASE_STAGES = ("alpha", "beta", "rc")


class Bump(StrEnum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    RC = "rc"
    BETA = "beta"
    ALPHA = "alpha"

    @property
    def is_prerelease(self) -> bool:
        return self in (Bump.RC, Bump.BETA, Bump.ALPHA)

    @classmethod
    def parse(cls, text: str) -> Bump | None:
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None


@functools.total_ordering
@dataclass(frozen=True, slots=True)
class SemVer:
    """A semantic version (2.0.0). Ordering follows semver precedence."""

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre)

    @property
    def core(self) -> SemVer:
        return SemVer(self.major, self.minor, self.patch)

    def prerelease_stage(self) -> tuple[str, int] | None:
        """Return ("rc", 2) for `-rc.2`, or None for stable/unrecognised tags."""
        if not self.pre or self.pre[0] not in _PRERELEASE_STAGES:
            return None
        counter = 0
        if len(self.pre) > 1 and self.pre[1].isdigit():
            counter = int(self.pre[1])
        return (self.pre[0], counter)

    def _precedence(self) -> tuple[object, ...]:
        # A version without prerelease ranks above any prerelease of the same core.
        if not self.pre:
            return (self.major, self.minor, self.patch, 1, ())
        ids = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.pre)
        return (self.major, self.minor, self.patch, 0, ids)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence() < other._precedence()

    def same_precedence(self, other: SemVer) -> bool:
        return self._precedence() == other._precedence()

    def bump(self, kind: Bump) -> Result[SemVer, MonorelError]:
        match kind:
            case Bump.MAJOR:
                return Ok(SemVer(self.major + 1, 0, 0))
            case Bump.MINOR:
                return Ok(SemVer(self.major, self.minor + 1, 0))
            case Bump.PATCH:
                if self.pre:
                    return Ok(self.core)
                return Ok(SemVer(self.major, self.minor, self.patch + 1))
            case Bump.RC | Bump.BETA | Bump.ALPHA:
                return self._bump_prerelease(kind.value)
            case _:
                raise AssertionError(f"unexpected bump kind: {kind}")

    def _bump_prerelease(self, stage: str) -> Result[SemVer, MonorelError]:
        current = self.prerelease_stage()
        if current is None and self.pre:
            return Ok(SemVer(self.major, self.minor, self.patch, (stage, "1")))
        if current is None:
            if self.major == 0:
                return Ok(SemVer(0, self.minor + 1, 0, (stage, "1")))
            return Ok(SemVer(self.major + 1, 0, 0, (stage, "1")))

        current_stage, counter = current
        if current_stage == stage:
            return Ok(SemVer(self.major, self.minor, self.patch, (stage, str(counter + 1))))
        if _PRERELEASE_STAGES.index(stage) < _PRERELEASE_STAGES.index(current_stage):
            return Err(
                invalid_bump(
                    f"cannot bump {self} to {stage}",
                    hint=f"{stage} cannot follow {current_stage}",
                )
            )
        return Ok(SemVer(self.major, self.minor, self.patch, (stage, "1")))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def parse_version(text: str) -> SemVer | None:
    """Parse `1.2.3`, `1.2.3-rc.1+build.5` (a leading `v` is accepted)."""
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    pre = tuple(m.group(4).split(".")) if m.group(4) else ()
    build = tuple(m.group(5).split(".")) if m.group(5) else ()
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre, build)


def next_version(version: str | SemVer, kind: Bump | str) -> Result[SemVer, MonorelError]:
    """Apply a bump to a version.

    Example:
        next_version("1.2.3", "minor")  -> Ok(SemVer 1.3.0)
        next_version("1.0.0-rc.1", "beta")  -> Err(invalid_bump)
    """
    parsed = version if isinstance(version, SemVer) else parse_version(version)
    if parsed is None:
        return Err(MonorelError(kind="invalid_input", message=f"invalid version: {version}"))
    bump = kind if isinstance(kind, Bump) else Bump.parse(kind)
    if bump is None:
        return Err(MonorelError(kind="invalid_input", message=f"unknown bump kind: {kind}"))
    return parsed.bump(bump)
