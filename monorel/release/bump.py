"""Bump inference from unreleased changelog categories.

The category -> bump mapping is a policy, not a law: projects override it per
category in `[release.bump]`. The highest bump among the categories present
wins; pre-1.0 packages never get an inferred major bump.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from monorel.changelog.model import Category
from monorel.core.errors import MonorelError, invalid_bump
from monorel.core.result import Err, Ok, Result

from .semver import Bump, SemVer, parse_version

__all__ = ["DEFAULT_CATEGORY_BUMPS", "BumpPolicy", "resolve_target"]

DEFAULT_CATEGORY_BUMPS: Mapping[str, Bump] = {
    Category.REMOVED.value: Bump.MAJOR,
    Category.SECURITY.value: Bump.MAJOR,
    Category.ADDED.value: Bump.MINOR,
    Category.DEPRECATED.value: Bump.MINOR,
    Category.CHANGED.value: Bump.PATCH,
    Category.FIXED.value: Bump.PATCH,
}

_RANK = {Bump.PATCH: 0, Bump.MINOR: 1, Bump.MAJOR: 2}


def _default_bumps() -> dict[str, Bump]:
    return dict(DEFAULT_CATEGORY_BUMPS)


@dataclass(frozen=True, slots=True)
class BumpPolicy:
    """Maps changelog section labels to bump kinds.

    Labels outside the mapping (passthrough headings) count as `fallback`.
    """

    category_bumps: dict[str, Bump] = field(default_factory=_default_bumps)
    fallback: Bump = Bump.PATCH

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, str]) -> BumpPolicy:
        """Default policy with `[release.bump]` entries applied on top."""
        bumps = _default_bumps()
        for label, kind in overrides.items():
            bump = Bump.parse(kind)
            if bump is None or bump.is_prerelease:
                continue
            category = Category.parse(label)
            bumps[category.value if category is not None else label] = bump
        return cls(category_bumps=bumps)

    def bump_for(self, label: Category | str) -> Bump:
        if isinstance(label, Category):
            key = label.value
        else:
            category = Category.parse(label)
            key = category.value if category is not None else label
        return self.category_bumps.get(key, self.fallback)

    def infer(self, current: SemVer, labels: Iterable[Category | str]) -> Bump | None:
        """Dominant bump for the given labels, or None when there are none."""
        bumps = [self.bump_for(label) for label in labels]
        if not bumps:
            return None
        bump = max(bumps, key=lambda b: _RANK[b])
        if bump is Bump.MAJOR and current.major == 0:
            return Bump.MINOR
        return bump


def resolve_target(
    current: SemVer,
    request: Bump | str | None,
    labels: Iterable[Category | str],
    policy: BumpPolicy,
) -> Result[SemVer, MonorelError]:
    """Compute the release version.

    Args:
        current: The package's current version.
        request: A bump kind, an explicit version, or None to infer the bump
            from the unreleased change labels.
        labels: Section labels of the unreleased changes.
        policy: Inference policy.

    Returns:
        Ok(version), or Err(invalid_bump) when the target would not move the
        version forward.
    """
    if isinstance(request, str) and not isinstance(request, Bump):
        bump = Bump.parse(request)
        if bump is None:
            explicit = parse_version(request)
            if explicit is None or request.strip().startswith("v"):
                return Err(
                    MonorelError(
                        kind="invalid_input",
                        message=f"not a bump kind or version: {request}",
                        hint="use major, minor, patch, rc, beta, alpha or X.Y.Z",
                    )
                )
            if not current < explicit:
                return Err(
                    invalid_bump(
                        f"{explicit} is not greater than the current version {current}",
                    )
                )
            return Ok(explicit)
        request = bump

    if request is None:
        request = policy.infer(current, labels)
        if request is None:
            return Err(invalid_bump("no changes to infer a bump from"))

    return current.bump(request)
