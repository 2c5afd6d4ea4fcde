"""Release entry generation."""

from __future__ import annotations

from collections.abc import Sequence

from monorel.core.errors import MonorelError, invalid_bump
from monorel.core.result import Err, Ok, Result
from monorel.release.semver import parse_version

from .model import Category, Change, ChangeLink, Changelog, Release, Section

__all__ = ["Entry", "generate_release", "group_entries"]

type Entry = tuple[Category | str, str, ChangeLink | None]


def _label(category: Category | str) -> str:
    if isinstance(category, Category):
        return category.value
    parsed = Category.parse(category)
    return parsed.value if parsed is not None else category.strip()


def group_entries(entries: Sequence[Entry]) -> tuple[Section, ...]:
    """Group entries into sections.

    Standard categories come first in canonical order, then other labels in
    first-seen order. Input order is kept within a section; sections without
    entries are not produced.
    """
    grouped: dict[str, list[Change]] = {}
    for category, text, link in entries:
        text = " ".join(text.split())
        if not text:
            continue
        grouped.setdefault(_label(category), []).append(Change(text=text, link=link))

    def order(label: str) -> tuple[int, int]:
        category = Category.parse(label)
        if category is not None:
            return (0, category.rank)
        return (1, list(grouped).index(label))

    return tuple(
        Section(label=label, changes=tuple(grouped[label])) for label in sorted(grouped, key=order)
    )


def generate_release(
    changelog: Changelog,
    version: str,
    entries: Sequence[Entry],
    date: str | None,
    *,
    link: str | None = None,
    description: str | None = None,
) -> Result[Changelog, MonorelError]:
    """Insert a new release at the front of the changelog.

    Any Unreleased entry is removed. The version must be a semantic version
    greater than every released version already present.

    Example:
        generate_release(changelog, "1.1.0", [(Category.ADDED, "X", None)], "2024-01-04")
    """
    target = parse_version(version)
    if target is None:
        return Err(invalid_bump(f"not a semantic version: {version}"))

    for existing in changelog.releases:
        if existing.version is None:
            continue
        previous = parse_version(existing.version)
        if previous is not None and not previous < target:
            return Err(
                invalid_bump(
                    f"{version} is not newer than {existing.version}",
                    hint="changelog versions must strictly decrease",
                )
            )

    release = Release(
        version=str(target),
        date=date,
        link=link,
        description=description,
        sections=group_entries(entries),
    )
    kept = tuple(r for r in changelog.releases if not r.is_unreleased)
    return Ok(
        Changelog(
            title=changelog.title,
            description=changelog.description,
            releases=(release, *kept),
            references=changelog.references,
        )
    )
