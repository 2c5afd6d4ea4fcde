"""Structured changelog values.

All values are frozen and compare structurally, so a parsed changelog can be
compared with the result of re-parsing its rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

__all__ = [
    "DEFAULT_DESCRIPTION",
    "DEFAULT_TITLE",
    "Category",
    "Change",
    "ChangeLink",
    "Changelog",
    "Release",
    "Section",
]

DEFAULT_TITLE = "Changelog"
DEFAULT_DESCRIPTION = (
    "All notable changes to this package will be documented in this file.\n"
    "\n"
    "The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),\n"
    "and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html)."
)

UNRELEASED = "Unreleased"


class Category(StrEnum):
    """Keep a Changelog categories, in canonical rendering order."""

    ADDED = "Added"
    CHANGED = "Changed"
    DEPRECATED = "Deprecated"
    REMOVED = "Removed"
    FIXED = "Fixed"
    SECURITY = "Security"

    @classmethod
    def parse(cls, label: str) -> Category | None:
        wanted = label.strip().lower()
        for category in cls:
            if category.value.lower() == wanted:
                return category
        return None

    @property
    def rank(self) -> int:
        return list(Category).index(self)


@dataclass(frozen=True, slots=True)
class ChangeLink:
    """Reference attached to a change, e.g. `([#12](https://.../pull/12))`."""

    label: str
    url: str


@dataclass(frozen=True, slots=True)
class Change:
    text: str
    link: ChangeLink | None = None


@dataclass(frozen=True, slots=True)
class Section:
    """A `###` block under a release.

    `label` is the heading as written; `category` is None for headings
    outside the standard vocabulary, which are carried through unchanged.
    """

    label: str
    description: str | None = None
    changes: tuple[Change, ...] = ()

    @property
    def category(self) -> Category | None:
        return Category.parse(self.label)


@dataclass(frozen=True, slots=True)
class Release:
    """A `##` block. `version` None is the Unreleased entry.

    `version` is kept as written; headings that are not semantic versions
    still parse into a release carrying the raw label.
    """

    version: str | None
    date: str | None = None
    link: str | None = None
    description: str | None = None
    sections: tuple[Section, ...] = ()

    @property
    def is_unreleased(self) -> bool:
        return self.version is None

    @property
    def label(self) -> str:
        return UNRELEASED if self.version is None else self.version

    def get_section(self, category: Category | str) -> Section | None:
        for section in self.sections:
            if isinstance(category, Category):
                if section.category == category:
                    return section
            elif section.label == category:
                return section
        return None

    def entries(self) -> list[tuple[Category | str, str, ChangeLink | None]]:
        """Flatten into (category or label, text, link) triples."""
        return [
            (section.category or section.label, change.text, change.link)
            for section in self.sections
            for change in section.changes
        ]

    def has_changes(self) -> bool:
        return any(section.changes for section in self.sections)


@dataclass(frozen=True, slots=True)
class Changelog:
    """A changelog document, most recent release first.

    `references` holds `[label]: url` definitions that did not belong to a
    release heading.
    """

    title: str | None = None
    description: str | None = None
    releases: tuple[Release, ...] = ()
    references: tuple[tuple[str, str], ...] = ()

    @classmethod
    def new(cls) -> Changelog:
        """An empty changelog with the standard Keep a Changelog preamble."""
        return cls(title=DEFAULT_TITLE, description=DEFAULT_DESCRIPTION)

    def unreleased(self) -> Release | None:
        for release in self.releases:
            if release.is_unreleased:
                return release
        return None

    def get_release(self, version: str) -> Release | None:
        wanted = version.strip().removeprefix("v")
        for release in self.releases:
            if release.version is not None and release.version.removeprefix("v") == wanted:
                return release
        return None

    def latest(self) -> Release | None:
        """Most recent versioned release."""
        for release in self.releases:
            if not release.is_unreleased:
                return release
        return None
