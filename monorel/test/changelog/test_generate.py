"""Tests for monorel.changelog.generate module."""

from __future__ import annotations

from monorel.changelog import (
    Category,
    Change,
    Changelog,
    Release,
    Section,
    generate_release,
    group_entries,
    parse_changelog,
)
from monorel.core.result import Err, Ok

from .test_parse import SAMPLE


class TestGroupEntries:
    """Entries become sections in canonical order."""

    def test_canonical_order_then_first_seen(self) -> None:
        sections = group_entries(
            [
                ("Performance", "Faster parse", None),
                (Category.SECURITY, "Patch CVE", None),
                ("added", "New flag", None),
                (Category.FIXED, "Crash", None),
                ("Docs", "Guide", None),
                (Category.ADDED, "Other flag", None),
            ]
        )
        assert [s.label for s in sections] == ["Added", "Fixed", "Security", "Performance", "Docs"]
        assert sections[0].changes == (Change("New flag"), Change("Other flag"))

    def test_whitespace_normalised_and_blank_dropped(self) -> None:
        sections = group_entries(
            [(Category.FIXED, "  spaced\n  out ", None), (Category.ADDED, "   ", None)]
        )
        assert sections == (Section(label="Fixed", changes=(Change("spaced out"),)),)


class TestGenerateRelease:
    """New release at the front, Unreleased removed."""

    def test_generate(self) -> None:
        changelog = parse_changelog(SAMPLE)
        unreleased = changelog.unreleased()
        assert unreleased is not None

        result = generate_release(changelog, "1.2.0", unreleased.entries(), "2024-06-01")

        assert isinstance(result, Ok)
        updated = result.value
        assert [r.version for r in updated.releases] == ["1.2.0", "1.1.0", "1.0.0"]
        assert updated.unreleased() is None
        new = updated.releases[0]
        assert new.date == "2024-06-01"
        assert [s.label for s in new.sections] == ["Added", "Fixed"]
        assert updated.title == changelog.title

    def test_version_must_be_newer(self) -> None:
        changelog = parse_changelog(SAMPLE)
        result = generate_release(changelog, "1.1.0", [(Category.FIXED, "x", None)], None)
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"

    def test_version_must_be_semver(self) -> None:
        result = generate_release(Changelog.new(), "next", [], None)
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"

    def test_prerelease_follows_stable(self) -> None:
        changelog = Changelog(releases=(Release(version="1.0.0"),))
        result = generate_release(changelog, "1.1.0-rc.1", [(Category.ADDED, "x", None)], None)
        assert isinstance(result, Ok)

    def test_non_semver_headings_ignored(self) -> None:
        changelog = Changelog(releases=(Release(version="2024.1"),))
        assert isinstance(generate_release(changelog, "0.1.0", [], None), Ok)

    def test_original_untouched(self) -> None:
        changelog = parse_changelog(SAMPLE)
        generate_release(changelog, "1.2.0", [(Category.ADDED, "x", None)], "2024-06-01")
        assert changelog.unreleased() is not None

    def test_description(self) -> None:
        result = generate_release(
            Changelog.new(), "0.1.0", [(Category.ADDED, "x", None)], None, description="First."
        )
        assert isinstance(result, Ok)
        assert result.value.releases[0].description == "First."
