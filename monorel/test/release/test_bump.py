"""Tests for monorel.release.bump module."""

from __future__ import annotations

from monorel.changelog import Category
from monorel.core.result import Err, Ok
from monorel.release.bump import BumpPolicy, resolve_target
from monorel.release.semver import Bump, SemVer, parse_version


def v(text: str) -> SemVer:
    parsed = parse_version(text)
    assert parsed is not None
    return parsed


class TestBumpPolicy:
    """Category to bump inference."""

    def test_defaults(self) -> None:
        policy = BumpPolicy()
        assert policy.bump_for(Category.REMOVED) is Bump.MAJOR
        assert policy.bump_for(Category.SECURITY) is Bump.MAJOR
        assert policy.bump_for(Category.ADDED) is Bump.MINOR
        assert policy.bump_for(Category.DEPRECATED) is Bump.MINOR
        assert policy.bump_for(Category.CHANGED) is Bump.PATCH
        assert policy.bump_for(Category.FIXED) is Bump.PATCH

    def test_unknown_label_uses_fallback(self) -> None:
        assert BumpPolicy().bump_for("Performance") is Bump.PATCH

    def test_highest_wins(self) -> None:
        policy = BumpPolicy()
        assert policy.infer(v("1.2.3"), [Category.FIXED, Category.ADDED]) is Bump.MINOR
        assert policy.infer(v("1.2.3"), [Category.FIXED, Category.REMOVED]) is Bump.MAJOR

    def test_no_major_before_one(self) -> None:
        assert BumpPolicy().infer(v("0.3.0"), [Category.REMOVED]) is Bump.MINOR

    def test_no_labels(self) -> None:
        assert BumpPolicy().infer(v("1.0.0"), []) is None

    def test_overrides(self) -> None:
        policy = BumpPolicy.from_overrides(
            {"security": "patch", "Performance": "minor", "Fixed": "rc", "Added": "bogus"}
        )
        assert policy.bump_for(Category.SECURITY) is Bump.PATCH
        assert policy.bump_for("Performance") is Bump.MINOR
        assert policy.bump_for(Category.FIXED) is Bump.PATCH
        assert policy.bump_for(Category.ADDED) is Bump.MINOR


class TestResolveTarget:
    """Requested, explicit and inferred targets."""

    def test_inferred(self) -> None:
        result = resolve_target(v("1.2.3"), None, [Category.ADDED], BumpPolicy())
        assert result == Ok(v("1.3.0"))

    def test_nothing_to_infer(self) -> None:
        result = resolve_target(v("1.2.3"), None, [], BumpPolicy())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"

    def test_bump_kind_string(self) -> None:
        result = resolve_target(v("1.2.3"), "major", [Category.FIXED], BumpPolicy())
        assert result == Ok(v("2.0.0"))

    def test_bump_enum(self) -> None:
        result = resolve_target(v("1.2.3"), Bump.RC, [], BumpPolicy())
        assert result == Ok(v("2.0.0-rc.1"))

    def test_explicit_version(self) -> None:
        result = resolve_target(v("1.2.3"), "1.5.0", [Category.FIXED], BumpPolicy())
        assert result == Ok(v("1.5.0"))

    def test_explicit_version_not_greater(self) -> None:
        result = resolve_target(v("1.2.3"), "1.2.3", [Category.FIXED], BumpPolicy())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"

    def test_explicit_version_with_v_prefix_rejected(self) -> None:
        result = resolve_target(v("1.2.3"), "v1.5.0", [], BumpPolicy())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_input"

    def test_garbage(self) -> None:
        result = resolve_target(v("1.2.3"), "sideways", [], BumpPolicy())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_input"

    def test_ladder_violation(self) -> None:
        result = resolve_target(v("1.0.0-rc.1"), "alpha", [], BumpPolicy())
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"
