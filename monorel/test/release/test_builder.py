"""Tests for monorel.release.builder module."""

from __future__ import annotations

import json
import tomllib
from collections.abc import Sequence
from pathlib import Path

from monorel.changelog import parse_changelog
from monorel.core.errors import MonorelError, conflict
from monorel.core.result import Err, Ok, Result
from monorel.output.console import MockConsole
from monorel.project import Project
from monorel.release.builder import (
    ReleaseBuilder,
    release_branch,
    release_description,
    release_title,
)
from monorel.release.semver import SemVer
from monorel.repository import FileEdit, FileSystemRepository, MemoryRepository, RequestId, Revision

from .._repos import (
    CARGO_WORKSPACE,
    CORE_CHANGELOG,
    INHERITED_WORKSPACE,
    NPM_PRIMARY,
    memory_project,
    today,
)


def _builder(project: Project, console: MockConsole | None = None) -> ReleaseBuilder:
    return ReleaseBuilder(project, console=console, clock=today)


def _toml(text: str) -> dict[str, object]:
    return tomllib.loads(text)


# =============================================================================
# Naming
# =============================================================================


class TestNaming:
    def test_primary(self) -> None:
        version = SemVer(1, 2, 0)
        assert release_branch("release", "widgets", version, primary=True) == "release/1.2.0"
        assert release_title("widgets", version, primary=True) == "Release `1.2.0`"

    def test_secondary(self) -> None:
        version = SemVer(0, 4, 0, ("rc", "1"))
        assert release_branch("rel", "core", version, primary=False) == "rel/core-0.4.0-rc.1"
        assert release_title("core", version, primary=False) == "Release `core@0.4.0-rc.1`"

    def test_description(self) -> None:
        assert release_description("core", SemVer(0, 4, 0)) == (
            "Releasing package `core` version `0.4.0`."
        )


# =============================================================================
# Planning
# =============================================================================


class TestPlanRelease:
    """Computation only; nothing is written."""

    def test_inferred_minor(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)

        plan = _builder(project).plan_release("core")

        assert isinstance(plan, Ok)
        request = plan.value
        assert request.version == SemVer(0, 4, 0)
        assert request.previous_version == SemVer(0, 3, 1)
        assert request.branch == "release/core-0.4.0"
        assert request.title == "Release `core@0.4.0`"
        assert request.revision is None
        assert request.request_id is None
        assert list(repo.branches) == ["main"]

    def test_edit_bundle(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        request = _builder(project).plan_release("core").unwrap()
        assert request is not None

        edits = {edit.path: edit.content for edit in request.edits}
        assert [edit.path for edit in request.edits] == [
            "crates/core/Cargo.toml",
            "crates/cli/Cargo.toml",
            "Cargo.lock",
            "crates/core/CHANGELOG.md",
        ]
        core = _toml(edits["crates/core/Cargo.toml"] or "")
        assert core["package"] == {"name": "core", "version": "0.4.0", "edition": "2021"}
        cli = _toml(edits["crates/cli/Cargo.toml"] or "")
        assert cli["dependencies"] == {
            "core": {"path": "../core", "version": "0.4.0"},
            "serde": "1.0",
        }
        lock = _toml(edits["Cargo.lock"] or "")
        versions = {p["name"]: p["version"] for p in lock["package"]}  # type: ignore[union-attr]
        assert versions == {"cli": "0.2.0", "core": "0.4.0", "serde": "1.0.200"}

    def test_changelog_release(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        request = _builder(project).plan_release("core").unwrap()
        assert request is not None

        changelog = parse_changelog(request.edits[-1].content or "")

        assert changelog.unreleased() is None
        assert [r.version for r in changelog.releases] == ["0.4.0", "0.3.1"]
        assert changelog.releases[0].date == "2024-06-01"
        assert request.notes == changelog.releases[0]

    def test_body(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        request = _builder(project).plan_release("core").unwrap()
        assert request is not None
        assert request.body == (
            "Releasing package `core` version `0.4.0`.\n"
            "\n"
            "### Added\n"
            "\n"
            "- Streaming API ([#12](https://github.com/acme/widgets/pull/12))\n"
        )

    def test_explicit_date(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        request = _builder(project).plan_release("core", date="2025-01-31").unwrap()
        assert request is not None
        assert request.notes.date == "2025-01-31"

    def test_explicit_version(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        request = _builder(project).plan_release("core", "1.0.0").unwrap()
        assert request is not None
        assert request.branch == "release/core-1.0.0"

    def test_version_not_greater(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        result = _builder(project).plan_release("core", "0.3.0")
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_bump"

    def test_nothing_to_release_without_changelog(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        result = _builder(project).plan_release("cli")
        assert isinstance(result, Err)
        assert result.error.kind == "nothing_to_release"
        assert result.error.path == "crates/cli/CHANGELOG.md"

    def test_nothing_to_release_with_empty_unreleased(self) -> None:
        files = dict(CARGO_WORKSPACE)
        files["crates/core/CHANGELOG.md"] = "# Changelog\n\n## [Unreleased]\n\n### Added\n"
        _, project = memory_project(files)
        result = _builder(project).plan_release("core")
        assert isinstance(result, Err)
        assert result.error.kind == "nothing_to_release"

    def test_unknown_package(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        result = _builder(project).plan_release("nope")
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_dependents_update_disabled(self) -> None:
        files = dict(CARGO_WORKSPACE)
        files["monorel.toml"] = "[release]\nupdate-dependents = false\nupdate-lockfile = false\n"
        _, project = memory_project(files)
        request = _builder(project).plan_release("core").unwrap()
        assert request is not None
        assert [e.path for e in request.edits] == [
            "crates/core/Cargo.toml",
            "crates/core/CHANGELOG.md",
        ]

    def test_bump_policy_override(self) -> None:
        files = dict(CARGO_WORKSPACE)
        files["monorel.toml"] = '[release.bump]\nAdded = "patch"\n'
        _, project = memory_project(files)
        request = _builder(project).plan_release("core").unwrap()
        assert request is not None
        assert request.version == SemVer(0, 3, 2)

    def test_inherited_workspace_version(self) -> None:
        _, project = memory_project(INHERITED_WORKSPACE)
        request = _builder(project).plan_release("a").unwrap()
        assert request is not None

        edits = {edit.path: edit.content or "" for edit in request.edits}
        assert request.version == SemVer(2, 1, 0)
        assert set(edits) == {
            "Cargo.toml",
            "crates/b/Cargo.toml",
            "Cargo.lock",
            "crates/a/CHANGELOG.md",
        }
        root = _toml(edits["Cargo.toml"])
        assert root["workspace"]["package"]["version"] == "2.1.0"  # type: ignore[index]
        b = _toml(edits["crates/b/Cargo.toml"])
        assert b["dependencies"]["a"]["version"] == "2.1.0"  # type: ignore[index]
        lock = _toml(edits["Cargo.lock"])
        assert [p["version"] for p in lock["package"]] == ["2.1.0", "2.1.0"]  # type: ignore[union-attr]

    def test_primary_npm_package(self) -> None:
        _, project = memory_project(NPM_PRIMARY)
        request = _builder(project).plan_release("widgets").unwrap()
        assert request is not None

        assert request.branch == "release/1.0.1"
        assert request.title == "Release `1.0.1`"
        edits = {edit.path: edit.content or "" for edit in request.edits}
        assert list(edits) == [
            "package.json",
            "packages/ui/package.json",
            "package-lock.json",
            "CHANGELOG.md",
        ]
        assert json.loads(edits["package.json"])["version"] == "1.0.1"
        assert json.loads(edits["packages/ui/package.json"])["dependencies"] == {
            "widgets": "^1.0.1"
        }
        lock = json.loads(edits["package-lock.json"])
        assert lock["version"] == "1.0.1"
        assert lock["packages"][""]["version"] == "1.0.1"
        assert lock["packages"]["packages/ui"]["version"] == "2.1.0"

    def test_plan_on_read_only_repository(self, tmp_path: Path) -> None:
        for rel, content in CARGO_WORKSPACE.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        project = Project.open(FileSystemRepository(tmp_path)).unwrap()
        assert project is not None

        plan = _builder(project).plan_release("core")

        assert isinstance(plan, Ok)
        on_disk = (tmp_path / "crates/core/Cargo.toml").read_text(encoding="utf-8")
        assert 'version = "0.3.1"' in on_disk


# =============================================================================
# Requesting
# =============================================================================


class TestRequestRelease:
    """Branch commit plus release request."""

    def test_commits_and_opens_request(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        console = MockConsole()

        result = _builder(project, console).request_release("core")

        assert isinstance(result, Ok)
        request = result.value
        head = repo.branches["release/core-0.4.0"]
        assert request.revision == head
        assert request.request_id == RequestId(1)
        assert repo.parent_of(head) == project.revision
        assert repo.message_of(head) == "Release core@0.4.0"
        files = repo.files_at(head)
        assert 'version = "0.4.0"' in files["crates/core/Cargo.toml"]
        assert files["crates/core/CHANGELOG.md"] == request.edits[-1].content
        opened = repo.requests["release/core-0.4.0"]
        assert opened.title == "Release `core@0.4.0`"
        assert opened.body == request.body
        assert console.find("Committed 4 file(s) to release/core-0.4.0")

    def test_main_is_untouched(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        _builder(project).request_release("core")
        assert repo.files_at(repo.branches["main"]) == CARGO_WORKSPACE

    def test_second_request_updates_instead_of_committing(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        builder = _builder(project)
        first = builder.request_release("core").unwrap()
        assert first is not None

        second = builder.request_release("core")

        assert isinstance(second, Ok)
        assert second.value.edits == ()
        assert second.value.revision == first.revision
        assert repo.branches["release/core-0.4.0"] == first.revision
        assert repo.requests["release/core-0.4.0"].updates == 1
        assert len(repo.requests) == 1

    def test_existing_branch_is_rebuilt_on_its_head(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        prepared = repo.commit("release/core-0.4.0", [FileEdit("NOTES.md", "draft\n")])

        result = _builder(project).request_release("core")

        assert isinstance(result, Ok)
        head = repo.branches["release/core-0.4.0"]
        assert repo.parent_of(head) == prepared
        files = repo.files_at(head)
        assert files["NOTES.md"] == "draft\n"
        assert 'version = "0.4.0"' in files["crates/core/Cargo.toml"]

    def test_conflict_is_retried(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        repo.fail_next("update_branch", conflict("branch moved"))

        result = _builder(project).request_release("core")

        assert isinstance(result, Ok)
        assert "release/core-0.4.0" in repo.branches

    def test_gives_up_after_retries(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        repo.fail_next("update_branch", conflict("branch moved"), times=4)

        result = _builder(project).request_release("core")

        assert isinstance(result, Err)
        assert result.error.kind == "conflict"
        assert "4 attempts" in result.error.message
        assert "release/core-0.4.0" not in repo.branches

    def test_configured_retries(self) -> None:
        files = dict(CARGO_WORKSPACE)
        files["monorel.toml"] = "[release]\nmax-retries = 1\n"
        repo, project = memory_project(files)
        repo.fail_next("update_branch", conflict("branch moved"), times=2)

        result = _builder(project).request_release("core")

        assert isinstance(result, Err)
        assert "2 attempts" in result.error.message

    def test_retry_recomputes_from_new_base(self) -> None:
        repo = RacingRepository(CARGO_WORKSPACE, name="acme/widgets")
        project = Project.open(repo).unwrap()
        assert project is not None

        result = _builder(project).request_release("core")

        assert isinstance(result, Ok)
        head = repo.branches["release/core-0.4.0"]
        assert repo.parent_of(head) == repo.branches["main"]
        notes = repo.files_at(head)["crates/core/CHANGELOG.md"]
        assert "- Late fix" in notes
        assert "## [Unreleased]" not in notes
        assert result.value.notes.get_section("Fixed") is not None

    def test_other_errors_are_not_retried(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        repo.fail_next(
            "update_branch", MonorelError(kind="permission_denied", message="read-only token")
        )

        result = _builder(project).request_release("core")

        assert isinstance(result, Err)
        assert result.error.kind == "permission_denied"

    def test_request_failure_after_commit(self) -> None:
        repo, project = memory_project(CARGO_WORKSPACE)
        repo.fail_next(
            "open_or_update_release_request",
            MonorelError(kind="transient", message="api unavailable"),
        )

        result = _builder(project).request_release("core")

        assert isinstance(result, Err)
        assert result.error.kind == "transient"
        assert "release/core-0.4.0" in repo.branches

    def test_read_only_repository_is_unsupported(self, tmp_path: Path) -> None:
        (tmp_path / "Cargo.toml").write_text('[package]\nname = "x"\nversion = "1.0.0"\n')
        project = Project.open(FileSystemRepository(tmp_path)).unwrap()
        assert project is not None

        result = _builder(project).request_release("x")

        assert isinstance(result, Err)
        assert result.error.kind == "unsupported"

    def test_explicit_remote(self) -> None:
        _, project = memory_project(CARGO_WORKSPACE)
        remote = MemoryRepository({})
        builder = ReleaseBuilder(project, remote=remote, clock=today)
        assert builder.remote is remote


class RacingRepository(MemoryRepository):
    """Lands a commit on main during the first branch update."""

    def __init__(self, files: dict[str, str], *, name: str) -> None:
        super().__init__(files, name=name)
        self.raced = False

    def update_branch(
        self,
        branch: str,
        base_revision: Revision,
        edits: Sequence[FileEdit],
        *,
        message: str | None = None,
    ) -> Result[Revision, MonorelError]:
        if not self.raced:
            self.raced = True
            late = CORE_CHANGELOG.replace(
                "## [0.3.1]", "### Fixed\n\n- Late fix\n\n## [0.3.1]", 1
            )
            self.commit("main", [FileEdit("crates/core/CHANGELOG.md", late)])
            return Err(conflict(f"branch {branch} moved"))
        return super().update_branch(branch, base_revision, edits, message=message)
