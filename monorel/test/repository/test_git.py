"""Tests for monorel.repository.git module."""

from __future__ import annotations

import shutil
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from monorel.core.result import Err, Ok, Result
from monorel.platform.process import ProcessError
from monorel.platform.process import run as run_process
from monorel.project import Project
from monorel.repository import FileEdit, Revision, WorkingCopyRepository
from monorel.repository import git as git_module

type Handler = Callable[[list[str]], Result[str, ProcessError]]


class FakeGit:
    """Scripted `git` replying by the first arguments of each call."""

    def __init__(self, handlers: Mapping[str, Handler | str | bytes | ProcessError]) -> None:
        self._handlers = dict(handlers)
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self.inputs: list[str | bytes | None] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
        *,
        input: str | bytes | None = None,
        timeout: float | None = None,
        binary: bool = False,
    ) -> Result[str, ProcessError] | Result[bytes, ProcessError]:
        assert cmd[0] == "git"
        args = cmd[1:]
        self.calls.append(args)
        self.envs.append(env)
        self.inputs.append(input)
        handler = self._handlers.get(args[0], "")
        if isinstance(handler, ProcessError):
            return Err(handler)
        if isinstance(handler, bytes):
            return Ok(handler)
        result = Ok(handler) if isinstance(handler, str) else handler(args)
        if binary and isinstance(result, Ok):
            return Ok(result.value.encode("utf-8"))
        return result

    def called(self, subcommand: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == subcommand]


def _fail(stderr: str, returncode: int = 128) -> ProcessError:
    return ProcessError(command=("git",), returncode=returncode, stdout="", stderr=stderr)


@pytest.fixture
def install(monkeypatch: pytest.MonkeyPatch) -> Callable[[FakeGit], FakeGit]:
    def _install(fake: FakeGit) -> FakeGit:
        monkeypatch.setattr(git_module, "run_process", fake)
        return fake

    return _install


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    """Reading committed content."""

    def test_current_revision(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        fake = install(FakeGit({"rev-parse": "a1b2c3\n"}))
        repo = WorkingCopyRepository(tmp_path, ref="main")

        assert repo.current_revision() == Ok(Revision("a1b2c3"))
        assert fake.calls[0][-1] == "main^{commit}"

    def test_read_file_uses_revision(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        fake = install(FakeGit({"show": "[package]\n"}))
        repo = WorkingCopyRepository(tmp_path)

        assert repo.read_file("/crates/a/Cargo.toml", Revision("abc")) == Ok("[package]\n")
        assert fake.calls == [["show", "abc:crates/a/Cargo.toml"]]

    def test_missing_path_is_not_found(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        install(FakeGit({"show": _fail("fatal: path 'Cargo.lock' does not exist in 'abc'")}))
        result = WorkingCopyRepository(tmp_path).read_file("Cargo.lock", Revision("abc"))

        assert isinstance(result, Err)
        assert result.error.kind == "not_found"
        assert result.error.path == "Cargo.lock"

    def test_other_failure_is_transient(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        install(FakeGit({"show": _fail("fatal: unable to read object", returncode=128)}))
        result = WorkingCopyRepository(tmp_path).read_file("Cargo.toml", Revision("abc"))

        assert isinstance(result, Err)
        assert result.error.kind == "transient"

    def test_git_not_runnable_is_transient(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        install(FakeGit({"show": _fail("[Errno 2] No such file or directory: 'git'", -1)}))
        result = WorkingCopyRepository(tmp_path).read_file("Cargo.toml", Revision("abc"))

        assert isinstance(result, Err)
        assert result.error.kind == "transient"
        assert result.error.hint is not None and "git" in result.error.hint

    def test_undecodable_file_is_parse_error(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        install(FakeGit({"show": "[package]\ndescription = \"café\"\n".encode("latin-1")}))
        result = WorkingCopyRepository(tmp_path).read_file("crates/a/Cargo.toml", Revision("abc"))

        assert isinstance(result, Err)
        assert result.error.kind == "parse_error"
        assert result.error.path == "crates/a/Cargo.toml"

    def test_line_endings_are_kept(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        install(FakeGit({"show": b"[package]\r\nname = \"a\"\r\n"}))
        result = WorkingCopyRepository(tmp_path).read_file("Cargo.toml", Revision("abc"))

        assert result == Ok("[package]\r\nname = \"a\"\r\n")

    def test_list_files(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        install(FakeGit({"ls-tree": "Cargo.toml\0crates/a/Cargo.toml\0README.md\0"}))
        listed = WorkingCopyRepository(tmp_path).list_files("Cargo.toml", Revision("abc"))

        assert listed.collect() == Ok(["Cargo.toml", "crates/a/Cargo.toml"])


# =============================================================================
# Branch updates
# =============================================================================


def _writer_handlers(
    head: str | None, *, update_ref: str | ProcessError = ""
) -> dict[str, Handler | str | ProcessError]:
    def rev_parse(args: list[str]) -> Result[str, ProcessError]:
        if head is None:
            return Err(_fail("", returncode=1))
        return Ok(f"{head}\n")

    return {
        "rev-parse": rev_parse,
        "hash-object": "blob1\n",
        "write-tree": "tree1\n",
        "commit-tree": "commit1\n",
        "config": "dev@example.com\n",
        "update-ref": update_ref,
    }


class TestUpdateBranch:
    """Plumbing commit and compare-and-swap."""

    def test_branch_head_absent(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        install(FakeGit(_writer_handlers(None)))
        assert WorkingCopyRepository(tmp_path).branch_head("release/1.0.0") == Ok(None)

    def test_creates_branch(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        fake = install(FakeGit(_writer_handlers(None)))
        repo = WorkingCopyRepository(tmp_path)

        result = repo.update_branch(
            "release/1.0.0",
            Revision("base"),
            [FileEdit("Cargo.toml", "new"), FileEdit("old.txt", None)],
            message="Release 1.0.0",
        )

        assert result == Ok(Revision("commit1"))
        assert fake.called("read-tree") == [["read-tree", "base"]]
        assert ["update-index", "--force-remove", "--", "old.txt"] in fake.calls
        assert [
            "update-index",
            "--add",
            "--cacheinfo",
            "100644,blob1,Cargo.toml",
        ] in fake.calls
        assert fake.called("commit-tree") == [
            ["commit-tree", "tree1", "-p", "base", "-m", "Release 1.0.0"]
        ]
        assert fake.called("update-ref") == [
            ["update-ref", "refs/heads/release/1.0.0", "commit1", "0" * 40]
        ]

    def test_blob_content_sent_as_utf8_bytes(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        fake = install(FakeGit(_writer_handlers(None)))
        WorkingCopyRepository(tmp_path).update_branch(
            "b", Revision("base"), [FileEdit("CHANGELOG.md", "# Café\r\n")]
        )

        index = fake.calls.index(["hash-object", "-w", "--stdin"])
        assert fake.inputs[index] == "# Café\r\n".encode("utf-8")

    def test_scratch_index_used(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        fake = install(FakeGit(_writer_handlers(None)))
        WorkingCopyRepository(tmp_path).update_branch("b", Revision("base"), [FileEdit("a", "1")])

        index = fake.calls.index(["read-tree", "base"])
        env = fake.envs[index]
        assert env is not None
        assert env["GIT_INDEX_FILE"].endswith("index")

    def test_stale_base_is_conflict_without_writing(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        fake = install(FakeGit(_writer_handlers("moved")))

        result = WorkingCopyRepository(tmp_path).update_branch(
            "release/1.0.0", Revision("base"), [FileEdit("a", "1")]
        )

        assert isinstance(result, Err)
        assert result.error.kind == "conflict"
        assert fake.called("commit-tree") == []
        assert fake.called("update-ref") == []

    def test_advance_uses_expected_old_value(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        fake = install(FakeGit(_writer_handlers("base")))

        result = WorkingCopyRepository(tmp_path).update_branch(
            "release/1.0.0", Revision("base"), [FileEdit("a", "1")]
        )

        assert result == Ok(Revision("commit1"))
        assert fake.called("update-ref")[0][-1] == "base"

    def test_lost_race_is_conflict(
        self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]
    ) -> None:
        race = _fail("fatal: cannot lock ref 'refs/heads/b': is at x but expected y")
        install(FakeGit(_writer_handlers(None, update_ref=race)))

        result = WorkingCopyRepository(tmp_path).update_branch(
            "b", Revision("base"), [FileEdit("a", "1")]
        )

        assert isinstance(result, Err)
        assert result.error.kind == "conflict"


class TestRemoteSlug:
    def test_github_origin(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        install(FakeGit({"remote": "git@github.com:acme/widgets.git\n"}))
        assert WorkingCopyRepository(tmp_path).remote_slug() == "acme/widgets"

    def test_no_remote(self, tmp_path: Path, install: Callable[[FakeGit], FakeGit]) -> None:
        install(FakeGit({"remote": _fail("error: No such remote 'origin'", returncode=2)}))
        assert WorkingCopyRepository(tmp_path).remote_slug() is None


# =============================================================================
# Against a real repository
# =============================================================================

_IDENTITY = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


def _git(path: Path, *args: str) -> str:
    result = run_process(["git", *args], cwd=path, env=_IDENTITY)
    assert isinstance(result, Ok), result
    return result.value


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestRealRepository:
    """End to end with the git executable."""

    @pytest.fixture
    def repo_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        for key, value in _IDENTITY.items():
            monkeypatch.setenv(key, value)
        _git(tmp_path, "init", "-q", "-b", "main")
        (tmp_path / "crates" / "core").mkdir(parents=True)
        (tmp_path / "Cargo.toml").write_text("[workspace]\n", encoding="utf-8")
        (tmp_path / "crates" / "core" / "Cargo.toml").write_text(
            '[package]\nname = "core"\nversion = "0.1.0"\n', encoding="utf-8"
        )
        _git(tmp_path, "add", "-A")
        _git(tmp_path, "commit", "-q", "-m", "initial")
        return tmp_path

    def test_read_and_list(self, repo_path: Path) -> None:
        repo = WorkingCopyRepository(repo_path)
        head = repo.current_revision().unwrap()

        assert repo.list_files("Cargo.toml", head).collect() == Ok(
            ["Cargo.toml", "crates/core/Cargo.toml"]
        )
        assert repo.read_file("Cargo.toml", head) == Ok("[workspace]\n")
        missing = repo.read_file("Cargo.lock", head)
        assert isinstance(missing, Err)
        assert missing.error.kind == "not_found"

    def test_update_branch_leaves_worktree_alone(self, repo_path: Path) -> None:
        repo = WorkingCopyRepository(repo_path)
        base = repo.current_revision().unwrap()

        result = repo.update_branch(
            "release/0.2.0",
            base,
            [FileEdit("crates/core/Cargo.toml", '[package]\nname = "core"\nversion = "0.2.0"\n')],
            message="Release 0.2.0",
        )

        assert isinstance(result, Ok)
        assert repo.branch_head("release/0.2.0") == Ok(result.value)
        assert "0.2.0" in repo.read_file("crates/core/Cargo.toml", result.value).unwrap()
        on_disk = (repo_path / "crates" / "core" / "Cargo.toml").read_text(encoding="utf-8")
        assert "0.1.0" in on_disk
        assert _git(repo_path, "status", "--porcelain") == ""
        assert _git(repo_path, "log", "-1", "--format=%s", "release/0.2.0").strip() == (
            "Release 0.2.0"
        )

    def test_second_writer_from_stale_base_conflicts(self, repo_path: Path) -> None:
        repo = WorkingCopyRepository(repo_path)
        base = repo.current_revision().unwrap()
        first = repo.update_branch("release/0.2.0", base, [FileEdit("a.txt", "1")])
        assert isinstance(first, Ok)

        second = repo.update_branch("release/0.2.0", base, [FileEdit("a.txt", "2")])

        assert isinstance(second, Err)
        assert second.error.kind == "conflict"
        assert repo.branch_head("release/0.2.0") == Ok(first.value)

    def test_undecodable_manifest_does_not_hide_siblings(self, repo_path: Path) -> None:
        (repo_path / "Cargo.toml").write_text(
            '[workspace]\nmembers = ["crates/*"]\n', encoding="utf-8"
        )
        (repo_path / "crates" / "legacy").mkdir()
        (repo_path / "crates" / "legacy" / "Cargo.toml").write_bytes(
            '[package]\nname = "legacy"\nversion = "1.0.0"\ndescription = "café"\n'.encode(
                "latin-1"
            )
        )
        _git(repo_path, "add", "-A")
        _git(repo_path, "commit", "-q", "-m", "add legacy crate")

        project = Project.open(WorkingCopyRepository(repo_path)).unwrap()
        discovery = project.discover()

        assert discovery.names() == ["core"]
        assert [(e.kind, e.path) for e in discovery.errors] == [
            ("parse_error", "crates/legacy/Cargo.toml")
        ]

    def test_crlf_content_survives_update_branch(self, repo_path: Path) -> None:
        repo = WorkingCopyRepository(repo_path)
        base = repo.current_revision().unwrap()
        content = "# Changelog\r\n\r\n## 0.2.0\r\n"

        result = repo.update_branch("release/0.2.0", base, [FileEdit("CHANGELOG.md", content)])

        assert isinstance(result, Ok)
        assert repo.read_file("CHANGELOG.md", result.value) == Ok(content)
        raw = run_process(
            ["git", "cat-file", "-p", f"{result.value.id}:CHANGELOG.md"], cwd=repo_path, binary=True
        )
        assert raw == Ok(content.encode("utf-8"))
