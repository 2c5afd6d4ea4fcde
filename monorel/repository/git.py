"""Local git working copy backend.

Reads committed content at a revision (not the checkout on disk), so a
Project bound to a revision sees the same files whatever the worktree state.
Branch updates use plumbing commands against a scratch index, leaving the
user's index, worktree and HEAD untouched:

    hash-object -w --stdin     (one blob per edit)
    read-tree <base>           (into GIT_INDEX_FILE)
    update-index --cacheinfo   (apply edits)
    write-tree / commit-tree   (one commit, parent = base)
    update-ref <ref> <new> <old>   (compare-and-swap)
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Literal, overload

from monorel.core.errors import MonorelError, conflict, not_found, parse_error, transient
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger
from monorel.platform.process import ProcessError
from monorel.platform.process import run as run_process

from .github import parse_slug
from .glob import glob_match
from .types import FileEdit, FileListing, Revision

__all__ = ["WorkingCopyRepository"]

log = get_logger(__name__)

_GIT_TIMEOUT_SECONDS = 30.0
_ZERO_OID = "0" * 40

_MISSING_MARKERS = (
    "does not exist in",
    "exists on disk, but not in",
    "path not in",
    "invalid object name",
    "unknown revision",
    "bad revision",
    "needed a single revision",
    "not a valid object name",
)

_CAS_MARKERS = (
    "cannot lock ref",
    "but expected",
    "reference already exists",
)

_FALLBACK_IDENTITY = {
    "GIT_AUTHOR_NAME": "monorel",
    "GIT_AUTHOR_EMAIL": "monorel@localhost",
    "GIT_COMMITTER_NAME": "monorel",
    "GIT_COMMITTER_EMAIL": "monorel@localhost",
}


def _is_missing(error: ProcessError) -> bool:
    text = error.stderr.lower()
    return any(marker in text for marker in _MISSING_MARKERS)


class WorkingCopyRepository:
    """A local git repository driven through the `git` executable.

    Args:
        path: Root directory of the working copy (the one holding `.git`).
        ref: Revision that `current_revision` resolves (default HEAD).
    """

    def __init__(self, path: Path, *, ref: str | None = None) -> None:
        self.path = path.resolve()
        self.ref = ref or "HEAD"

    @property
    def name(self) -> str:
        return self.path.name

    @overload
    def _git(
        self,
        args: list[str],
        *,
        env: Mapping[str, str] | None = ...,
        input: bytes | None = ...,
        binary: Literal[False] = ...,
    ) -> Result[str, ProcessError]: ...

    @overload
    def _git(
        self,
        args: list[str],
        *,
        env: Mapping[str, str] | None = ...,
        input: bytes | None = ...,
        binary: Literal[True],
    ) -> Result[bytes, ProcessError]: ...

    def _git(
        self,
        args: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: bytes | None = None,
        binary: bool = False,
    ) -> Result[str, ProcessError] | Result[bytes, ProcessError]:
        return run_process(
            ["git", *args],
            cwd=self.path,
            env=env,
            input=input,
            timeout=_GIT_TIMEOUT_SECONDS,
            binary=binary,
        )

    def _failure(self, error: ProcessError, message: str, *, path: str | None = None) -> MonorelError:
        hint = error.stderr.strip() or None
        if not error.started:
            # Spawn failure or timeout; stderr holds our own description.
            return transient(message, path=path, hint=hint or "git did not run")
        if _is_missing(error):
            return not_found(message, path=path, hint=hint)
        return transient(message, path=path, hint=hint or str(error))

    # -------------------------------------------------------------------------
    # RepositoryBackend
    # -------------------------------------------------------------------------

    def current_revision(self) -> Result[Revision, MonorelError]:
        return self.resolve(self.ref)

    def resolve(self, rev: str) -> Result[Revision, MonorelError]:
        """Resolve a branch, tag or sha to a commit revision."""
        result = self._git(["rev-parse", "--verify", "--end-of-options", f"{rev}^{{commit}}"])
        if isinstance(result, Err):
            return Err(self._failure(result.error, f"cannot resolve {rev}"))
        return Ok(Revision(result.value.strip()))

    def read_file(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        path = path.strip("/")
        result = self._git(["show", f"{revision.id}:{path}"], binary=True)
        if isinstance(result, Err):
            return Err(self._failure(result.error, "cannot read file", path=path))
        try:
            return Ok(result.value.decode("utf-8"))
        except UnicodeDecodeError as e:
            return Err(parse_error("file is not valid UTF-8", path=path, hint=str(e)))

    def list_files(self, pattern: str, revision: Revision) -> FileListing:
        def load() -> Result[Iterable[str], MonorelError]:
            result = self._git(["ls-tree", "-r", "--full-tree", "--name-only", "-z", revision.id])
            if isinstance(result, Err):
                return Err(self._failure(result.error, f"cannot list files at {revision.short()}"))
            paths = [p for p in result.value.split("\0") if p]
            return Ok(p for p in paths if glob_match(pattern, p))

        return FileListing(load)

    # -------------------------------------------------------------------------
    # BranchWriter
    # -------------------------------------------------------------------------

    def branch_head(self, branch: str) -> Result[Revision | None, MonorelError]:
        result = self._git(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"])
        if isinstance(result, Err):
            if result.error.returncode == 1 and not result.error.stderr.strip():
                return Ok(None)
            return Err(self._failure(result.error, f"cannot read branch {branch}"))
        return Ok(Revision(result.value.strip()))

    def update_branch(
        self,
        branch: str,
        base_revision: Revision,
        edits: Sequence[FileEdit],
        *,
        message: str | None = None,
    ) -> Result[Revision, MonorelError]:
        head = self.branch_head(branch)
        if isinstance(head, Err):
            return head
        if head.value is not None and head.value != base_revision:
            return Err(
                conflict(
                    f"branch {branch} moved",
                    hint=f"expected {base_revision.short()}, found {head.value.short()}",
                )
            )

        commit = self._commit(base_revision, edits, message or f"Update {branch}")
        if isinstance(commit, Err):
            return commit

        expected = _ZERO_OID if head.value is None else head.value.id
        moved = self._git(["update-ref", f"refs/heads/{branch}", commit.value.id, expected])
        if isinstance(moved, Err):
            text = moved.error.stderr.lower()
            if any(marker in text for marker in _CAS_MARKERS):
                return Err(conflict(f"branch {branch} moved", hint=moved.error.stderr.strip()))
            return Err(self._failure(moved.error, f"cannot update branch {branch}"))

        log.info("branch_updated", branch=branch, revision=commit.value.short(), edits=len(edits))
        return Ok(commit.value)

    def _commit(
        self, base: Revision, edits: Sequence[FileEdit], message: str
    ) -> Result[Revision, MonorelError]:
        with tempfile.TemporaryDirectory(prefix="monorel-index-") as scratch:
            env = {"GIT_INDEX_FILE": str(Path(scratch) / "index")}

            loaded = self._git(["read-tree", base.id], env=env)
            if isinstance(loaded, Err):
                return Err(self._failure(loaded.error, f"cannot read tree of {base.short()}"))

            for edit in edits:
                staged = self._stage(edit, env=env)
                if isinstance(staged, Err):
                    return staged

            tree = self._git(["write-tree"], env=env)
            if isinstance(tree, Err):
                return Err(self._failure(tree.error, "cannot write tree"))

        identity = self._identity_env()
        created = self._git(
            ["commit-tree", tree.value.strip(), "-p", base.id, "-m", message], env=identity
        )
        if isinstance(created, Err):
            return Err(self._failure(created.error, "cannot create commit"))
        return Ok(Revision(created.value.strip()))

    def _stage(self, edit: FileEdit, *, env: Mapping[str, str]) -> Result[None, MonorelError]:
        path = edit.path.strip("/")
        if edit.content is None:
            removed = self._git(["update-index", "--force-remove", "--", path], env=env)
            if isinstance(removed, Err):
                return Err(self._failure(removed.error, "cannot remove file", path=path))
            return Ok(None)

        blob = self._git(
            ["hash-object", "-w", "--stdin"], input=edit.content.encode("utf-8"), binary=True
        )
        if isinstance(blob, Err):
            return Err(self._failure(blob.error, "cannot store file", path=path))

        mode = "100644"
        listed = self._git(["ls-files", "-s", "--", path], env=env)
        if isinstance(listed, Ok) and listed.value.startswith("100755"):
            mode = "100755"

        sha = blob.value.decode("ascii").strip()
        added = self._git(
            ["update-index", "--add", "--cacheinfo", f"{mode},{sha},{path}"], env=env
        )
        if isinstance(added, Err):
            return Err(self._failure(added.error, "cannot stage file", path=path))
        return Ok(None)

    def _identity_env(self) -> dict[str, str] | None:
        if all(key in os.environ for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL")):
            return None
        configured = self._git(["config", "user.email"])
        if isinstance(configured, Ok) and configured.value.strip():
            return None
        return {k: v for k, v in _FALLBACK_IDENTITY.items() if k not in os.environ}

    # -------------------------------------------------------------------------

    def remote_slug(self, remote: str = "origin") -> str | None:
        """Return `owner/name` when the remote points at GitHub."""
        url = self._git(["remote", "get-url", remote])
        if isinstance(url, Err):
            return None
        return parse_slug(url.value.strip())
