"""In-memory repository with commits, branches and release requests.

Implements every capability (read, branch writer, remote) without I/O. Used
as a scratch backend and by tests, which can also inject failures and
simulate concurrent writers with `commit`.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from monorel.core.errors import MonorelError, conflict, not_found
from monorel.core.result import Err, Ok, Result

from .glob import glob_match
from .types import DispatchEvent, FileEdit, FileListing, RequestId, Revision

__all__ = ["MemoryRepository", "MemoryRequest"]


@dataclass(frozen=True, slots=True)
class _Commit:
    parent: str | None
    files: Mapping[str, str]
    message: str = ""


@dataclass(slots=True)
class MemoryRequest:
    """A release request recorded by MemoryRepository."""

    number: int
    branch: str
    title: str
    body: str
    updates: int = 0


class MemoryRepository:
    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        *,
        default_branch: str = "main",
        name: str = "memory",
    ) -> None:
        self._name = name
        self._default_branch = default_branch
        self._commits: dict[str, _Commit] = {}
        self._branches: dict[str, str] = {}
        self.requests: dict[str, MemoryRequest] = {}
        self.dispatches: list[DispatchEvent] = []
        self.reads: list[tuple[str, Revision]] = []
        self._failures: dict[str, list[MonorelError]] = {}

        root = self._store(None, dict(files or {}))
        self._branches[default_branch] = root

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail_next(self, operation: str, error: MonorelError, *, times: int = 1) -> None:
        """Make the next `times` calls of `operation` fail with `error`."""
        self._failures.setdefault(operation, []).extend([error] * times)

    def commit(self, branch: str, edits: Sequence[FileEdit]) -> Revision:
        """Commit on top of the branch head unconditionally (an outside writer)."""
        head = self._branches.get(branch, self._branches[self._default_branch])
        new_id = self._store(head, _apply(self._commits[head].files, edits))
        self._branches[branch] = new_id
        return Revision(new_id)

    def files_at(self, revision: Revision) -> dict[str, str]:
        return dict(self._commits[revision.id].files)

    def message_of(self, revision: Revision) -> str:
        return self._commits[revision.id].message

    def parent_of(self, revision: Revision) -> Revision | None:
        parent = self._commits[revision.id].parent
        return None if parent is None else Revision(parent)

    @property
    def branches(self) -> dict[str, Revision]:
        return {name: Revision(sha) for name, sha in self._branches.items()}

    # -------------------------------------------------------------------------
    # RepositoryBackend
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    def current_revision(self) -> Result[Revision, MonorelError]:
        failure = self._take_failure("current_revision")
        if failure is not None:
            return Err(failure)
        return Ok(Revision(self._branches[self._default_branch]))

    def read_file(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        self.reads.append((path, revision))
        failure = self._take_failure("read_file")
        if failure is not None:
            return Err(failure)

        commit = self._commits.get(revision.id)
        if commit is None:
            return Err(not_found(f"unknown revision {revision.short()}", path=path))
        content = commit.files.get(path.strip("/"))
        if content is None:
            return Err(not_found("file not found", path=path))
        return Ok(content)

    def list_files(self, pattern: str, revision: Revision) -> FileListing:
        def load() -> Result[Iterable[str], MonorelError]:
            failure = self._take_failure("list_files")
            if failure is not None:
                return Err(failure)
            commit = self._commits.get(revision.id)
            if commit is None:
                return Ok(())
            return Ok(p for p in sorted(commit.files) if glob_match(pattern, p))

        return FileListing(load)

    # -------------------------------------------------------------------------
    # BranchWriter / Remote
    # -------------------------------------------------------------------------

    def default_branch(self) -> Result[str, MonorelError]:
        return Ok(self._default_branch)

    def branch_head(self, branch: str) -> Result[Revision | None, MonorelError]:
        sha = self._branches.get(branch)
        return Ok(None if sha is None else Revision(sha))

    def update_branch(
        self,
        branch: str,
        base_revision: Revision,
        edits: Sequence[FileEdit],
        *,
        message: str | None = None,
    ) -> Result[Revision, MonorelError]:
        failure = self._take_failure("update_branch")
        if failure is not None:
            return Err(failure)

        base = self._commits.get(base_revision.id)
        if base is None:
            return Err(not_found(f"unknown base revision {base_revision.short()}"))

        current = self._branches.get(branch)
        if current is not None and current != base_revision.id:
            return Err(
                conflict(
                    f"branch {branch} moved",
                    hint=f"expected {base_revision.short()}, found {current[:12]}",
                )
            )

        files = _apply(base.files, edits)
        new_id = self._store(base_revision.id, files, message or f"Update {branch}")
        self._branches[branch] = new_id
        return Ok(Revision(new_id))

    def open_or_update_release_request(
        self, branch: str, title: str, body: str
    ) -> Result[RequestId, MonorelError]:
        failure = self._take_failure("open_or_update_release_request")
        if failure is not None:
            return Err(failure)
        if branch not in self._branches:
            return Err(not_found(f"branch {branch} does not exist"))

        existing = self.requests.get(branch)
        if existing is None:
            number = len(self.requests) + 1
            existing = MemoryRequest(number=number, branch=branch, title=title, body=body)
            self.requests[branch] = existing
        else:
            existing.title = title
            existing.body = body
            existing.updates += 1
        return Ok(RequestId(existing.number))

    def trigger_dispatch(self, event: DispatchEvent) -> Result[None, MonorelError]:
        failure = self._take_failure("trigger_dispatch")
        if failure is not None:
            return Err(failure)
        self.dispatches.append(event)
        return Ok(None)

    # -------------------------------------------------------------------------

    def _take_failure(self, operation: str) -> MonorelError | None:
        pending = self._failures.get(operation)
        if not pending:
            return None
        return pending.pop(0)

    def _store(self, parent: str | None, files: Mapping[str, str], message: str = "") -> str:
        digest = hashlib.sha1()
        digest.update((parent or "").encode())
        digest.update(str(len(self._commits)).encode())
        for path in sorted(files):
            digest.update(path.encode())
            digest.update(b"\0")
            digest.update(files[path].encode())
            digest.update(b"\0")
        sha = digest.hexdigest()
        self._commits[sha] = _Commit(parent=parent, files=dict(files), message=message)
        return sha


def _apply(files: Mapping[str, str], edits: Sequence[FileEdit]) -> dict[str, str]:
    out = dict(files)
    for edit in edits:
        path = edit.path.strip("/")
        if edit.content is None:
            out.pop(path, None)
        else:
            out[path] = edit.content
    return out
