"""Capability protocols implemented by repository backends.

Backends are independent classes; none inherits from another. Callers ask
for a capability (`as_branch_writer`, `as_remote`) instead of checking which
backend they hold.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from monorel.core.errors import MonorelError
from monorel.core.result import Result

from .types import DispatchEvent, FileEdit, FileListing, RequestId, Revision

__all__ = [
    "BranchWriter",
    "Remote",
    "RepositoryBackend",
    "as_branch_writer",
    "as_remote",
]


@runtime_checkable
class RepositoryBackend(Protocol):
    """Read access to files at a revision."""

    @property
    def name(self) -> str:
        """Short human-readable repository name."""
        ...

    def read_file(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        """Read a text file.

        Returns:
            Ok(text), Err(not_found) when the path is absent at that revision,
            Err(transient) on I/O or network failure.
        """
        ...

    def list_files(self, pattern: str, revision: Revision) -> FileListing:
        """List paths matching a glob at a revision (lazily, restartably)."""
        ...

    def current_revision(self) -> Result[Revision, MonorelError]: ...


@runtime_checkable
class BranchWriter(Protocol):
    """Atomic branch updates."""

    def branch_head(self, branch: str) -> Result[Revision | None, MonorelError]:
        """Return the branch's head revision, or None if it does not exist."""
        ...

    def update_branch(
        self,
        branch: str,
        base_revision: Revision,
        edits: Sequence[FileEdit],
        *,
        message: str | None = None,
    ) -> Result[Revision, MonorelError]:
        """Commit `edits` on top of `base_revision` and move `branch` to it.

        The move is a compare-and-swap: the branch must be absent or point at
        `base_revision`, otherwise Err(conflict) and nothing changes.
        """
        ...


@runtime_checkable
class Remote(BranchWriter, Protocol):
    """A hosted repository that can carry release requests."""

    def default_branch(self) -> Result[str, MonorelError]: ...

    def open_or_update_release_request(
        self, branch: str, title: str, body: str
    ) -> Result[RequestId, MonorelError]:
        """Open a request from `branch`, or update the one already open for it."""
        ...

    def trigger_dispatch(self, event: DispatchEvent) -> Result[None, MonorelError]: ...


def as_branch_writer(backend: object) -> BranchWriter | None:
    if isinstance(backend, BranchWriter):
        return backend
    return None


def as_remote(backend: object) -> Remote | None:
    if isinstance(backend, Remote):
        return backend
    return None
