"""Pick a backend from a user-supplied repository spec."""

from __future__ import annotations

from pathlib import Path

from monorel.core.errors import MonorelError
from monorel.core.result import Err, Ok, Result

from .filesystem import FileSystemRepository
from .git import WorkingCopyRepository
from .github import GitHubRepository, parse_slug
from .protocol import RepositoryBackend

__all__ = ["open_repository"]


def open_repository(
    spec: str | Path,
    *,
    credential: str | None = None,
    ref: str | None = None,
    prefer_remote: bool = False,
) -> Result[RepositoryBackend, MonorelError]:
    """Open a repository.

    - An existing directory holding `.git` opens as a working copy; with
      `prefer_remote` and a credential it opens its GitHub `origin` instead.
    - Any other existing directory opens as a read-only filesystem snapshot.
    - `owner/name` or a GitHub URL opens the hosted repository.
    """
    path = Path(spec).expanduser()
    if path.is_dir():
        if (path / ".git").exists():
            working_copy = WorkingCopyRepository(path, ref=ref)
            if prefer_remote and credential:
                slug = working_copy.remote_slug()
                if slug is not None:
                    owner, name = slug.split("/", 1)
                    return Ok(GitHubRepository(owner, name, credential=credential, ref=ref))
            return Ok(working_copy)
        return Ok(FileSystemRepository(path))

    slug = parse_slug(str(spec))
    if slug is None:
        return Err(
            MonorelError(
                kind="invalid_input",
                message=f"not a directory or repository slug: {spec}",
                hint="Pass a local path, owner/name, or https://github.com/owner/name",
            )
        )
    owner, name = slug.split("/", 1)
    return Ok(GitHubRepository(owner, name, credential=credential, ref=ref))
