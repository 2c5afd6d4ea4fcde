"""Read-only repository backed by a plain directory."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from monorel.core.errors import MonorelError, not_found, parse_error, transient
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger

from .glob import glob_match
from .types import FileListing, Revision

__all__ = ["FileSystemRepository", "WORKTREE"]

log = get_logger(__name__)

WORKTREE = Revision("worktree")

_SKIP_DIRS = frozenset({".git", ".hg", ".svn"})


class FileSystemRepository:
    """A directory snapshot.

    There is exactly one revision, `WORKTREE`; reads at any other revision
    fail with not_found. The backend cannot write, so it offers no branch or
    remote capability.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    @property
    def name(self) -> str:
        return self.root.name

    def current_revision(self) -> Result[Revision, MonorelError]:
        return Ok(WORKTREE)

    def _resolve(self, path: str) -> Path | None:
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        return candidate

    def read_file(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        if revision != WORKTREE:
            return Err(not_found(f"unknown revision {revision}", path=path))

        target = self._resolve(path)
        if target is None:
            return Err(not_found("path escapes repository root", path=path))

        try:
            return Ok(target.read_bytes().decode("utf-8"))
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return Err(not_found("file not found", path=path))
        except UnicodeDecodeError as e:
            return Err(parse_error("file is not valid UTF-8", path=path, hint=str(e)))
        except OSError as e:
            log.warning("read_failed", path=path, error=str(e))
            return Err(transient("failed to read file", path=path, hint=str(e)))

    def list_files(self, pattern: str, revision: Revision) -> FileListing:
        def load() -> Result[Iterable[str], MonorelError]:
            if revision != WORKTREE:
                return Ok(())
            if not self.root.is_dir():
                return Err(transient("repository root is not a directory", path=str(self.root)))
            return Ok(self._walk(pattern))

        return FileListing(load)

    def _walk(self, pattern: str) -> Iterable[str]:
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            for filename in sorted(filenames):
                rel = filename if rel_dir == "." else f"{rel_dir}/{filename}"
                if glob_match(pattern, rel):
                    yield rel
