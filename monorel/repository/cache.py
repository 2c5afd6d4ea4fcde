"""Per-revision file cache.

A discovery or build pass reads the same manifests repeatedly (root manifest
for workspace members, lockfiles shared by many packages). FileCache sits in
front of a backend and memoizes results for one revision at a time.
"""

from __future__ import annotations

from dataclasses import dataclass

from monorel.core.errors import MonorelError
from monorel.core.result import Err, Ok, Result
from monorel.logging import get_logger

from .protocol import RepositoryBackend
from .types import Revision

__all__ = ["CacheStats", "FileCache"]

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    entries: int


class FileCache:
    """Memoize `(path, revision) -> content | not_found`.

    Successes and not_found results are stored. Any other failure (transient
    I/O, network) is returned but never stored, so the next `get` asks the
    backend again. Entries belong to a single revision; asking for another
    revision discards everything cached so far.

    Not safe for concurrent use; each task owns its own Project and cache.
    """

    def __init__(self, backend: RepositoryBackend) -> None:
        self.backend = backend
        self._revision: Revision | None = None
        self._entries: dict[str, Result[str, MonorelError]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def revision(self) -> Revision | None:
        return self._revision

    def get(self, path: str, revision: Revision) -> Result[str, MonorelError]:
        key = path.strip("/")
        if revision != self._revision:
            if self._entries:
                log.debug("cache_reset", entries=len(self._entries), revision=revision.short())
            self._entries.clear()
            self._revision = revision

        cached = self._entries.get(key)
        if cached is not None:
            self._hits += 1
            return cached

        self._misses += 1
        result = self.backend.read_file(key, revision)
        match result:
            case Ok():
                self._entries[key] = result
            case Err(error) if error.kind == "not_found":
                self._entries[key] = result
            case Err(error):
                log.debug("cache_skip", path=key, revision=revision.short(), kind=error.kind)
        return result

    def discard_missing(self) -> int:
        """Drop cached not_found entries; call after mutating the repository."""
        missing = [k for k, v in self._entries.items() if isinstance(v, Err)]
        for key in missing:
            del self._entries[key]
        return len(missing)

    def clear(self) -> None:
        self._entries.clear()
        self._revision = None

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, entries=len(self._entries))
