"""Value types shared by every repository backend."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from monorel.core.errors import MonorelError
from monorel.core.result import Err, Ok, Result

__all__ = [
    "DispatchEvent",
    "FileEdit",
    "FileListing",
    "RequestId",
    "Revision",
]


@dataclass(frozen=True, slots=True)
class Revision:
    """Opaque snapshot identifier.

    Equality is the only meaningful relation: it partitions the file cache.
    Revisions are not ordered.
    """

    id: str

    def short(self) -> str:
        return self.id[:12]

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True, slots=True)
class FileEdit:
    """Replace (or, with content None, delete) one file in a commit."""

    path: str
    content: str | None

    @property
    def is_delete(self) -> bool:
        return self.content is None


def _empty_payload() -> dict[str, object]:
    return {}


@dataclass(frozen=True, slots=True)
class DispatchEvent:
    """Downstream trigger emitted after a release request merges."""

    event_type: str
    payload: dict[str, object] = field(default_factory=_empty_payload)


@dataclass(frozen=True, slots=True)
class RequestId:
    """Identifier of a release request (pull request) on a remote."""

    number: int
    url: str | None = None

    def __str__(self) -> str:
        return f"#{self.number}"


class FileListing:
    """Lazy, finite, restartable sequence of repository paths.

    Each iteration asks the backend again. A listing that fails yields
    nothing and records the failure in `error`; callers that must tell an
    empty listing from a failed one use `collect()`.
    """

    def __init__(self, load: Callable[[], Result[Iterable[str], MonorelError]]) -> None:
        self._load = load
        self.error: MonorelError | None = None

    def collect(self) -> Result[list[str], MonorelError]:
        result = self._load()
        if isinstance(result, Err):
            self.error = result.error
            return result
        self.error = None
        return Ok(list(result.value))

    def __iter__(self) -> Iterator[str]:
        result = self._load()
        if isinstance(result, Err):
            self.error = result.error
            return
        self.error = None
        yield from result.value
