"""Ok/Err values for operations that can fail in expected ways.

Reading a file at a revision, parsing a manifest and moving a branch all
return a Result. Callers branch on it with `isinstance` or `match`:

    match backend.read_file("Cargo.toml", revision):
        case Ok(text):
            ...
        case Err(error) if error.kind == "not_found":
            ...
        case Err():
            ...

Exceptions are left for programming errors.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import NoReturn


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def unwrap(self) -> T:
        return self.value

    def unwrap_or[D](self, default: D) -> T:
        return self.value

    def map[U](self, f: Callable[[T], U]) -> Ok[U]:
        """Apply `f` to the value."""
        return Ok(f(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failure carrying an error payload, normally a MonorelError."""

    error: E

    def unwrap(self) -> NoReturn:
        """Fail loudly; only for call sites that already checked for Ok.

        Raises:
            ValueError: Always.
        """
        raise ValueError(f"unwrap() on Err: {self.error}")

    def unwrap_or[D](self, default: D) -> D:
        return default

    def map[U](self, f: Callable[[object], U]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
