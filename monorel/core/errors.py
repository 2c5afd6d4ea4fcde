"""Error payloads and CLI exit codes.

All core operations report failures as a MonorelError carrying a `kind`.
Callers branch on the kind (e.g. retry a `transient` read, recompute after a
`conflict`); collaborator surfaces render `pretty()` and map the kind to an
exit code with `exit_code_for`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Literal

__all__ = [
    "ErrorCode",
    "ErrorKind",
    "MonorelError",
    "conflict",
    "exit_code_for",
    "invalid_bump",
    "not_found",
    "parse_error",
    "transient",
]

ErrorKind = Literal[
    "not_found",
    "transient",
    "parse_error",
    "conflict",
    "nothing_to_release",
    "invalid_bump",
    "unsupported",
    "invalid_input",
    "permission_denied",
]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: User error (bad input, invalid bump, nothing to release)
    - 2: Environment error (unsupported backend, missing git)
    - 3: Content error (malformed manifest or changelog)
    - 4: Network error (transient backend failure)
    - 5: Missing file or package
    - 6: Concurrent update lost the race too many times
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    PARSE_ERROR = 3
    NETWORK_ERROR = 4
    NOT_FOUND = 5
    CONFLICT = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK


@dataclass(frozen=True, slots=True)
class MonorelError:
    """A failed core operation.

    Attributes:
        kind: Machine-readable category; the contract callers depend on.
        message: Human-readable summary.
        hint: Optional remediation or raw backend detail.
        path: Repository path the error concerns, when there is one.
    """

    kind: ErrorKind
    message: str
    hint: str | None = None
    path: str | None = None

    @property
    def is_retryable(self) -> bool:
        return self.kind in ("transient", "conflict")

    def pretty(self) -> str:
        text = self.message
        if self.path and self.path not in text:
            text = f"{text} ({self.path})"
        if self.hint:
            text = f"{text}: {self.hint}"
        return text


def not_found(message: str, *, path: str | None = None, hint: str | None = None) -> MonorelError:
    return MonorelError(kind="not_found", message=message, hint=hint, path=path)


def transient(message: str, *, path: str | None = None, hint: str | None = None) -> MonorelError:
    return MonorelError(kind="transient", message=message, hint=hint, path=path)


def parse_error(message: str, *, path: str | None = None, hint: str | None = None) -> MonorelError:
    return MonorelError(kind="parse_error", message=message, hint=hint, path=path)


def conflict(message: str, *, path: str | None = None, hint: str | None = None) -> MonorelError:
    return MonorelError(kind="conflict", message=message, hint=hint, path=path)


def invalid_bump(message: str, *, hint: str | None = None) -> MonorelError:
    return MonorelError(kind="invalid_bump", message=message, hint=hint)


_EXIT_CODES: dict[ErrorKind, ErrorCode] = {
    "not_found": ErrorCode.NOT_FOUND,
    "transient": ErrorCode.NETWORK_ERROR,
    "parse_error": ErrorCode.PARSE_ERROR,
    "conflict": ErrorCode.CONFLICT,
    "nothing_to_release": ErrorCode.USER_ERROR,
    "invalid_bump": ErrorCode.USER_ERROR,
    "unsupported": ErrorCode.ENV_ERROR,
    "invalid_input": ErrorCode.USER_ERROR,
    "permission_denied": ErrorCode.ENV_ERROR,
}


def exit_code_for(kind: ErrorKind) -> ErrorCode:
    """Map an error kind to the CLI exit code."""
    return _EXIT_CODES.get(kind, ErrorCode.USER_ERROR)
