"""The one place monorel starts child processes.

Only the `git` executable is run today (see `monorel.repository.git`). Git
plumbing reads blobs from stdin and builds commits against a scratch index
named in `GIT_INDEX_FILE`, hence `input` and `env` below. File content
travels as bytes (`binary=True`) so that line endings and encodings are
left for the caller to judge.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, overload

from monorel.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

# Exit status recorded when no process ran, or when it was killed on timeout.
NOT_RUN = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not be started or exited non-zero."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def started(self) -> bool:
        return self.returncode != NOT_RUN

    def __str__(self) -> str:
        shown = list(self.command[:3])
        if len(self.command) > 3:
            shown.append("...")
        return f"{' '.join(shown)} failed (exit {self.returncode})"


@overload
def run(
    cmd: Sequence[str],
    cwd: Path,
    env: Mapping[str, str] | None = ...,
    *,
    input: str | bytes | None = ...,
    timeout: float | None = ...,
    binary: Literal[False] = ...,
) -> Result[str, ProcessError]: ...


@overload
def run(
    cmd: Sequence[str],
    cwd: Path,
    env: Mapping[str, str] | None = ...,
    *,
    input: str | bytes | None = ...,
    timeout: float | None = ...,
    binary: Literal[True],
) -> Result[bytes, ProcessError]: ...


@overload
def run(
    cmd: Sequence[str],
    cwd: Path,
    env: Mapping[str, str] | None = ...,
    *,
    input: str | bytes | None = ...,
    timeout: float | None = ...,
    binary: bool,
) -> Result[str, ProcessError] | Result[bytes, ProcessError]: ...


def run(
    cmd: Sequence[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    input: str | bytes | None = None,
    timeout: float | None = None,
    binary: bool = False,
) -> Result[str, ProcessError] | Result[bytes, ProcessError]:
    """Run `cmd` in `cwd` and return its stdout.

    `env` entries are added to the inherited environment rather than
    replacing it. With `binary` the output is returned undecoded and a str
    `input` is sent as UTF-8; the `ProcessError` fields are always text.
    """
    if binary and isinstance(input, str):
        input = input.encode("utf-8")
    elif not binary and isinstance(input, bytes):
        input = input.decode("utf-8")
    command = tuple(cmd)
    merged_env = {**os.environ, **env} if env is not None else None
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            env=merged_env,
            input=input,
            capture_output=True,
            text=not binary,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = _text(e.stdout) if e.stdout is not None else ""
        return Err(ProcessError(command, NOT_RUN, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(command, NOT_RUN, "", str(e)))

    if completed.returncode == 0:
        return Ok(completed.stdout)
    return Err(
        ProcessError(
            command, completed.returncode, _text(completed.stdout), _text(completed.stderr)
        )
    )


def _text(output: str | bytes) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
