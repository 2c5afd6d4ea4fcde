"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from monorel.core.errors import MonorelError, exit_code_for
from monorel.core.result import Err, Result
from monorel.output.console import ConsoleProtocol, RichConsole, Style


def fail(error: MonorelError, console: ConsoleProtocol | None = None) -> NoReturn:
    """Report an error and exit with the code for its kind."""
    out = console or RichConsole(stderr=True)
    out.error(error.message if error.path is None else f"{error.message} ({error.path})")
    if error.hint:
        out.print(f"hint: {error.hint}", Style.DIM)
    raise typer.Exit(code=int(exit_code_for(error.kind)))


def unwrap_or_exit[T](result: Result[T, MonorelError], console: ConsoleProtocol | None = None) -> T:
    """Return the value of an Ok, or report the error and exit.

    Replaces the usual pattern:
        if isinstance(result, Err):
            console.error(result.error.message)
            raise typer.Exit(code=...)
    """
    if isinstance(result, Err):
        fail(result.error, console)
    return result.value
