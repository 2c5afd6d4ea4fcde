from __future__ import annotations

from dataclasses import dataclass

from monorel.core.errors import MonorelError
from monorel.core.result import Err, Ok, Result
from monorel.output.console import ConsoleProtocol, RichConsole
from monorel.project import Project
from monorel.repository import open_repository


@dataclass(frozen=True, slots=True)
class CLIContext:
    project: Project
    console: ConsoleProtocol


def build_context(
    repo: str,
    *,
    token: str | None = None,
    prefer_remote: bool = False,
    console: ConsoleProtocol | None = None,
) -> Result[CLIContext, MonorelError]:
    """Open the repository named on the command line and bind a project to it."""
    backend = open_repository(repo, credential=token, prefer_remote=prefer_remote)
    if isinstance(backend, Err):
        return backend

    project = Project.open(backend.value)
    if isinstance(project, Err):
        return project

    return Ok(CLIContext(project=project.value, console=console or RichConsole()))
