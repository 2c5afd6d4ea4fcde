"""Inspect command - show a project's packages at its current revision."""

from __future__ import annotations

import typer

from monorel.cli.commands._helpers import unwrap_or_exit
from monorel.cli.context import build_context
from monorel.core.errors import exit_code_for
from monorel.core.result import Ok
from monorel.output.console import Style


def inspect(
    repo: str = typer.Argument(".", help="Local path, owner/name or GitHub URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="GITHUB_TOKEN", help="Bearer credential for GitHub."
    ),
) -> None:
    """List the packages of a project and any manifests that failed to load."""
    ctx = unwrap_or_exit(build_context(repo, token=token))
    project = ctx.project
    console = ctx.console

    console.header(project.name())
    console.print(f"repository: {project.backend.name}", Style.DIM)
    console.print(f"revision:   {project.revision.short()}", Style.DIM)

    discovery = project.discover()
    rows: list[list[str]] = []
    for package in sorted(discovery.packages, key=lambda p: p.manifest_path):
        version = package.version()
        rows.append(
            [
                package.name().unwrap(),
                str(version.value) if isinstance(version, Ok) else "?",
                package.kind.value,
                package.directory or ".",
                "yes" if package.is_primary() else "",
            ]
        )
    if rows:
        console.table(["package", "version", "kind", "path", "primary"], rows)
    else:
        console.warning("no packages found")

    for error in discovery.errors:
        console.error(error.pretty())

    if discovery.errors:
        raise typer.Exit(code=int(exit_code_for(discovery.errors[0].kind)))
