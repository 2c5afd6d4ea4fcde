"""Package commands - create packages, request releases, print notes."""

from __future__ import annotations

from pathlib import Path

import typer

from monorel.changelog import Changelog, Release, render_changelog, render_release
from monorel.cli.commands._helpers import fail, unwrap_or_exit
from monorel.cli.context import build_context
from monorel.core.config import DEFAULT_CHANGELOG
from monorel.core.errors import MonorelError, not_found
from monorel.output.console import ConsoleProtocol, RichConsole, Style
from monorel.package import PackageKind, new_manifest_text
from monorel.platform.files import atomic_write_text
from monorel.release.builder import ReleaseBuilder, ReleaseRequest

package_app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Create packages and request releases.",
)

_INITIAL_VERSION = "0.1.0"


@package_app.command("init")
def init(
    name: str = typer.Argument(..., help="Package name."),
    kind: str = typer.Option("cargo", "--kind", help="Manifest format: cargo or npm."),
    path: Path | None = typer.Option(
        None, "--path", help="Package directory (default: ./<name>)."
    ),
) -> None:
    """Write a new manifest and changelog for a package."""
    console = RichConsole()
    try:
        package_kind = PackageKind(kind.strip().lower())
    except ValueError:
        fail(
            MonorelError(
                kind="invalid_input",
                message=f"unknown package kind: {kind}",
                hint="use cargo or npm",
            ),
            console,
        )

    directory = (path if path is not None else Path(name)).expanduser()
    manifest = directory / package_kind.manifest_name
    try:
        atomic_write_text(
            manifest, new_manifest_text(package_kind, name, _INITIAL_VERSION), overwrite=False
        )
    except FileExistsError:
        fail(
            MonorelError(
                kind="invalid_input",
                message="a manifest already exists",
                path=str(manifest),
            ),
            console,
        )

    fresh = Changelog.new()
    document = Changelog(
        title=fresh.title,
        description=fresh.description,
        releases=(Release(version=None),),
    )
    try:
        atomic_write_text(directory / DEFAULT_CHANGELOG, render_changelog(document), overwrite=False)
    except FileExistsError:
        console.info(f"kept existing {DEFAULT_CHANGELOG}")

    console.success(f"created {package_kind.value} package {name} in {directory}")


def _print_request(console: ConsoleProtocol, request: ReleaseRequest, *, planned: bool) -> None:
    console.header(request.title.replace("`", ""))
    console.print(f"version: {request.previous_version} -> {request.version}")
    console.print(f"branch:  {request.branch}")
    if request.edits:
        console.print("edits:")
        for edit in request.edits:
            console.print(f"  {edit.path}", Style.DIM)
    else:
        console.print("edits:   none (branch already prepared)", Style.DIM)

    if planned:
        console.warning("dry run: nothing was written")
        return
    if request.revision is not None:
        console.print(f"commit:  {request.revision.short()}", Style.DIM)
    if request.request_id is not None:
        console.success(f"release request {request.request_id} is open")


@package_app.command("release")
def release(
    name: str = typer.Argument(..., help="Package to release."),
    target: str | None = typer.Argument(
        None,
        metavar="[BUMP|VERSION]",
        help="major, minor, patch, rc, beta, alpha or an explicit version. "
        "Inferred from the changelog when omitted.",
    ),
    repo: str = typer.Option(".", "--repo", help="Local path, owner/name or GitHub URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="GITHUB_TOKEN", help="Bearer credential for GitHub."
    ),
    date: str | None = typer.Option(None, "--date", help="Release date (YYYY-MM-DD)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Compute the release only."),
) -> None:
    """Request a release: bump the version, update the changelog and open a request."""
    ctx = unwrap_or_exit(build_context(repo, token=token, prefer_remote=not dry_run))
    builder = ReleaseBuilder(ctx.project, console=ctx.console)

    if dry_run:
        planned = unwrap_or_exit(builder.plan_release(name, target, date), ctx.console)
        _print_request(ctx.console, planned, planned=True)
        typer.echo(planned.body)
        return

    requested = unwrap_or_exit(builder.request_release(name, target, date), ctx.console)
    _print_request(ctx.console, requested, planned=False)


@package_app.command("changelog")
def changelog(
    name: str = typer.Argument(..., help="Package name."),
    version: str | None = typer.Option(
        None, "--release", help="Version to print (default: Unreleased, else the latest)."
    ),
    repo: str = typer.Option(".", "--repo", help="Local path, owner/name or GitHub URL."),
    token: str | None = typer.Option(
        None, "--token", envvar="GITHUB_TOKEN", help="Bearer credential for GitHub."
    ),
) -> None:
    """Print one release of a package's changelog as Markdown."""
    ctx = unwrap_or_exit(build_context(repo, token=token))
    package = unwrap_or_exit(ctx.project.get_package(name), ctx.console)
    document = unwrap_or_exit(package.changelog(), ctx.console)
    if document is None:
        fail(not_found("package has no changelog", path=package.changelog_path), ctx.console)

    if version is not None:
        entry = document.get_release(version)
    else:
        entry = document.unreleased() or document.latest()
    if entry is None:
        fail(
            not_found(f"no release {version or 'entries'} in changelog", path=package.changelog_path),
            ctx.console,
        )

    typer.echo(render_release(entry), nl=False)
