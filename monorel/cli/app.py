from __future__ import annotations

import typer

from monorel import __version__
from monorel.cli.commands.inspect_cmd import inspect
from monorel.cli.commands.package_cmd import package_app
from monorel.logging import configure_logging

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Discover packages, maintain changelogs and request releases.",
)


# Commands
app.command()(inspect)

# Sub-apps
app.add_typer(package_app, name="package")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug events."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors."),
    json_log: bool = typer.Option(False, "--json-log", help="Log as JSON lines on stderr."),
) -> None:
    configure_logging(verbose=verbose, quiet=quiet, json_log=json_log)


def main() -> None:
    app()
