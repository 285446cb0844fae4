from __future__ import annotations

import typer

from ship import __version__
from ship.cli.commands.run_cmd import run
from ship.cli.commands.stamp_cmd import stamp
from ship.cli.commands.store_cmd import store_app
from ship.cli.commands.targets_cmd import targets

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(run)
app.command()(targets)
app.command()(stamp)

# Sub-apps
app.add_typer(store_app, name="store", help="Seed and inspect the artifact store.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Build, package and publish release artifacts."""


def main() -> None:
    app()
