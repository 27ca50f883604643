"""Recall CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from recall.cli.forget import forget_cmd
from recall.cli.importer import import_cmd
from recall.cli.index import index_cmd
from recall.cli.init import init_cmd
from recall.cli.reindex import reindex_cmd
from recall.cli.search import search_cmd
from recall.cli.status import status_cmd
from recall.logging_config import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("recall")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"recall {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="recall",
    help=(
        "Recall — hybrid search over past conversations.\n\n"
        "  recall index   Embed new messages (incremental, resumable).\n"
        "  recall search  Full-text, semantic or hybrid search."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Recall — hybrid search over past conversations."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("import")(import_cmd)
app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("forget")(forget_cmd)
app.command("reindex")(reindex_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Recall version."""
    typer.echo(f"recall {_installed_version()}")


if __name__ == "__main__":
    app()
