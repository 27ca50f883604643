"""recall import — load a conversation export into the message store.

Usage:
  recall import export.json
  recall import export.json --index
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from recall.cli.errors import err_import_format
from recall.cli.index import run_indexer
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit, require_db
from recall.db.repository import MessageRepository
from recall.db.schema import open_database
from recall.ingest.importer import ExportFormatError, import_conversations, load_export

console = Console()


def import_cmd(
    path: Annotated[
        Path,
        typer.Argument(help="JSON export with conversations and messages."),
    ],
    db: DbOption = DEFAULT_DB,
    index: Annotated[
        bool,
        typer.Option("--index", help="Run the indexer right after importing."),
    ] = False,
) -> None:
    """Import conversations and messages from a JSON export."""
    require_db(console, db)
    if not path.exists():
        console.print(err_import_format(f"File not found: '{path}'"))
        raise typer.Exit(1)

    try:
        raw = load_export(path)
        repo = MessageRepository(open_database(db))
        summary = import_conversations(repo, raw)
    except ExportFormatError as exc:
        console.print(err_import_format(str(exc)))
        raise typer.Exit(1) from exc

    console.print(
        f"  [green]✓[/] {summary.conversations} conversations, "
        f"{summary.messages_added} new messages"
        + (f" [dim]({summary.messages_skipped} already stored)[/]" if summary.messages_skipped else "")
    )

    if index:
        cfg = load_config_or_exit(console, db)
        run_indexer(console, db, cfg)
