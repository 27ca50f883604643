"""recall forget — remove a conversation from search.

Soft-deletes the conversation (its messages drop out of full-text search and
future indexing runs) and deletes its vectors from every strategy table.

Usage:
  recall forget --conversation conv-42
  recall forget --conversation conv-42 --yes
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from recall.cli.errors import err_conversation_not_found
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit, require_db
from recall.db.vectors import delete_document_vectors
from recall.runtime import open_runtime

console = Console()


def forget_cmd(
    conversation: Annotated[
        str,
        typer.Option("--conversation", "-c", help="Conversation id to forget."),
    ],
    db: DbOption = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Forget a conversation: hide its messages and delete its vectors."""
    require_db(console, db)
    cfg = load_config_or_exit(console, db)
    runtime = open_runtime(db, cfg)
    repo = runtime.repo

    existing = repo.get_conversation(conversation)
    if existing is None:
        console.print(err_conversation_not_found(conversation))
        raise typer.Exit(0)

    console.print(f"\nForget conversation: [bold]{existing.title or existing.id}[/]")
    if not yes:
        if not typer.confirm("Confirm?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    repo.soft_delete_conversation(conversation)
    if runtime.indexer is not None:
        deleted = runtime.indexer.delete_conversation(conversation)
    else:
        deleted = delete_document_vectors(repo.database, conversation)

    console.print(f"  [green]✓[/] Conversation hidden, {deleted} vectors deleted")
