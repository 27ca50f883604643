"""recall reindex — drop all vectors and rewind the watermark.

Needed after changing the embedding model or the chunker settings: existing
vectors keep the old dimensions and chunk boundaries otherwise.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from recall.cli.index import run_indexer
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit, require_db
from recall.db.vectors import clear_all_vector_tables
from recall.runtime import open_runtime

console = Console()


def reindex_cmd(
    db: DbOption = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    run: Annotated[
        bool,
        typer.Option("--run", help="Re-index immediately after clearing."),
    ] = False,
) -> None:
    """Clear every strategy's vectors and reset the indexing watermark."""
    require_db(console, db)
    cfg = load_config_or_exit(console, db)

    if not yes:
        if not typer.confirm("Delete all vectors and re-index from scratch?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    runtime = open_runtime(db, cfg)
    if runtime.indexer is not None:
        runtime.indexer.reindex_all()
    else:
        clear_all_vector_tables(runtime.repo.database)
        runtime.repo.reset_all_watermarks()
        runtime.repo.reset_watermark(cfg.config_key)
    console.print("  [green]✓[/] Vectors cleared, watermark reset")

    if run:
        run_indexer(console, db, cfg)
    else:
        console.print("  Run:  recall index")
