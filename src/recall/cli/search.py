"""recall search — query past messages.

Usage:
  recall search "sqlite locking"                   # full-text, newest first
  recall search "how did we fix the deploy" --mode hybrid --limit 5
  recall search "deploy" --before <cursor> --json  # next page as JSON
"""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from recall.cli.errors import err_search_failed, err_semantic_unavailable
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit, require_db
from recall.runtime import open_runtime
from recall.search.results import SearchResponse
from recall.search.router import SearchFailedError, SearchUnavailableError

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search query.")],
    db: DbOption = DEFAULT_DB,
    mode: Annotated[
        str,
        typer.Option("--mode", "-m", help="fts, semantic or hybrid."),
    ] = "fts",
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum results (clamped to search.max_limit)."),
    ] = None,
    before: Annotated[
        str | None,
        typer.Option("--before", help="Cursor from a previous page (fts mode)."),
    ] = None,
    include_total: Annotated[
        bool,
        typer.Option("--include-total", help="Count all matches (fts mode)."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the response as JSON."),
    ] = False,
) -> None:
    """Search messages by full text, meaning, or both."""
    require_db(console, db)
    cfg = load_config_or_exit(console, db)
    runtime = open_runtime(db, cfg)

    router = runtime.router
    params = router.params(
        q=query, limit=limit, before=before, include_total=include_total, mode=mode
    )
    try:
        response = router.search(params)
    except SearchUnavailableError as exc:
        console.print(err_semantic_unavailable(cfg.embedding.model))
        raise typer.Exit(1) from exc
    except SearchFailedError as exc:
        console.print(err_search_failed())
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
        return

    if response.degraded:
        console.print("[dim]Semantic search unavailable; showing full-text results.[/]")
    _print_table(response, params.mode)


def _print_table(response: SearchResponse, mode: str) -> None:
    if not response.items:
        console.print("[dim]No results.[/]")
        return

    table = Table(title=f"Results ({mode})", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Role")
    table.add_column("Conversation")
    table.add_column("Created", style="dim")
    table.add_column("Snippet", overflow="fold")
    table.add_column("Sources", style="dim")

    for i, item in enumerate(response.items, start=1):
        sources = ", ".join(s.strategy or s.source for s in item.sources)
        table.add_row(
            str(i),
            f"{item.score:.4f}",
            item.role,
            item.conversation_title or item.conversation_id,
            item.created_at,
            item.snippet,
            sources,
        )
    console.print(table)

    page = response.pagination
    if page.total_count is not None:
        console.print(f"  [dim]{page.total_count} matches in total[/]")
    if page.has_older and page.oldest_cursor:
        console.print(f"  [dim]Older results:[/] --before {page.oldest_cursor}")
