"""recall index — embed messages added since the last run.

Usage:
  recall index                 # catch up, then exit
  recall index --watch         # keep indexing every indexer.interval_ms
  recall index --max-runs 1    # index at most one batch
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from recall.cli.errors import err_no_api_key
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit, require_db
from recall.config import RecallConfig
from recall.indexer.scheduler import IndexScheduler
from recall.indexer.service import IndexingResult, MessageIndexer
from recall.runtime import open_runtime

console = Console()


def index_cmd(
    db: DbOption = DEFAULT_DB,
    watch: Annotated[
        bool,
        typer.Option("--watch", "-w", help="Keep running and index on an interval."),
    ] = False,
    interval_ms: Annotated[
        int | None,
        typer.Option("--interval-ms", help="Override indexer.interval_ms for --watch."),
    ] = None,
    max_runs: Annotated[
        int | None,
        typer.Option("--max-runs", help="Stop after this many batches."),
    ] = None,
) -> None:
    """Index new messages into every enabled strategy's vector table."""
    require_db(console, db)
    cfg = load_config_or_exit(console, db)

    if watch:
        _watch(db, cfg, interval_ms or cfg.indexer.interval_ms)
    else:
        run_indexer(console, db, cfg, max_runs=max_runs)


def _require_indexer(out: Console, indexer: MessageIndexer | None, cfg: RecallConfig) -> MessageIndexer:
    if indexer is None:
        out.print(err_no_api_key(cfg.embedding.model))
        raise typer.Exit(1)
    return indexer


def run_indexer(
    out: Console,
    db: Path,
    cfg: RecallConfig,
    max_runs: int | None = None,
) -> list[IndexingResult]:
    """Run batches until caught up (or *max_runs*), with a spinner per batch."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=out,
    ) as prog:
        task = prog.add_task("Indexing…", total=None)

        def _on_batch(result: IndexingResult) -> None:
            prog.update(task, description=f"Indexing… {result.messages_indexed} messages in last batch")

        runtime = open_runtime(db, cfg, on_complete=_on_batch)
        indexer = _require_indexer(out, runtime.indexer, cfg)
        results = indexer.run_until_caught_up(max_runs=max_runs)

    messages = sum(r.messages_indexed for r in results)
    chunks = sum(r.chunks_created for r in results)
    strategies = ", ".join(s.id for s in indexer.strategies)
    if messages == 0:
        out.print("  [dim]Index is up to date.[/]")
    else:
        out.print(
            f"  [green]✓[/] {messages} messages → {chunks} chunks "
            f"[dim]({strategies})[/]"
        )
    if results and results[-1].has_more:
        out.print("  [yellow]More messages pending.[/] Run:  recall index")
    return results


def _watch(db: Path, cfg: RecallConfig, interval_ms: int) -> None:
    def _on_batch(result: IndexingResult) -> None:
        if result.messages_indexed:
            console.print(
                f"  [green]✓[/] {result.messages_indexed} messages → "
                f"{result.chunks_created} chunks [dim]({result.duration_ms:.0f}ms)[/]"
            )

    runtime = open_runtime(db, cfg, on_complete=_on_batch)
    indexer = _require_indexer(console, runtime.indexer, cfg)

    scheduler = IndexScheduler(indexer, interval_ms=interval_ms)
    console.print(f"[bold]Watching for new messages[/] [dim](every {interval_ms}ms, Ctrl-C to stop)[/]")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping after the current run…[/]")
    finally:
        scheduler.stop()
