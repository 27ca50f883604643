"""recall status — message store and index overview."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from recall.cli.errors import warn_model_changed
from recall.cli.options import DEFAULT_DB, DbOption, load_config_or_exit
from recall.config import RecallConfig
from recall.db.models import EPOCH, Watermark
from recall.db.repository import MessageRepository
from recall.db.schema import open_database
from recall.db.vectors import VectorStore, existing_strategy_ids

console = Console()


def status_cmd(db: DbOption = DEFAULT_DB) -> None:
    """Show message counts, indexing progress and vector table sizes."""
    if not db.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  recall init",
                title="[bold]Recall[/]",
                expand=False,
            )
        )
        return

    cfg = load_config_or_exit(console, db)
    repo = MessageRepository(open_database(db))

    _show_store_panel(db.name, repo, cfg)
    _show_index_panel(repo, cfg)


def _show_store_panel(db_name: str, repo: MessageRepository, cfg: RecallConfig) -> None:
    strategies = ", ".join(f"{s.type} ×{s.weight:g}" for s in cfg.enabled_strategies) or "none"
    lines = [
        f"[bold]Database:[/]   {db_name}",
        f"[bold]Messages:[/]   {repo.count_messages()}",
        f"[bold]Embedding:[/]  {cfg.embedding.model}",
        f"[bold]LLM:[/]        {cfg.llm.model}",
        f"[bold]Strategies:[/] {strategies}",
        f"[bold]Fusion:[/]     {cfg.search.fusion_method}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Recall[/]", expand=False))


def _show_index_panel(repo: MessageRepository, cfg: RecallConfig) -> None:
    watermarks = repo.list_watermarks()
    current = watermarks.get(cfg.config_key, Watermark())

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Strategy")
    table.add_column("Vectors", justify="right")
    for sid in existing_strategy_ids(repo.database):
        table.add_row(sid, str(VectorStore(repo.database, sid).count()))

    last = "never" if current.last_indexed_at == EPOCH else current.last_indexed_at
    console.print(
        Panel(
            f"[bold]Indexed messages:[/] {current.total_indexed}\n"
            f"[bold]Last indexed at:[/]  {last}",
            title="[bold]Index[/]",
            expand=False,
        )
    )
    if table.row_count:
        console.print(table)
    else:
        console.print("  [dim]No vectors yet. Run:  recall index[/]")

    others = [key for key, wm in watermarks.items() if key != cfg.config_key and wm.total_indexed]
    for key in others:
        console.print(warn_model_changed(key, cfg.config_key))
