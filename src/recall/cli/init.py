"""recall init — create the message store and default config.

Creates:
  .recall.db               — empty message store with schema
  recall.yaml              — project config (models, strategies, search)
  ~/.recall/config.yaml    — global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from recall.config import (
    DEFAULT_DB_NAME,
    PROJECT_CONFIG_NAME,
    default_project_yaml,
    ensure_global_config,
)
from recall.db.schema import open_database

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override ~/.recall/config.yaml (for testing)."),
    ] = None,
) -> None:
    """Initialize a recall project: database, recall.yaml and global config."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / DEFAULT_DB_NAME
    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists. Existing data is preserved.")

    console.print(f"\n[bold]Initializing recall in {project_dir} …[/]\n")

    # Opening applies any pending migrations.
    open_database(db_path)
    console.print(f"  [green]✓[/] {DEFAULT_DB_NAME}")

    yaml_path = project_dir / PROJECT_CONFIG_NAME
    if yaml_path.exists():
        console.print(f"  [dim]–[/] {PROJECT_CONFIG_NAME} (kept)")
    else:
        yaml_path.write_text(default_project_yaml(), encoding="utf-8")
        console.print(f"  [green]✓[/] {PROJECT_CONFIG_NAME}")

    target = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {target}")

    console.print(
        "\n[bold]Next steps:[/]\n"
        "  recall import conversations.json\n"
        "  recall index\n"
        '  recall search "your query" --mode hybrid'
    )
