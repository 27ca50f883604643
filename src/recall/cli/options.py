"""Options and guards shared by every recall command."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from recall.cli.errors import err_config, err_no_db
from recall.config import DEFAULT_DB_NAME, ConfigError, RecallConfig, load_config

DEFAULT_DB = Path(DEFAULT_DB_NAME)

DbOption = Annotated[
    Path,
    typer.Option("--db", help="Path to .recall.db."),
]


def require_db(console: Console, db: Path) -> None:
    """Exit 1 with an actionable message when *db* has not been initialized."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)


def load_config_or_exit(console: Console, db: Path) -> RecallConfig:
    """Load config with recall.yaml looked up next to *db*."""
    try:
        return load_config(db.resolve().parent)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
