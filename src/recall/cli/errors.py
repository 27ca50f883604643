"""Recall rich error messages.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from recall.cli.errors import err_no_db
    console.print(err_no_db(str(db)))
    raise typer.Exit(1)
"""

from __future__ import annotations

from recall.rag.llm_client import api_key_env_var, provider_of


def err_no_db(db_path: str = ".recall.db") -> str:
    """No .recall.db found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  recall init"
    )


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    provider = provider_of(model)
    env_var = api_key_env_var(model) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}' (model '{model}').\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_semantic_unavailable(model: str) -> str:
    return (
        "[red]Error:[/] Semantic search not available (no embedding provider configured).\n"
        f"  Set the API key for '{model}', or search with:  --mode fts"
    )


def err_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {detail}\n"
        "  Fix recall.yaml or ~/.recall/config.yaml and retry."
    )


def err_search_failed() -> str:
    return (
        "[red]Error:[/] Search failed.\n"
        "  Re-run with --verbose to see the underlying error."
    )


def err_import_format(detail: str) -> str:
    return (
        f"[red]Error:[/] {detail}\n"
        '  Expected:  {"conversations": [{"id", "title", "messages": [...]}]}'
    )


def err_conversation_not_found(conversation_id: str) -> str:
    return (
        f"[yellow]Warning:[/] Conversation '{conversation_id}' not found.\n"
        "  Nothing removed."
    )


def warn_model_changed(indexed_with: str, configured: str) -> str:
    """Vectors exist for another embedding model; dimensions may not match."""
    return (
        f"[yellow]Warning:[/] Vectors were built with '{indexed_with}', "
        f"config now uses '{configured}'.\n"
        "  Run:  recall reindex"
    )
