"""Recall database layer."""

from recall.db.connection import Database
from recall.db.migrations import MIGRATIONS, run_migrations
from recall.db.repository import MessageRepository
from recall.db.schema import initialize, open_database
from recall.db.vectors import (
    VectorStore,
    clear_all_vector_tables,
    delete_document_vectors,
    model_to_slug,
)

__all__ = [
    "Database",
    "initialize",
    "open_database",
    "run_migrations",
    "MIGRATIONS",
    "MessageRepository",
    "VectorStore",
    "clear_all_vector_tables",
    "delete_document_vectors",
    "model_to_slug",
]
