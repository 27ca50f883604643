"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from recall.db.connection import Database
from recall.db.migrations import MIGRATIONS, run_migrations

CURRENT_VERSION = MIGRATIONS[-1][0]


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    run_migrations(conn)


def open_database(db_path) -> Database:
    """Return a Database for *db_path* with the schema applied."""
    db = Database(db_path)
    with db.session() as conn:
        initialize(conn)
    return db
