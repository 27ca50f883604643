"""Per-strategy sqlite-vec tables for message chunk embeddings.

Each retrieval strategy owns two tables:

    msg_chunks_{strategy}   chunk text + metadata, keyed by record id
    vec_msg_{strategy}      vec0 virtual table (cosine), rowid = chunk rowid

Both are created on first write, sized from the first vector seen.
"""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from collections.abc import Iterable

from recall.db.connection import Database
from recall.db.models import SearchHit, VectorRecord

_STRATEGY_ID_RE = re.compile(r"[a-z][a-z0-9_]*")


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid identifier suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def chunk_table_name(strategy_id: str) -> str:
    return f"msg_chunks_{strategy_id}"


def vec_table_name(strategy_id: str) -> str:
    return f"vec_msg_{strategy_id}"


def distance_to_score(distance: float) -> float:
    """Map cosine distance [0, 2] to a similarity score in [0, 1]."""
    return max(0.0, 1.0 - distance / 2.0)


class VectorStore:
    """Vector rows for one retrieval strategy.

    Writes are serialised per store; reads open their own connection and may
    run concurrently with a write.
    """

    def __init__(self, db: Database, strategy_id: str) -> None:
        if not _STRATEGY_ID_RE.fullmatch(strategy_id):
            raise ValueError(
                f"Invalid strategy id '{strategy_id}': use lowercase letters, digits and '_'."
            )
        self._db = db
        self.strategy_id = strategy_id
        self.chunk_table = chunk_table_name(strategy_id)
        self.vec_table = vec_table_name(strategy_id)
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        with self._db.session() as conn:
            return self._exists(conn)

    def _exists(self, conn: sqlite3.Connection) -> bool:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (self.vec_table,),
        ).fetchone()
        return row is not None

    def _ensure_tables(self, conn: sqlite3.Connection, dimensions: int) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        if self._exists(conn):
            return
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.chunk_table} (
                rowid         INTEGER PRIMARY KEY,
                id            TEXT NOT NULL UNIQUE,
                document_path TEXT NOT NULL,
                chunk_index   INTEGER NOT NULL,
                content_type  TEXT NOT NULL DEFAULT 'text',
                text          TEXT NOT NULL,
                metadata      TEXT NOT NULL DEFAULT '{{}}'
            )
            """
        )
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.chunk_table}_doc "
            f"ON {self.chunk_table}(document_path)"
        )
        conn.execute(
            f"CREATE VIRTUAL TABLE {self.vec_table} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, records: Iterable[VectorRecord]) -> int:
        """Insert or overwrite rows by record id. Returns the number written."""
        records = list(records)
        if not records:
            return 0
        with self._write_lock, self._db.session() as conn:
            self._ensure_tables(conn, len(records[0].vector))
            for rec in records:
                metadata = json.dumps(rec.metadata)
                row = conn.execute(
                    f"SELECT rowid FROM {self.chunk_table} WHERE id = ?", (rec.id,)
                ).fetchone()
                if row is not None:
                    rowid = row["rowid"]
                    conn.execute(
                        f"""
                        UPDATE {self.chunk_table}
                        SET document_path = ?, chunk_index = ?, content_type = ?,
                            text = ?, metadata = ?
                        WHERE rowid = ?
                        """,
                        (rec.document_path, rec.chunk_index, rec.content_type,
                         rec.text, metadata, rowid),
                    )
                    conn.execute(f"DELETE FROM {self.vec_table} WHERE rowid = ?", (rowid,))
                else:
                    cur = conn.execute(
                        f"""
                        INSERT INTO {self.chunk_table}
                            (id, document_path, chunk_index, content_type, text, metadata)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (rec.id, rec.document_path, rec.chunk_index, rec.content_type,
                         rec.text, metadata),
                    )
                    rowid = cur.lastrowid
                conn.execute(
                    f"INSERT INTO {self.vec_table}(rowid, embedding) VALUES (?, ?)",
                    (rowid, json.dumps(rec.vector)),
                )
        return len(records)

    def delete_by_document(self, document_path: str) -> int:
        """Delete every row whose document_path matches. Returns rows deleted."""
        with self._write_lock, self._db.session() as conn:
            if not self._exists(conn):
                return 0
            rowids = [
                r["rowid"]
                for r in conn.execute(
                    f"SELECT rowid FROM {self.chunk_table} WHERE document_path = ?",
                    (document_path,),
                ).fetchall()
            ]
            for rowid in rowids:
                conn.execute(f"DELETE FROM {self.vec_table} WHERE rowid = ?", (rowid,))
            conn.execute(
                f"DELETE FROM {self.chunk_table} WHERE document_path = ?", (document_path,)
            )
        return len(rowids)

    def clear(self) -> None:
        """Drop both tables; they are recreated on the next upsert."""
        with self._write_lock, self._db.session() as conn:
            conn.execute(f"DROP TABLE IF EXISTS {self.vec_table}")
            conn.execute(f"DROP TABLE IF EXISTS {self.chunk_table}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self) -> int:
        with self._db.session() as conn:
            if not self._exists(conn):
                return 0
            return conn.execute(f"SELECT COUNT(*) FROM {self.chunk_table}").fetchone()[0]

    def search(self, vector: list[float], limit: int = 10) -> list[SearchHit]:
        """Return up to *limit* nearest chunks, best first. Empty if nothing indexed yet."""
        if limit < 1:
            return []
        with self._db.session() as conn:
            if not self._exists(conn):
                return []
            vec_rows = conn.execute(
                f"SELECT rowid, distance FROM {self.vec_table} "
                "WHERE embedding MATCH ? ORDER BY distance LIMIT ?",
                (json.dumps(vector), limit),
            ).fetchall()
            if not vec_rows:
                return []
            placeholders = ",".join("?" * len(vec_rows))
            chunk_rows = {
                r["rowid"]: r
                for r in conn.execute(
                    f"""
                    SELECT rowid, id, document_path, chunk_index, content_type, text, metadata
                    FROM {self.chunk_table} WHERE rowid IN ({placeholders})
                    """,
                    [r["rowid"] for r in vec_rows],
                ).fetchall()
            }

        hits: list[SearchHit] = []
        for vec_row in vec_rows:
            chunk = chunk_rows.get(vec_row["rowid"])
            if chunk is None:
                continue
            hits.append(
                SearchHit(
                    id=chunk["id"],
                    document_path=chunk["document_path"],
                    text=chunk["text"],
                    score=distance_to_score(vec_row["distance"]),
                    chunk_index=chunk["chunk_index"],
                    content_type=chunk["content_type"],
                    metadata=json.loads(chunk["metadata"]),
                )
            )
        return hits


def existing_strategy_ids(db: Database) -> list[str]:
    """Strategy ids that have a vector table in the database."""
    with db.session() as conn:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name LIKE 'vec_msg_%' AND sql LIKE 'CREATE VIRTUAL TABLE%'"
        ).fetchall()
    return sorted(r["name"][len("vec_msg_"):] for r in rows)


def clear_all_vector_tables(db: Database) -> list[str]:
    """Drop the vector tables of every strategy. Returns the strategy ids cleared."""
    cleared = existing_strategy_ids(db)
    for strategy_id in cleared:
        VectorStore(db, strategy_id).clear()
    return cleared


def delete_document_vectors(db: Database, document_path: str) -> int:
    """Delete *document_path*'s rows from every strategy table. Returns rows deleted."""
    return sum(
        VectorStore(db, strategy_id).delete_by_document(document_path)
        for strategy_id in existing_strategy_ids(db)
    )
