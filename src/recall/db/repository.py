"""Repository for the message store: conversations, messages, FTS5 search, watermark.

Every method opens its own short-lived connection through Database.session(),
so one repository instance can be shared by the indexer thread and concurrent
search requests.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from recall.db.connection import Database
from recall.db.models import (
    Conversation,
    FtsHit,
    FtsPage,
    Message,
    Pagination,
    Watermark,
)

_FTS_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def format_timestamp(moment: datetime) -> str:
    """Render *moment* in the store's timestamp format (millisecond ISO-8601 UTC, Z suffix).

    Naive datetimes are taken to be UTC. Stored timestamps must all use this
    format: watermark and cursor comparisons are plain string comparisons.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def now_iso() -> str:
    """Current UTC time in the store's timestamp format."""
    return format_timestamp(datetime.now(timezone.utc))


def encode_cursor(created_at: str, message_id: str) -> str:
    payload = json.dumps({"createdAt": created_at, "id": message_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[str, str] | None:
    """Return (created_at, id) from an encoded cursor, or None if it is malformed."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        return str(data["createdAt"]), str(data["id"])
    except (ValueError, KeyError, TypeError, binascii.Error):
        return None


class MessageRepository:
    """Data access layer for conversations, messages and the indexing watermark."""

    def __init__(self, db: Database) -> None:
        """Initialise with a Database whose schema has been initialised.

        Args:
            db: Database handle (see recall.db.schema.open_database).
        """
        self._db = db

    @property
    def database(self) -> Database:
        return self._db

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def add_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation record."""
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO conversations (id, title, created_at, deleted_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    deleted_at = excluded.deleted_at
                """,
                (
                    conversation.id,
                    conversation.title,
                    conversation.created_at,
                    conversation.deleted_at,
                ),
            )

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT id, title, created_at, deleted_at FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
        return _row_to_conversation(row) if row else None

    def soft_delete_conversation(self, conversation_id: str, deleted_at: str | None = None) -> bool:
        """Mark a conversation deleted. Returns False if it does not exist."""
        with self._db.session() as conn:
            cur = conn.execute(
                "UPDATE conversations SET deleted_at = ? WHERE id = ?",
                (deleted_at or now_iso(), conversation_id),
            )
        return cur.rowcount > 0

    def conversation_titles(self, conversation_ids: Iterable[str]) -> dict[str, str]:
        """Return {id: title} for the given ids, omitting deleted conversations."""
        ids = sorted(set(conversation_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        with self._db.session() as conn:
            rows = conn.execute(
                f"SELECT id, title FROM conversations WHERE id IN ({placeholders}) "
                "AND deleted_at IS NULL",
                ids,
            ).fetchall()
        return {r["id"]: r["title"] for r in rows}

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, message: Message) -> None:
        self.add_messages([message])

    def add_messages(self, messages: Iterable[Message]) -> int:
        """Insert messages, skipping ids already stored. Returns rows written.

        FTS5 is kept in sync by triggers.
        """
        rows = [
            (m.id, m.conversation_id, m.role, m.content, m.created_at) for m in messages
        ]
        if not rows:
            return 0
        with self._db.session() as conn:
            cur = conn.executemany(
                """
                INSERT OR IGNORE INTO messages (id, conversation_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
        return cur.rowcount

    def get_message(self, message_id: str) -> Message | None:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT id, conversation_id, role, content, created_at FROM messages WHERE id = ?",
                (message_id,),
            ).fetchone()
        return _row_to_message(row) if row else None

    def count_messages(self) -> int:
        with self._db.session() as conn:
            return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]

    def fetch_after(
        self,
        watermark: Watermark,
        roles: Sequence[str],
        min_length: int,
        limit: int,
    ) -> list[Message]:
        """Return up to *limit* indexable messages strictly after *watermark*.

        Ordered by (created_at, id) ascending; the id breaks timestamp ties so a
        message at the watermark position is never selected again. Messages with
        a role outside *roles*, shorter than *min_length* after trimming, or in a
        deleted conversation are skipped.
        """
        if not roles or limit < 1:
            return []
        placeholders = ",".join("?" * len(roles))
        with self._db.session() as conn:
            rows = conn.execute(
                f"""
                SELECT m.id, m.conversation_id, m.role, m.content, m.created_at
                FROM messages m
                JOIN conversations c ON c.id = m.conversation_id
                WHERE (m.created_at > ? OR (m.created_at = ? AND m.id > ?))
                  AND m.role IN ({placeholders})
                  AND LENGTH(TRIM(m.content, ' ' || char(9, 10, 13))) >= ?
                  AND c.deleted_at IS NULL
                ORDER BY m.created_at ASC, m.id ASC
                LIMIT ?
                """,
                (
                    watermark.last_indexed_at,
                    watermark.last_indexed_at,
                    watermark.last_indexed_id,
                    *roles,
                    min_length,
                    limit,
                ),
            ).fetchall()
        return [_row_to_message(r) for r in rows]

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(
        self,
        query: str,
        limit: int = 20,
        before: str | None = None,
        roles: Sequence[str] | None = None,
        include_total: bool = False,
        order: str = "recent",
    ) -> FtsPage:
        """BM25 full-text search over messages of live conversations.

        ``order="recent"`` pages newest-first and honours the *before* cursor;
        ``order="rank"`` returns best bm25 matches first (used for fusion).
        ``FtsHit.rank`` is the raw bm25() value: lower (more negative) = better.
        """
        match = _fts_match_expression(query)
        if not match:
            return FtsPage(items=[], pagination=Pagination())

        where = ["messages_fts MATCH ?", "c.deleted_at IS NULL"]
        params: list[object] = [match]
        if roles:
            where.append(f"m.role IN ({','.join('?' * len(roles))})")
            params.extend(roles)
        count_where, count_params = list(where), list(params)

        cursor = decode_cursor(before) if before else None
        if cursor is not None:
            where.append("(m.created_at < ? OR (m.created_at = ? AND m.id < ?))")
            params.extend([cursor[0], cursor[0], cursor[1]])

        if order == "rank":
            order_sql = "score ASC, m.created_at DESC, m.id DESC"
        else:
            order_sql = "m.created_at DESC, m.id DESC"

        with self._db.session() as conn:
            rows = conn.execute(
                f"""
                SELECT m.id, m.conversation_id, c.title AS conversation_title, m.role,
                       m.created_at,
                       snippet(messages_fts, 0, '', '', '...', 32) AS snippet,
                       bm25(messages_fts) AS score
                FROM messages_fts
                JOIN messages m ON m.rowid = messages_fts.rowid
                JOIN conversations c ON c.id = m.conversation_id
                WHERE {' AND '.join(where)}
                ORDER BY {order_sql}
                LIMIT ?
                """,
                [*params, limit + 1],
            ).fetchall()

            total: int | None = None
            if include_total:
                total = conn.execute(
                    f"""
                    SELECT COUNT(*)
                    FROM messages_fts
                    JOIN messages m ON m.rowid = messages_fts.rowid
                    JOIN conversations c ON c.id = m.conversation_id
                    WHERE {' AND '.join(count_where)}
                    """,
                    count_params,
                ).fetchone()[0]

        items = [_row_to_fts_hit(r) for r in rows[:limit]]
        pagination = Pagination(
            has_older=len(rows) > limit,
            has_newer=cursor is not None,
            total_count=total,
        )
        if items:
            oldest = min(items, key=lambda h: (h.created_at, h.id))
            newest = max(items, key=lambda h: (h.created_at, h.id))
            pagination.oldest_cursor = encode_cursor(oldest.created_at, oldest.id)
            pagination.newest_cursor = encode_cursor(newest.created_at, newest.id)
        return FtsPage(items=items, pagination=pagination)

    # ------------------------------------------------------------------
    # Indexing watermark
    # ------------------------------------------------------------------

    def get_watermark(self, config_key: str) -> Watermark | None:
        with self._db.session() as conn:
            row = conn.execute(
                """
                SELECT last_indexed_at, last_indexed_id, total_indexed
                FROM message_embedding_state WHERE config_key = ?
                """,
                (config_key,),
            ).fetchone()
        return _row_to_watermark(row) if row else None

    def list_watermarks(self) -> dict[str, Watermark]:
        """Every stored watermark keyed by config key (one per embedding model used)."""
        with self._db.session() as conn:
            rows = conn.execute(
                """
                SELECT config_key, last_indexed_at, last_indexed_id, total_indexed
                FROM message_embedding_state ORDER BY config_key
                """
            ).fetchall()
        return {row["config_key"]: _row_to_watermark(row) for row in rows}

    def ensure_watermark(self, config_key: str) -> Watermark:
        """Return the watermark for *config_key*, creating the initial row if missing."""
        with self._db.session() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO message_embedding_state (config_key) VALUES (?)",
                (config_key,),
            )
            row = conn.execute(
                """
                SELECT last_indexed_at, last_indexed_id, total_indexed
                FROM message_embedding_state WHERE config_key = ?
                """,
                (config_key,),
            ).fetchone()
        return _row_to_watermark(row)

    def advance_watermark(self, config_key: str, watermark: Watermark) -> bool:
        """Persist *watermark* in one statement. Never moves the cursor backwards.

        Returns False (and leaves the row untouched) if *watermark* is behind
        the stored position.
        """
        with self._db.session() as conn:
            cur = conn.execute(
                """
                INSERT INTO message_embedding_state
                    (config_key, last_indexed_at, last_indexed_id, total_indexed, updated_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(config_key) DO UPDATE SET
                    last_indexed_at = excluded.last_indexed_at,
                    last_indexed_id = excluded.last_indexed_id,
                    total_indexed = excluded.total_indexed,
                    updated_at = excluded.updated_at
                WHERE excluded.last_indexed_at > message_embedding_state.last_indexed_at
                   OR (excluded.last_indexed_at = message_embedding_state.last_indexed_at
                       AND excluded.last_indexed_id >= message_embedding_state.last_indexed_id)
                """,
                (
                    config_key,
                    watermark.last_indexed_at,
                    watermark.last_indexed_id,
                    watermark.total_indexed,
                ),
            )
        return cur.rowcount > 0

    def reset_watermark(self, config_key: str) -> Watermark:
        """Rewind the watermark to the epoch so the next run re-indexes everything."""
        initial = Watermark()
        with self._db.session() as conn:
            conn.execute(
                """
                INSERT INTO message_embedding_state
                    (config_key, last_indexed_at, last_indexed_id, total_indexed, updated_at)
                VALUES (?, ?, ?, 0, datetime('now'))
                ON CONFLICT(config_key) DO UPDATE SET
                    last_indexed_at = excluded.last_indexed_at,
                    last_indexed_id = excluded.last_indexed_id,
                    total_indexed = 0,
                    updated_at = excluded.updated_at
                """,
                (config_key, initial.last_indexed_at, initial.last_indexed_id),
            )
        return initial

    def reset_all_watermarks(self) -> int:
        """Rewind every stored watermark to the epoch. Returns the number of rows reset.

        Vectors are shared across embedding models, so clearing them leaves no
        model with indexed data; each one has to start over.
        """
        initial = Watermark()
        with self._db.session() as conn:
            cur = conn.execute(
                """
                UPDATE message_embedding_state
                SET last_indexed_at = ?, last_indexed_id = ?, total_indexed = 0,
                    updated_at = datetime('now')
                """,
                (initial.last_indexed_at, initial.last_indexed_id),
            )
        return cur.rowcount


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _fts_match_expression(query: str) -> str:
    """Quote each word so FTS5 never sees operators or punctuation syntax."""
    tokens = _FTS_TOKEN_RE.findall(query)
    return " ".join(f'"{t}"' for t in tokens)


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        created_at=row["created_at"],
        deleted_at=row["deleted_at"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _row_to_fts_hit(row: sqlite3.Row) -> FtsHit:
    return FtsHit(
        id=row["id"],
        conversation_id=row["conversation_id"],
        conversation_title=row["conversation_title"],
        role=row["role"],
        snippet=row["snippet"],
        created_at=row["created_at"],
        rank=row["score"],
    )


def _row_to_watermark(row: sqlite3.Row) -> Watermark:
    return Watermark(
        last_indexed_at=row["last_indexed_at"],
        last_indexed_id=row["last_indexed_id"],
        total_indexed=row["total_indexed"],
    )
