"""Conversation importer — load a JSON export into the message store.

Accepted shapes:
- ``{"conversations": [...]}``
- a bare list of conversation objects

Each conversation: ``{"id", "title", "createdAt", "deletedAt"?, "messages": [...]}``;
each message: ``{"id", "role", "content", "createdAt"}``. Missing ids are
generated, missing timestamps default to the import time. Timestamps may be
any ISO-8601 string (``Z`` or an offset; no offset means UTC) or epoch
milliseconds, and are stored as millisecond ISO-8601 UTC. Re-importing the
same file is a no-op for messages already stored.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from recall.db.models import Conversation, Message
from recall.db.repository import MessageRepository, format_timestamp, now_iso


class ExportFormatError(ValueError):
    """Raised when an import file is not in a supported shape."""


@dataclass
class ImportSummary:
    conversations: int = 0
    messages_added: int = 0
    messages_skipped: int = 0


def normalize_timestamp(value: Any, fallback: str | None = None) -> str | None:
    """Convert an export timestamp to the store format; *fallback* when missing.

    Raises:
        ExportFormatError: If *value* is neither an ISO-8601 string nor a number.
    """
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        raise ExportFormatError(f"Invalid timestamp {value!r}")
    if isinstance(value, (int, float)):
        try:
            moment = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ExportFormatError(f"Invalid epoch-millisecond timestamp {value!r}") from exc
        return format_timestamp(moment)
    try:
        moment = datetime.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ExportFormatError(f"Invalid timestamp {value!r}: expected ISO-8601") from exc
    return format_timestamp(moment)


def load_export(path: Path) -> list[dict[str, Any]]:
    """Read *path* and return the list of raw conversation objects."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ExportFormatError(f"'{path}' is not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("conversations")
    if not isinstance(data, list):
        raise ExportFormatError(
            f"'{path}' must contain a list of conversations "
            "or an object with a 'conversations' list."
        )
    return data


def import_conversations(repo: MessageRepository, raw: list[dict[str, Any]]) -> ImportSummary:
    """Write every conversation and its messages. Returns counts."""
    summary = ImportSummary()
    fallback_ts = now_iso()

    for item in raw:
        if not isinstance(item, dict):
            raise ExportFormatError(f"Conversation entries must be objects, got {item!r}")
        conv = Conversation(
            id=str(item.get("id") or uuid.uuid4()),
            title=str(item.get("title") or ""),
            created_at=normalize_timestamp(item.get("createdAt"), fallback_ts),
            deleted_at=normalize_timestamp(item.get("deletedAt")),
        )
        messages = [
            Message(
                id=str(m.get("id") or uuid.uuid4()),
                conversation_id=conv.id,
                role=str(m.get("role") or "user"),
                content=str(m.get("content") or ""),
                created_at=normalize_timestamp(m.get("createdAt"), fallback_ts),
            )
            for m in item.get("messages") or []
            if isinstance(m, dict)
        ]
        repo.add_conversation(conv)
        summary.conversations += 1
        added = repo.add_messages(messages)
        summary.messages_added += added
        summary.messages_skipped += len(messages) - added

    return summary
