"""Domain models for the recall database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

EPOCH = "1970-01-01T00:00:00.000Z"


@dataclass
class Conversation:
    id: str
    title: str
    created_at: str
    deleted_at: str | None = None


@dataclass
class Message:
    id: str
    conversation_id: str
    role: str
    content: str
    created_at: str


@dataclass
class Chunk:
    """A bounded span of one message's text; the unit of embedding and retrieval.

    ``document_path`` is the conversation id so a whole conversation's vectors
    can be deleted in one call.
    """

    text: str
    document_path: str
    chunk_index: int
    content_type: str = "text"
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def message_id(self) -> str:
        return self.metadata.get("messageId", "")

    @property
    def record_id(self) -> str:
        """Stable vector-row key; re-indexing a message overwrites its rows."""
        return f"msg:{self.message_id}:{self.chunk_index}"


@dataclass(frozen=True)
class Watermark:
    """Persisted (timestamp, id) cursor of the last successfully indexed message."""

    last_indexed_at: str = EPOCH
    last_indexed_id: str = ""
    total_indexed: int = 0

    @property
    def position(self) -> tuple[str, str]:
        return (self.last_indexed_at, self.last_indexed_id)


@dataclass
class VectorRecord:
    id: str
    document_path: str
    chunk_index: int
    text: str
    vector: list[float]
    content_type: str = "text"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    """One entry of a ranked result channel (full-text or one semantic strategy)."""

    id: str
    document_path: str
    text: str
    score: float
    chunk_index: int = 0
    content_type: str = "text"
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> str:
        """Key under which hits from different channels are merged."""
        message_id = self.metadata.get("messageId")
        if message_id:
            return f"msg:{message_id}"
        return f"doc:{self.document_path}#{self.chunk_index}"


@dataclass
class FtsHit:
    id: str
    conversation_id: str
    conversation_title: str
    role: str
    snippet: str
    created_at: str
    rank: float


@dataclass
class Pagination:
    has_older: bool = False
    has_newer: bool = False
    oldest_cursor: str | None = None
    newest_cursor: str | None = None
    total_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "hasOlder": self.has_older,
            "hasNewer": self.has_newer,
            "oldestCursor": self.oldest_cursor,
            "newestCursor": self.newest_cursor,
        }
        if self.total_count is not None:
            data["totalCount"] = self.total_count
        return data


@dataclass
class FtsPage:
    items: list[FtsHit]
    pagination: Pagination
