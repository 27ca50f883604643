"""Search response types shared by every search mode."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from recall.db.models import Pagination
from recall.rag.fusion import FusedHit
from recall.rag.snippet import create_snippet

FTS_CHANNEL = "fts"


@dataclass
class SearchSource:
    """Which channel surfaced a result and its raw score there.

    ``score`` is the bm25 rank for fts (lower is better) and the cosine
    similarity for semantic strategies.
    """

    source: str
    score: float
    strategy: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source, "score": self.score}
        if self.strategy is not None:
            data["strategy"] = self.strategy
        return data


@dataclass
class MessageSearchResult:
    message_id: str
    conversation_id: str
    conversation_title: str
    role: str
    text: str
    snippet: str
    created_at: str
    score: float
    sources: list[SearchSource] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "conversationId": self.conversation_id,
            "conversationTitle": self.conversation_title,
            "role": self.role,
            "text": self.text,
            "snippet": self.snippet,
            "createdAt": self.created_at,
            "score": self.score,
            "sources": [s.to_dict() for s in self.sources],
        }


@dataclass
class SearchResponse:
    """Items plus pagination.

    ``degraded`` is True when hybrid mode fell back to full-text only; it is
    not part of the serialized response.
    """

    items: list[MessageSearchResult] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
    degraded: bool = False

    @classmethod
    def empty(cls) -> SearchResponse:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "pagination": self.pagination.to_dict(),
        }


def results_from_fused(
    fused: Sequence[FusedHit],
    titles: Mapping[str, str],
    snippet_length: int,
    limit: int,
) -> list[MessageSearchResult]:
    """Turn fused hits into results, dropping hits whose conversation is not in *titles*."""
    results: list[MessageSearchResult] = []
    for item in fused:
        meta = item.hit.metadata
        conversation_id = meta.get("conversationId") or item.hit.document_path
        if conversation_id not in titles:
            continue

        sources = [
            SearchSource(source=FTS_CHANNEL, score=cs.score)
            if cs.channel_id == FTS_CHANNEL
            else SearchSource(source="semantic", score=cs.score, strategy=cs.channel_id)
            for cs in item.channel_scores
        ]
        text = item.hit.text
        results.append(
            MessageSearchResult(
                message_id=meta.get("messageId") or item.hit.id,
                conversation_id=conversation_id,
                conversation_title=titles[conversation_id],
                role=meta.get("role") or "unknown",
                text=text,
                snippet=meta.get("snippet") or create_snippet(text, snippet_length),
                created_at=meta.get("createdAt") or "",
                score=item.fused_score,
                sources=sources,
            )
        )
        if len(results) >= limit:
            break
    return results
