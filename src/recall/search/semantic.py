"""Semantic search across every enabled strategy's vector table."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from recall.db.repository import MessageRepository
from recall.db.vectors import VectorStore
from recall.rag.fusion import Channel, fuse_results
from recall.rag.llm_client import EmbeddingProvider
from recall.rag.strategies.base import RetrievalStrategy
from recall.search.results import MessageSearchResult, results_from_fused

logger = logging.getLogger(__name__)


class SemanticSearcher:
    """Embeds the query once per strategy and searches that strategy's table.

    Each strategy becomes one fusion channel weighted by
    ``channel_weight × strategy weight``.
    """

    def __init__(
        self,
        repo: MessageRepository,
        embedder: EmbeddingProvider,
        strategies: Sequence[RetrievalStrategy],
        *,
        strategy_weights: Mapping[str, float] | None = None,
        channel_weight: float = 1.0,
        fusion_method: str = "rrf",
        rrf_k: int = 60,
        overfetch_multiplier: int = 3,
        snippet_length: int = 200,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._strategies = list(strategies)
        self._weights = dict(strategy_weights or {})
        self._channel_weight = channel_weight
        self._stores = {s.id: VectorStore(repo.database, s.id) for s in self._strategies}
        self.fusion_method = fusion_method
        self.rrf_k = rrf_k
        self.overfetch_multiplier = overfetch_multiplier
        self.snippet_length = snippet_length

    @property
    def strategies(self) -> list[RetrievalStrategy]:
        return list(self._strategies)

    def channels(self, query: str, fetch_limit: int) -> list[Channel]:
        """One ranked channel per strategy, each holding up to *fetch_limit* chunk hits."""
        channels: list[Channel] = []
        for strategy in self._strategies:
            prepared = strategy.prepare_query_text(query)
            vector = self._embedder.embed(prepared)
            hits = self._stores[strategy.id].search(vector, fetch_limit)
            logger.debug("Strategy %s returned %d hits", strategy.id, len(hits))
            channels.append(
                Channel(
                    channel_id=strategy.id,
                    hits=hits,
                    weight=self._channel_weight * self._weights.get(strategy.id, 1.0),
                )
            )
        return channels

    def search(self, query: str, limit: int) -> list[MessageSearchResult]:
        """Best *limit* messages by fused semantic score, deleted conversations excluded."""
        if not self._strategies or limit < 1:
            return []
        fetch_limit = limit * self.overfetch_multiplier
        fused = fuse_results(
            self.channels(query, fetch_limit),
            method=self.fusion_method,
            limit=fetch_limit,
            rrf_k=self.rrf_k,
        )
        titles = self._repo.conversation_titles(
            f.hit.metadata.get("conversationId") or f.hit.document_path for f in fused
        )
        return results_from_fused(fused, titles, self.snippet_length, limit)
