"""Direct strategy: embed the raw chunk and query text."""

from __future__ import annotations

from collections.abc import Mapping

from recall.db.models import Chunk
from recall.rag.strategies.base import RetrievalStrategy


class DirectEmbeddingStrategy(RetrievalStrategy):
    id = "direct"
    name = "Direct Embedding"
    description = "Embeds the raw chunk text directly. Best for literal and semantic matching."

    def prepare_chunk_text(
        self, chunk: Chunk, preprocessed: Mapping[str, str] | None = None
    ) -> str:
        return chunk.text

    def prepare_query_text(self, query: str) -> str:
        return query
