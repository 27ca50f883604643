"""Message search router: fts, semantic and hybrid modes.

- fts       BM25 over message text, newest first, cursor pagination.
- semantic  Vector search over every enabled strategy, fused. Needs an
            embedding backend; without one it raises SearchUnavailableError.
- hybrid    fts and semantic legs run concurrently and are fused into one
            ranking. Without an embedding backend it quietly serves fts.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from recall.db.models import FtsHit, Pagination, SearchHit
from recall.db.repository import MessageRepository
from recall.rag.fusion import Channel, fuse_results
from recall.search.results import (
    FTS_CHANNEL,
    MessageSearchResult,
    SearchResponse,
    SearchSource,
    results_from_fused,
)
from recall.search.semantic import SemanticSearcher

logger = logging.getLogger(__name__)

SEARCH_MODES: tuple[str, ...] = ("fts", "semantic", "hybrid")
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class SearchUnavailableError(RuntimeError):
    """Semantic search was requested but no embedding backend is configured."""

    def __init__(self, message: str = "Semantic search not available (no embedding provider configured)") -> None:
        super().__init__(message)


class SearchFailedError(RuntimeError):
    """Unexpected failure at the search boundary."""

    def __init__(self, message: str = "Search failed") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class SearchParams:
    query: str
    limit: int = DEFAULT_LIMIT
    before: str | None = None
    include_total: bool = False
    mode: str = "fts"

    @classmethod
    def from_query_args(
        cls,
        q: str | None = None,
        limit: Any = None,
        before: str | None = None,
        include_total: Any = None,
        mode: str | None = None,
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> SearchParams:
        """Build params from loosely typed request arguments.

        A missing or non-numeric limit becomes *default_limit*; any limit is
        clamped to [1, max_limit]. An unknown mode becomes ``fts``.
        """
        try:
            parsed_limit = int(limit) if limit is not None and limit != "" else default_limit
        except (TypeError, ValueError):
            parsed_limit = default_limit
        parsed_limit = min(max(parsed_limit, 1), max_limit)

        parsed_mode = (mode or "fts").strip().lower()
        if parsed_mode not in SEARCH_MODES:
            parsed_mode = "fts"

        if isinstance(include_total, str):
            total = include_total.strip().lower() in ("true", "1")
        else:
            total = bool(include_total)

        return cls(
            query=q or "",
            limit=parsed_limit,
            before=before or None,
            include_total=total,
            mode=parsed_mode,
        )


def _fts_hit_to_search_hit(hit: FtsHit) -> SearchHit:
    return SearchHit(
        id=hit.id,
        document_path=hit.conversation_id,
        text=hit.snippet,
        score=hit.rank,
        metadata={
            "messageId": hit.id,
            "conversationId": hit.conversation_id,
            "conversationTitle": hit.conversation_title,
            "role": hit.role,
            "createdAt": hit.created_at,
            "snippet": hit.snippet,
        },
    )


def _fts_hit_to_result(hit: FtsHit) -> MessageSearchResult:
    return MessageSearchResult(
        message_id=hit.id,
        conversation_id=hit.conversation_id,
        conversation_title=hit.conversation_title,
        role=hit.role,
        text=hit.snippet,
        snippet=hit.snippet,
        created_at=hit.created_at,
        score=hit.rank,
        sources=[SearchSource(source=FTS_CHANNEL, score=hit.rank)],
    )


class MessageSearchRouter:
    """Dispatches a search to the requested mode.

    Args:
        repo: Message repository (full-text store + conversation titles).
        semantic: Semantic searcher, or None when no embedding backend exists.
        fts_weight: Fusion weight of the full-text channel in hybrid mode.
        roles: Message roles searched by the full-text store.
    """

    def __init__(
        self,
        repo: MessageRepository,
        semantic: SemanticSearcher | None = None,
        *,
        fts_weight: float = 1.0,
        roles: Sequence[str] = ("user", "assistant"),
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self._repo = repo
        self._semantic = semantic
        self._fts_weight = fts_weight
        self._roles = list(roles)
        self.default_limit = default_limit
        self.max_limit = max_limit

    @property
    def semantic_available(self) -> bool:
        return self._semantic is not None

    def params(self, **query_args: Any) -> SearchParams:
        return SearchParams.from_query_args(
            **query_args, default_limit=self.default_limit, max_limit=self.max_limit
        )

    def search(self, params: SearchParams) -> SearchResponse:
        """Run *params* in its mode.

        Raises:
            SearchUnavailableError: semantic mode without an embedding backend.
            SearchFailedError: any other failure.
        """
        if not params.query.strip():
            return SearchResponse.empty()

        if params.mode == "semantic" and self._semantic is None:
            raise SearchUnavailableError()

        try:
            if params.mode == "semantic":
                return self._search_semantic(params)
            if params.mode == "hybrid":
                if self._semantic is None:
                    logger.info("Hybrid search without embedding backend; serving fts only")
                    response = self._search_fts(params)
                    response.degraded = True
                    return response
                return self._search_hybrid(params)
            return self._search_fts(params)
        except SearchFailedError:
            raise
        except Exception as exc:
            logger.exception("Search failed (mode=%s)", params.mode)
            raise SearchFailedError() from exc

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _search_fts(self, params: SearchParams) -> SearchResponse:
        page = self._repo.search_fts(
            params.query,
            limit=params.limit,
            before=params.before,
            roles=self._roles,
            include_total=params.include_total,
        )
        return SearchResponse(
            items=[_fts_hit_to_result(h) for h in page.items],
            pagination=page.pagination,
        )

    def _search_semantic(self, params: SearchParams) -> SearchResponse:
        assert self._semantic is not None
        return SearchResponse(
            items=self._semantic.search(params.query, params.limit),
            pagination=Pagination(),
        )

    def _search_hybrid(self, params: SearchParams) -> SearchResponse:
        assert self._semantic is not None
        semantic = self._semantic
        fetch_limit = params.limit * semantic.overfetch_multiplier

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="recall-search") as pool:
            fts_future = pool.submit(
                self._repo.search_fts,
                params.query,
                limit=fetch_limit,
                roles=self._roles,
                order="rank",
            )
            semantic_future = pool.submit(semantic.channels, params.query, fetch_limit)

        channels: list[Channel] = []
        failures = 0
        try:
            fts_hits = [_fts_hit_to_search_hit(h) for h in fts_future.result().items]
            channels.append(
                Channel(FTS_CHANNEL, fts_hits, weight=self._fts_weight, higher_is_better=False)
            )
        except Exception:
            failures += 1
            logger.warning("Hybrid search: fts leg failed", exc_info=True)
        try:
            channels.extend(semantic_future.result())
        except Exception:
            failures += 1
            logger.warning("Hybrid search: semantic leg failed", exc_info=True)
        if failures == 2:
            raise SearchFailedError()

        fused = fuse_results(
            channels, method=semantic.fusion_method, limit=fetch_limit, rrf_k=semantic.rrf_k
        )
        titles = self._repo.conversation_titles(
            f.hit.metadata.get("conversationId") or f.hit.document_path for f in fused
        )
        return SearchResponse(
            items=results_from_fused(fused, titles, semantic.snippet_length, params.limit),
            pagination=Pagination(),
        )
