"""Wire config, database, providers, strategies, indexer and router together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from recall.config import RecallConfig
from recall.db.repository import MessageRepository
from recall.db.schema import open_database
from recall.indexer.service import IndexingResult, MessageIndexer
from recall.rag.llm_client import (
    EmbeddingProvider,
    LiteLLMEmbedder,
    LiteLLMTextGenerator,
    TextGenerator,
    validate_api_key,
)
from recall.rag.strategies.base import RetrievalStrategy
from recall.rag.strategies.registry import create_strategies_from_config
from recall.search.router import MessageSearchRouter
from recall.search.semantic import SemanticSearcher

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: RecallConfig
    repo: MessageRepository
    strategies: list[RetrievalStrategy]
    router: MessageSearchRouter
    indexer: MessageIndexer | None
    embedder: EmbeddingProvider | None
    llm: TextGenerator | None


def _embedder_for(cfg: RecallConfig) -> EmbeddingProvider | None:
    try:
        validate_api_key(cfg.embedding.model)
    except EnvironmentError as exc:
        logger.warning("Semantic indexing and search disabled: %s", exc)
        return None
    return LiteLLMEmbedder(cfg.embedding.model)


def _llm_for(cfg: RecallConfig) -> TextGenerator | None:
    if all(s.type == "direct" for s in cfg.enabled_strategies):
        return None
    try:
        validate_api_key(cfg.llm.model)
    except EnvironmentError as exc:
        logger.warning("LLM-based strategies disabled: %s", exc)
        return None
    return LiteLLMTextGenerator(cfg.llm.model, max_tokens=cfg.llm.max_tokens)


def build_runtime(
    repo: MessageRepository,
    cfg: RecallConfig,
    *,
    embedder: EmbeddingProvider | None,
    llm: TextGenerator | None = None,
    on_complete: Callable[[IndexingResult], None] | None = None,
) -> Runtime:
    """Assemble the runtime around explicit providers (None = not configured)."""
    strategies = create_strategies_from_config(cfg.strategies, llm) if embedder else []

    semantic: SemanticSearcher | None = None
    indexer: MessageIndexer | None = None
    if embedder is not None and strategies:
        semantic = SemanticSearcher(
            repo,
            embedder,
            strategies,
            strategy_weights={s.type: s.weight for s in cfg.enabled_strategies},
            channel_weight=cfg.search.semantic_weight,
            fusion_method=cfg.search.fusion_method,
            rrf_k=cfg.search.rrf_k,
            overfetch_multiplier=cfg.search.overfetch_multiplier,
            snippet_length=cfg.search.snippet_length,
        )
        indexer = MessageIndexer.from_config(
            repo, embedder, strategies, cfg, llm=llm, on_complete=on_complete
        )

    router = MessageSearchRouter(
        repo,
        semantic,
        fts_weight=cfg.search.fts_weight,
        roles=cfg.indexer.indexable_roles,
        default_limit=cfg.search.default_limit,
        max_limit=cfg.search.max_limit,
    )
    return Runtime(
        config=cfg,
        repo=repo,
        strategies=strategies,
        router=router,
        indexer=indexer,
        embedder=embedder,
        llm=llm,
    )


def open_runtime(
    db_path: Path,
    cfg: RecallConfig,
    on_complete: Callable[[IndexingResult], None] | None = None,
) -> Runtime:
    """Open *db_path* (applying migrations) and build LiteLLM-backed providers from *cfg*."""
    repo = MessageRepository(open_database(db_path))
    return build_runtime(
        repo, cfg, embedder=_embedder_for(cfg), llm=_llm_for(cfg), on_complete=on_complete
    )
