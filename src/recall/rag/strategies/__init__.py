"""Retrieval strategies — direct, keyword and summary embedding."""

from recall.rag.strategies.base import LLMBasedStrategy, RetrievalStrategy
from recall.rag.strategies.direct import DirectEmbeddingStrategy
from recall.rag.strategies.keyword import KeywordEmbeddingStrategy
from recall.rag.strategies.preprocessor import ChunkPreprocessor
from recall.rag.strategies.registry import (
    DEFAULT_STRATEGIES,
    MULTI_STRATEGY_PRESET,
    available_strategies,
    create_strategies_from_config,
    create_strategy,
)
from recall.rag.strategies.summary import SummaryEmbeddingStrategy

__all__ = [
    "RetrievalStrategy",
    "LLMBasedStrategy",
    "DirectEmbeddingStrategy",
    "KeywordEmbeddingStrategy",
    "SummaryEmbeddingStrategy",
    "ChunkPreprocessor",
    "DEFAULT_STRATEGIES",
    "MULTI_STRATEGY_PRESET",
    "available_strategies",
    "create_strategy",
    "create_strategies_from_config",
]
