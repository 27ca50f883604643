"""Strategy factory and presets."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from recall.config import StrategyCfg
from recall.rag.llm_client import TextGenerator
from recall.rag.strategies.base import RetrievalStrategy
from recall.rag.strategies.direct import DirectEmbeddingStrategy
from recall.rag.strategies.keyword import KeywordEmbeddingStrategy
from recall.rag.strategies.summary import SummaryEmbeddingStrategy

logger = logging.getLogger(__name__)

_STRATEGY_CLASSES: dict[str, type[RetrievalStrategy]] = {
    "direct": DirectEmbeddingStrategy,
    "keyword": KeywordEmbeddingStrategy,
    "summary": SummaryEmbeddingStrategy,
}

DEFAULT_STRATEGIES: tuple[StrategyCfg, ...] = (
    StrategyCfg(type="direct", weight=1.0),
)

# Direct carries the most weight; keyword and summary add supplementary signal.
MULTI_STRATEGY_PRESET: tuple[StrategyCfg, ...] = (
    StrategyCfg(type="direct", weight=1.0),
    StrategyCfg(type="keyword", weight=0.7),
    StrategyCfg(type="summary", weight=0.5),
)


@dataclass(frozen=True)
class StrategyInfo:
    type: str
    name: str
    description: str
    requires_llm: bool


def create_strategy(strategy_type: str, llm: TextGenerator | None = None) -> RetrievalStrategy:
    """Instantiate the strategy named *strategy_type*.

    Raises:
        ValueError: Unknown type, or an LLM strategy requested without an LLM.
    """
    cls = _STRATEGY_CLASSES.get(strategy_type)
    if cls is None:
        raise ValueError(
            f"Unknown strategy type '{strategy_type}'. "
            f"Available types: {', '.join(repr(t) for t in _STRATEGY_CLASSES)}."
        )
    if cls.requires_llm:
        if llm is None:
            raise ValueError(
                f"Cannot create {cls.__name__}: no LLM configured. "
                f"The '{strategy_type}' strategy needs an LLM to transform chunk text."
            )
        return cls(llm)  # type: ignore[call-arg]
    return cls()


def create_strategies_from_config(
    configs: Sequence[StrategyCfg], llm: TextGenerator | None = None
) -> list[RetrievalStrategy]:
    """Build every enabled strategy; ones that cannot be created are logged and skipped."""
    strategies: list[RetrievalStrategy] = []
    failures: list[str] = []
    for cfg in configs:
        if not cfg.enabled:
            continue
        try:
            strategies.append(create_strategy(cfg.type, llm))
        except ValueError as exc:
            failures.append(cfg.type)
            logger.warning("Skipping strategy '%s': %s", cfg.type, exc)

    if not strategies and failures:
        logger.warning(
            "No strategies could be created (%d failed); semantic search is unavailable",
            len(failures),
        )
    return strategies


def available_strategies() -> list[StrategyInfo]:
    return [
        StrategyInfo(
            type=strategy_type,
            name=cls.name,
            description=cls.description,
            requires_llm=cls.requires_llm,
        )
        for strategy_type, cls in _STRATEGY_CLASSES.items()
    ]
