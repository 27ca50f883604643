"""Tests for retrieval strategies and the strategy registry."""

from __future__ import annotations

import pytest

from recall.config import StrategyCfg
from recall.db.models import Chunk
from recall.rag.strategies import (
    DEFAULT_STRATEGIES,
    MULTI_STRATEGY_PRESET,
    DirectEmbeddingStrategy,
    KeywordEmbeddingStrategy,
    SummaryEmbeddingStrategy,
    available_strategies,
    create_strategies_from_config,
    create_strategy,
)
from recall.rag.strategies.base import extract_labeled_section

from conftest import FakeLLM


def _chunk(text: str = "We moved the deploy pipeline to GitHub Actions last week.") -> Chunk:
    return Chunk(text=text, document_path="c1", chunk_index=0, metadata={"messageId": "m1"})


# ---------------------------------------------------------------------------
# Direct
# ---------------------------------------------------------------------------


def test_direct_is_identity():
    strategy = DirectEmbeddingStrategy()
    chunk = _chunk()
    assert strategy.prepare_chunk_text(chunk, {"direct": "ignored"}) == chunk.text
    assert strategy.prepare_query_text("any query") == "any query"
    assert strategy.preprocessing_directive() is None
    assert strategy.requires_llm is False


# ---------------------------------------------------------------------------
# LLM-based strategies
# ---------------------------------------------------------------------------


def test_keyword_uses_preprocessed_result_without_llm_call():
    llm = FakeLLM()
    strategy = KeywordEmbeddingStrategy(llm)
    text = strategy.prepare_chunk_text(_chunk(), {"keyword": "deploy, pipeline, github actions"})
    assert text == "deploy, pipeline, github actions"
    assert llm.calls == []


def test_keyword_falls_back_to_standalone_call():
    llm = FakeLLM(response="  deploy, pipeline  ")
    strategy = KeywordEmbeddingStrategy(llm)
    assert strategy.prepare_chunk_text(_chunk(), {}) == "deploy, pipeline"
    assert llm.calls[0][1] == strategy.standalone_chunk_prompt


def test_llm_failure_returns_raw_chunk_text():
    strategy = SummaryEmbeddingStrategy(FakeLLM(fail=True))
    chunk = _chunk()
    assert strategy.prepare_chunk_text(chunk) == chunk.text


def test_empty_llm_response_returns_raw_chunk_text():
    strategy = SummaryEmbeddingStrategy(FakeLLM(response="   "))
    chunk = _chunk()
    assert strategy.prepare_chunk_text(chunk) == chunk.text


def test_short_query_is_not_transformed():
    llm = FakeLLM(response="rewritten")
    keyword = KeywordEmbeddingStrategy(llm)
    summary = SummaryEmbeddingStrategy(llm)
    assert keyword.prepare_query_text("deploy pipeline broken") == "deploy pipeline broken"
    assert summary.prepare_query_text("one two three four five six seven eight") == (
        "one two three four five six seven eight"
    )
    assert llm.calls == []


def test_long_query_is_transformed():
    llm = FakeLLM(response="rewritten query")
    summary = SummaryEmbeddingStrategy(llm)
    query = "what did we decide about moving the deploy pipeline last week"
    assert summary.prepare_query_text(query) == "rewritten query"
    assert llm.calls == [(query, summary.query_transform_prompt)]


def test_query_failure_returns_raw_query():
    keyword = KeywordEmbeddingStrategy(FakeLLM(fail=True))
    query = "what did we decide about the deploy pipeline"
    assert keyword.prepare_query_text(query) == query


def test_labels_and_directives():
    llm = FakeLLM()
    keyword, summary = KeywordEmbeddingStrategy(llm), SummaryEmbeddingStrategy(llm)
    assert keyword.label == "KEYWORDS"
    assert summary.label == "SUMMARY"
    assert keyword.preprocessing_directive().startswith("KEYWORDS:")
    assert summary.preprocessing_directive().startswith("SUMMARY:")


def test_extract_preprocessed_reads_own_section():
    raw = "KEYWORDS: deploy, pipeline\nSUMMARY: The team moved CI."
    llm = FakeLLM()
    assert KeywordEmbeddingStrategy(llm).extract_preprocessed(raw) == "deploy, pipeline"
    assert SummaryEmbeddingStrategy(llm).extract_preprocessed(raw) == "The team moved CI."


def test_extract_labeled_section_spans_lines():
    raw = "SUMMARY: The team moved CI\nto GitHub Actions.\nKEYWORDS: ci, deploy"
    assert extract_labeled_section(raw, "SUMMARY") == "The team moved CI to GitHub Actions."
    assert extract_labeled_section(raw, "keywords") == "ci, deploy"


def test_extract_labeled_section_missing_or_empty():
    assert extract_labeled_section("nothing labeled here", "SUMMARY") is None
    assert extract_labeled_section("SUMMARY:   \nKEYWORDS: a", "SUMMARY") is None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_create_strategy_by_type():
    llm = FakeLLM()
    assert isinstance(create_strategy("direct"), DirectEmbeddingStrategy)
    assert isinstance(create_strategy("keyword", llm), KeywordEmbeddingStrategy)
    assert isinstance(create_strategy("summary", llm), SummaryEmbeddingStrategy)


def test_create_strategy_unknown_type():
    with pytest.raises(ValueError, match="Unknown strategy type"):
        create_strategy("hyde")


def test_create_llm_strategy_without_llm():
    with pytest.raises(ValueError, match="no LLM configured"):
        create_strategy("summary")


def test_create_strategies_from_config_skips_disabled_and_failures():
    configs = [
        StrategyCfg(type="direct"),
        StrategyCfg(type="keyword", weight=0.7),
        StrategyCfg(type="summary", enabled=False),
    ]
    strategies = create_strategies_from_config(configs, llm=None)
    assert [s.id for s in strategies] == ["direct"]

    strategies = create_strategies_from_config(configs, llm=FakeLLM())
    assert [s.id for s in strategies] == ["direct", "keyword"]


def test_presets():
    assert [(s.type, s.weight) for s in DEFAULT_STRATEGIES] == [("direct", 1.0)]
    assert [(s.type, s.weight) for s in MULTI_STRATEGY_PRESET] == [
        ("direct", 1.0),
        ("keyword", 0.7),
        ("summary", 0.5),
    ]


def test_available_strategies():
    info = {i.type: i for i in available_strategies()}
    assert set(info) == {"direct", "keyword", "summary"}
    assert info["direct"].requires_llm is False
    assert info["summary"].requires_llm is True
