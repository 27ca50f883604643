"""Tests for the shared per-chunk preprocessing call."""

from __future__ import annotations

import pytest

from recall.rag.strategies import (
    ChunkPreprocessor,
    DirectEmbeddingStrategy,
    KeywordEmbeddingStrategy,
    SummaryEmbeddingStrategy,
)

from conftest import FakeLLM


def test_no_contributors_means_no_llm_call():
    llm = FakeLLM()
    pre = ChunkPreprocessor(llm, [DirectEmbeddingStrategy()])
    assert pre.contributors == []
    assert pre.process("some chunk text") == {}
    assert llm.calls == []


def test_no_llm_means_empty_result():
    llm = FakeLLM()
    pre = ChunkPreprocessor(None, [KeywordEmbeddingStrategy(llm)])
    assert pre.process("some chunk text") == {}


def test_one_call_serves_every_llm_strategy():
    llm = FakeLLM(response="KEYWORDS: deploy, ci\nSUMMARY: The team moved CI.")
    strategies = [DirectEmbeddingStrategy(), KeywordEmbeddingStrategy(llm), SummaryEmbeddingStrategy(llm)]
    pre = ChunkPreprocessor(llm, strategies)

    result = pre.process("We moved CI to GitHub Actions.")

    assert result == {"keyword": "deploy, ci", "summary": "The team moved CI."}
    assert len(llm.calls) == 1
    text, prompt = llm.calls[0]
    assert text == "We moved CI to GitHub Actions."
    assert "Extract 10-20 important keywords" in prompt
    assert "concise 1-2 sentence summary" in prompt
    assert prompt.rstrip().endswith("KEYWORDS: ...\nSUMMARY: ...")


def test_missing_section_only_affects_that_strategy():
    llm = FakeLLM(response="KEYWORDS: deploy, ci")
    pre = ChunkPreprocessor(llm, [KeywordEmbeddingStrategy(llm), SummaryEmbeddingStrategy(llm)])
    assert pre.process("chunk") == {"keyword": "deploy, ci"}


def test_failed_call_yields_empty_mapping():
    llm = FakeLLM(fail=True)
    pre = ChunkPreprocessor(llm, [KeywordEmbeddingStrategy(llm)])
    assert pre.process("chunk") == {}


def test_results_are_cached_by_text():
    llm = FakeLLM()
    pre = ChunkPreprocessor(llm, [KeywordEmbeddingStrategy(llm)])
    results = pre.process_batch(["same text", "same text", "other text"])
    assert results[0] == results[1]
    assert len(llm.calls) == 2

    pre.clear_cache()
    pre.process("same text")
    assert len(llm.calls) == 3


def test_duplicate_labels_rejected():
    class AltKeywordStrategy(KeywordEmbeddingStrategy):
        id = "keyword_alt"

    llm = FakeLLM()
    with pytest.raises(ValueError, match="KEYWORDS"):
        ChunkPreprocessor(llm, [KeywordEmbeddingStrategy(llm), AltKeywordStrategy(llm)])
