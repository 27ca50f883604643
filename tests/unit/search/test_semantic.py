"""Tests for multi-strategy semantic search."""

from __future__ import annotations

import pytest

from recall.indexer.service import MessageIndexer
from recall.rag.strategies import DirectEmbeddingStrategy, KeywordEmbeddingStrategy
from recall.search.semantic import SemanticSearcher


def _ts(n: int) -> str:
    return f"2024-05-01T10:00:{n:02d}.000Z"


@pytest.fixture
def strategies(llm):
    return [DirectEmbeddingStrategy(), KeywordEmbeddingStrategy(llm)]


@pytest.fixture
def indexed(repo, embedder, llm, seed, strategies):
    seed(
        "c1",
        [
            ("m1", "user", "How do we deploy the api service to production?", _ts(1)),
            ("m2", "assistant", "Run the deploy pipeline and watch the canary metrics.", _ts(2)),
        ],
        title="Deploys",
    )
    seed("c2", [("m3", "user", "What is a good recipe for banana bread?", _ts(3))], title="Cooking")
    MessageIndexer(repo, embedder, strategies, config_key="fake", llm=llm).run_once()


def test_one_weighted_channel_per_strategy(repo, embedder, strategies, indexed):
    searcher = SemanticSearcher(
        repo, embedder, strategies, strategy_weights={"keyword": 0.5}, channel_weight=0.8
    )

    channels = searcher.channels("banana bread", 5)

    assert [c.channel_id for c in channels] == ["direct", "keyword"]
    assert [c.weight for c in channels] == pytest.approx([0.8, 0.4])
    assert all(c.higher_is_better for c in channels)
    assert all(len(c.hits) == 3 for c in channels)


def test_short_queries_are_embedded_as_is(repo, embedder, llm, strategies, indexed):
    llm.calls.clear()
    SemanticSearcher(repo, embedder, strategies).channels("banana bread", 5)
    assert embedder.queries == ["banana bread", "banana bread"]
    assert llm.calls == []


def test_search_ranks_best_message_first(repo, embedder, strategies, indexed):
    results = SemanticSearcher(repo, embedder, strategies).search("banana bread recipe", 1)

    assert len(results) == 1
    top = results[0]
    assert (top.message_id, top.conversation_title, top.role) == ("m3", "Cooking", "user")
    assert {s.strategy for s in top.sources} == {"direct", "keyword"}
    assert all(s.source == "semantic" for s in top.sources)
    assert top.snippet == "What is a good recipe for banana bread?"


def test_search_drops_deleted_conversations(repo, embedder, strategies, indexed):
    repo.soft_delete_conversation("c2")
    results = SemanticSearcher(repo, embedder, strategies).search("banana bread recipe", 5)
    assert {r.message_id for r in results} == {"m1", "m2"}


def test_weighted_score_fusion(repo, embedder, strategies, indexed):
    searcher = SemanticSearcher(repo, embedder, strategies, fusion_method="weighted_score")
    results = searcher.search("banana bread recipe", 3)
    assert results[0].message_id == "m3"
    assert results[0].score > results[1].score


def test_no_strategies_returns_nothing(repo, embedder):
    assert SemanticSearcher(repo, embedder, []).search("anything", 5) == []
    assert embedder.queries == []
