"""Tests for recall reindex."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from recall.cli.main import app
from recall.db.models import EPOCH, Watermark
from recall.db.vectors import VectorStore

runner = CliRunner()

_KEY = "openai_text_embedding_3_small"


def _flat(output: str) -> str:
    return " ".join(output.split())


@pytest.fixture
def indexed(cli_env, seed):
    seed(
        "c1",
        [
            ("m1", "user", "How do we deploy the api service to production?", "2024-05-01T10:00:01.000Z"),
            ("m2", "assistant", "Run the deploy pipeline and watch the canary metrics.", "2024-05-01T10:00:02.000Z"),
        ],
    )
    runner.invoke(app, ["index", "--db", str(cli_env)])
    return cli_env


def test_reindex_clears_vectors_and_rewinds(indexed, repo):
    result = runner.invoke(app, ["reindex", "--db", str(indexed), "--yes"])

    assert result.exit_code == 0, result.output
    output = _flat(result.output)
    assert "Vectors cleared, watermark reset" in output
    assert "Run: recall index" in output
    assert VectorStore(repo.database, "direct").count() == 0
    assert repo.get_watermark(_KEY).last_indexed_at == EPOCH


def test_reindex_with_run_rebuilds(indexed, repo):
    result = runner.invoke(app, ["reindex", "--db", str(indexed), "--yes", "--run"])

    assert result.exit_code == 0, result.output
    assert "2 messages → 2 chunks" in _flat(result.output)
    assert VectorStore(repo.database, "direct").count() == 2


def test_reindex_without_embedder_clears_tables(indexed, repo, monkeypatch):
    repo.advance_watermark("other_model", Watermark("2024-05-01T10:00:02.000Z", "m2", 2))
    monkeypatch.setattr("recall.runtime._embedder_for", lambda cfg: None)

    result = runner.invoke(app, ["reindex", "--db", str(indexed), "-y"])

    assert result.exit_code == 0, result.output
    assert VectorStore(repo.database, "direct").count() == 0
    assert repo.get_watermark(_KEY).total_indexed == 0
    assert repo.get_watermark("other_model") == Watermark()


def test_reindex_cancelled(indexed, repo):
    result = runner.invoke(app, ["reindex", "--db", str(indexed)], input="n\n")

    assert result.exit_code == 0, result.output
    assert "Cancelled." in result.output
    assert VectorStore(repo.database, "direct").count() == 2
