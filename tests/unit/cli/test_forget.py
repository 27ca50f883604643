"""Tests for recall forget."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from recall.cli.main import app
from recall.db.vectors import VectorStore

runner = CliRunner()


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
        title="Deploys",
    )
    seed("c2", [("m3", "user", "We should deploy the bakery website too.", "2024-05-01T10:00:03.000Z")])
    runner.invoke(app, ["index", "--db", str(cli_env)])
    return cli_env


def test_forget_hides_conversation_and_deletes_vectors(indexed, repo):
    result = runner.invoke(app, ["forget", "--conversation", "c1", "--db", str(indexed), "--yes"])

    assert result.exit_code == 0, result.output
    assert "Conversation hidden, 2 vectors deleted" in _flat(result.output)
    assert repo.get_conversation("c1").deleted_at is not None
    assert VectorStore(repo.database, "direct").count() == 1

    search = runner.invoke(app, ["search", "deploy", "--db", str(indexed), "--json"])
    assert [i["messageId"] for i in json.loads(search.stdout)["items"]] == ["m3"]


def test_forget_without_embedder_still_deletes_vectors(indexed, repo, monkeypatch):
    monkeypatch.setattr("recall.runtime._embedder_for", lambda cfg: None)

    result = runner.invoke(app, ["forget", "-c", "c1", "--db", str(indexed), "-y"])

    assert result.exit_code == 0, result.output
    assert "2 vectors deleted" in _flat(result.output)
    assert VectorStore(repo.database, "direct").count() == 1


def test_forget_asks_for_confirmation(indexed, repo):
    result = runner.invoke(app, ["forget", "-c", "c1", "--db", str(indexed)], input="n\n")

    assert result.exit_code == 0, result.output
    assert "Cancelled." in result.output
    assert repo.get_conversation("c1").deleted_at is None
    assert VectorStore(repo.database, "direct").count() == 3


def test_forget_unknown_conversation(indexed):
    result = runner.invoke(app, ["forget", "-c", "nope", "--db", str(indexed), "--yes"])

    assert result.exit_code == 0, result.output
    assert "not found" in _flat(result.output)
