"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Callable, Sequence

import pytest

from recall.db.connection import Database
from recall.db.models import Conversation, Message
from recall.db.repository import MessageRepository
from recall.db.schema import open_database

_WORD_RE = re.compile(r"\w+")

FAKE_DIMS = 64


class FakeEmbedder:
    """Deterministic bag-of-words embedder: every word hashes to one dimension.

    Dimension 0 carries a constant bias so even blank text has a direction.
    """

    def __init__(self, dims: int = FAKE_DIMS, model: str = "fake/embed-64") -> None:
        self.dims = dims
        self.model = model
        self.batches: list[list[str]] = []
        self.queries: list[str] = []

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dims
        vec[0] = 0.1
        for word in _WORD_RE.findall(text.lower()):
            idx = 1 + int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % (self.dims - 1)
            vec[idx] += 1.0
        return vec

    def embed(self, text: str) -> list[float]:
        self.queries.append(text)
        return self.vector(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        return [self.vector(t) for t in texts]


class FakeLLM:
    """TextGenerator stand-in that answers every instruction with labeled sections."""

    def __init__(self, response: str | None = None, fail: bool = False) -> None:
        self.response = response
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    def summarize(self, text: str, instruction: str) -> str:
        self.calls.append((text, instruction))
        if self.fail:
            raise RuntimeError("LLM unavailable")
        if self.response is not None:
            return self.response
        words = text.split()[:5]
        return f"KEYWORDS: {', '.join(words)}\nSUMMARY: A message about {' '.join(words)}."


@pytest.fixture
def db(tmp_path) -> Database:
    """File-based DB in tmp_path with schema initialized."""
    return open_database(tmp_path / ".recall.db")


@pytest.fixture
def repo(db: Database) -> MessageRepository:
    return MessageRepository(db)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


SeedFn = Callable[..., list[Message]]


@pytest.fixture
def seed(repo: MessageRepository) -> SeedFn:
    """Insert a conversation with messages given as (id, role, content, created_at) tuples."""

    def _seed(
        conversation_id: str,
        messages: Sequence[tuple[str, str, str, str]],
        title: str | None = None,
        deleted_at: str | None = None,
    ) -> list[Message]:
        repo.add_conversation(
            Conversation(
                id=conversation_id,
                title=title if title is not None else f"Conversation {conversation_id}",
                created_at="2024-01-01T00:00:00.000Z",
                deleted_at=deleted_at,
            )
        )
        rows = [
            Message(id=mid, conversation_id=conversation_id, role=role, content=content, created_at=ts)
            for mid, role, content, ts in messages
        ]
        repo.add_messages(rows)
        return rows

    return _seed


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolate CLI runs: no global config, no RECALL_* env, fake embeddings.

    Returns the path of the project database (same file the ``db`` fixture uses).
    """
    for var in ("RECALL_EMBEDDING_MODEL", "RECALL_LLM_MODEL", "RECALL_INDEX_INTERVAL_MS"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("recall.config._GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")
    monkeypatch.setattr("recall.runtime._embedder_for", lambda cfg: FakeEmbedder())

    yield tmp_path / ".recall.db"

    logger = logging.getLogger("recall")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
