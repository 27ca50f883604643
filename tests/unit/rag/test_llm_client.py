"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from recall.rag.llm_client import (
    LiteLLMEmbedder,
    LiteLLMTextGenerator,
    api_key_env_var,
    complete,
    embed,
    embed_batch,
    provider_of,
    validate_api_key,
)

# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/nomic-embed-text")


def test_provider_of():
    assert provider_of("anthropic/claude-3-haiku") == "anthropic"
    assert provider_of("text-embedding-3-small") == "openai"


def test_api_key_env_var():
    assert api_key_env_var("text-embedding-3-small") == "OPENAI_API_KEY"
    assert api_key_env_var("together_ai/m2-bert") == "TOGETHERAI_API_KEY"
    assert api_key_env_var("ollama/nomic-embed-text") is None
    assert api_key_env_var("myprovider/embed-1") is None


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def test_complete_returns_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "deploy, ci"

    with patch("recall.rag.llm_client.litellm.completion", return_value=mock_response) as mock:
        result = complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}], max_tokens=64)

    assert result == "deploy, ci"
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["max_tokens"] == 64
    assert kwargs["num_retries"] == 3


def test_complete_returns_empty_string_on_none_content():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = None

    with patch("recall.rag.llm_client.litellm.completion", return_value=mock_response):
        assert complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}]) == ""


def test_text_generator_sends_instruction_as_system_message():
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "  A summary.  "

    with patch("recall.rag.llm_client.litellm.completion", return_value=mock_response) as mock:
        result = LiteLLMTextGenerator("openai/gpt-4o-mini", max_tokens=128).summarize(
            "chunk text", "Summarize this."
        )

    assert result == "A summary."
    assert mock.call_args.kwargs["messages"] == [
        {"role": "system", "content": "Summarize this."},
        {"role": "user", "content": "chunk text"},
    ]
    assert mock.call_args.kwargs["max_tokens"] == 128


# ------------------------------------------------------------------
# embed() / embed_batch()
# ------------------------------------------------------------------


def _embedding_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": v, "index": i} for i, v in enumerate(vectors)]
    return response


def test_embed_batch_returns_vectors_in_order():
    vectors = [[0.1, 0.2], [0.3, 0.4]]
    with patch(
        "recall.rag.llm_client.litellm.embedding", return_value=_embedding_response(vectors)
    ) as mock:
        result = embed_batch("openai/text-embedding-3-small", ["a", "b"])

    assert result == vectors
    assert mock.call_args.kwargs["input"] == ["a", "b"]


def test_embed_batch_empty_input_skips_call():
    with patch("recall.rag.llm_client.litellm.embedding") as mock:
        assert embed_batch("openai/text-embedding-3-small", []) == []
    mock.assert_not_called()


def test_embed_single_text():
    with patch(
        "recall.rag.llm_client.litellm.embedding", return_value=_embedding_response([[0.5, 0.5]])
    ):
        assert embed("openai/text-embedding-3-small", "hello") == [0.5, 0.5]


def test_embedder_propagates_provider_errors():
    embedder = LiteLLMEmbedder("openai/text-embedding-3-small")
    with patch("recall.rag.llm_client.litellm.embedding", side_effect=RuntimeError("rate limited")):
        with pytest.raises(RuntimeError, match="rate limited"):
            embedder.embed_batch(["a"])
