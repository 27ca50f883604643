"""LiteLLM client wrapper with retry, backoff, and API key validation.

All LLM + embedding calls in the indexing and search pipelines route through
this module. LiteLLM's built-in retry is used (num_retries=3, exponential
backoff). The indexer and router depend on the two small protocols below so
tests can substitute deterministic providers.
"""

from __future__ import annotations

import os
from typing import Protocol

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env_var(model: str) -> str | None:
    """Environment variable holding the API key for *model*'s provider, if one is known."""
    return _PROVIDER_ENV.get(provider_of(model))


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = api_key_env_var(model)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 512,
    temperature: float = 0.0,
    num_retries: int = 3,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    response = litellm.completion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
    )
    return response.choices[0].message.content or ""


def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector."""
    return embed_batch(model, [text], num_retries=num_retries)[0]


def embed_batch(model: str, texts: list[str], num_retries: int = 3) -> list[list[float]]:
    """Embed *texts* in one request. Vectors are returned in input order."""
    if not texts:
        return []
    response = litellm.embedding(
        model=model,
        input=texts,
        num_retries=num_retries,
    )
    return [item["embedding"] for item in response.data]


# ------------------------------------------------------------------
# Provider protocols and LiteLLM-backed implementations
# ------------------------------------------------------------------


class TextGenerator(Protocol):
    """Anything that can apply an instruction to a text and return the short result."""

    def summarize(self, text: str, instruction: str) -> str: ...


class EmbeddingProvider(Protocol):
    model: str

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


class LiteLLMTextGenerator:
    """TextGenerator backed by litellm.completion()."""

    def __init__(self, model: str, max_tokens: int = 512, num_retries: int = 3) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.num_retries = num_retries

    def summarize(self, text: str, instruction: str) -> str:
        return complete(
            self.model,
            [
                {"role": "system", "content": instruction},
                {"role": "user", "content": text},
            ],
            max_tokens=self.max_tokens,
            num_retries=self.num_retries,
        ).strip()


class LiteLLMEmbedder:
    """EmbeddingProvider backed by litellm.embedding()."""

    def __init__(self, model: str, num_retries: int = 3) -> None:
        self.model = model
        self.num_retries = num_retries

    def embed(self, text: str) -> list[float]:
        return embed(self.model, text, num_retries=self.num_retries)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return embed_batch(self.model, texts, num_retries=self.num_retries)
