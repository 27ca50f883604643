"""Summary strategy: embed a 1-2 sentence LLM summary of each chunk."""

from __future__ import annotations

from recall.rag.strategies.base import LLMBasedStrategy

_LABEL = "SUMMARY"


class SummaryEmbeddingStrategy(LLMBasedStrategy):
    id = "summary"
    name = "Summary Embedding"
    description = (
        "Summarizes chunks via LLM before embedding. Improves results for broad conceptual queries."
    )

    _label = _LABEL
    query_word_threshold = 8
    directive_prompt = (
        f"{_LABEL}: Write a concise 1-2 sentence summary capturing the main point and key details. "
        f'Output format: "{_LABEL}: Your summary here."'
    )
    standalone_chunk_prompt = (
        "Write a concise 1-2 sentence summary of this text. "
        "Capture the main point and key details. Return ONLY the summary, nothing else."
    )
    query_transform_prompt = (
        "Rephrase this search query as a concise statement describing the information being "
        "sought. Return ONLY the rephrased statement, nothing else."
    )
