"""Keyword strategy: embed an LLM-extracted keyword list.

Builds a keyword-space index, which helps when a query uses different
wording than the message it should find.
"""

from __future__ import annotations

from recall.rag.strategies.base import LLMBasedStrategy

_LABEL = "KEYWORDS"


class KeywordEmbeddingStrategy(LLMBasedStrategy):
    id = "keyword"
    name = "Keyword Embedding"
    description = (
        "Extracts keywords via LLM before embedding. Improves recall for concept-based queries."
    )

    _label = _LABEL
    query_word_threshold = 5
    directive_prompt = (
        f"{_LABEL}: Extract 10-20 important keywords and key phrases. "
        "Focus on specific terms, named entities, technical concepts, and core topics. "
        f'Output format: "{_LABEL}: keyword1, keyword2, keyword3, ..."'
    )
    standalone_chunk_prompt = (
        "Extract 10-20 important keywords and key phrases from this text. "
        "Return ONLY a comma-separated list of keywords, nothing else. "
        "Focus on: specific terms, named entities, technical concepts, and core topics."
    )
    query_transform_prompt = (
        "Extract the key search terms from this query. "
        "Return ONLY a comma-separated list of keywords, nothing else."
    )
