"""Retrieval strategy interface.

A strategy decides what text is embedded for a chunk and for a query. All
strategies share the same embedding model; they differ only in the text
transformation. Strategies that need an LLM can also contribute a labeled
directive to the shared per-chunk preprocessing call (see preprocessor.py)
and pull their own section back out of the combined response.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping

from recall.db.models import Chunk
from recall.rag.llm_client import TextGenerator

logger = logging.getLogger(__name__)

_LABEL_LINE_RE = re.compile(r"^[A-Z][A-Z0-9_ ]*:")


class RetrievalStrategy(ABC):
    """Base class for the closed set of built-in strategies."""

    id: str
    name: str
    description: str
    requires_llm: bool = False

    @abstractmethod
    def prepare_chunk_text(
        self, chunk: Chunk, preprocessed: Mapping[str, str] | None = None
    ) -> str:
        """Text to embed for *chunk*; *preprocessed* maps strategy id → shared-call result."""

    @abstractmethod
    def prepare_query_text(self, query: str) -> str:
        """Text to embed for a search query."""

    def preprocessing_directive(self) -> str | None:
        """Directive for the shared LLM call, or None to stay out of it."""
        return None

    def extract_preprocessed(self, raw_response: str) -> str | None:
        return None

    @property
    def label(self) -> str | None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


def extract_labeled_section(raw_response: str, label: str) -> str | None:
    """Return the text after ``LABEL:`` in *raw_response*, or None if absent or empty.

    The section runs until the next line that opens with an upper-case label,
    so a value may wrap over several lines.
    """
    prefix = f"{label.upper()}:"
    collected: list[str] | None = None
    for line in raw_response.splitlines():
        stripped = line.strip()
        if collected is None:
            if stripped.upper().startswith(prefix):
                collected = [stripped[len(prefix):].strip()]
            continue
        if _LABEL_LINE_RE.match(stripped):
            break
        collected.append(stripped)

    if collected is None:
        return None
    value = " ".join(part for part in collected if part).strip()
    return value or None


class LLMBasedStrategy(RetrievalStrategy):
    """Shared behaviour for strategies that transform text with an LLM.

    Subclasses set ``label``, ``query_word_threshold`` and the three prompts.
    On any provider failure the chunk or query text is returned unchanged.
    """

    requires_llm = True
    query_word_threshold: int = 0
    directive_prompt: str = ""
    standalone_chunk_prompt: str = ""
    query_transform_prompt: str = ""
    _label: str = ""

    def __init__(self, llm: TextGenerator) -> None:
        self._llm = llm

    @property
    def label(self) -> str:
        return self._label

    def preprocessing_directive(self) -> str:
        return self.directive_prompt

    def extract_preprocessed(self, raw_response: str) -> str | None:
        return extract_labeled_section(raw_response, self._label)

    def prepare_chunk_text(
        self, chunk: Chunk, preprocessed: Mapping[str, str] | None = None
    ) -> str:
        if preprocessed:
            shared = preprocessed.get(self.id)
            if shared:
                return shared

        try:
            transformed = self._llm.summarize(chunk.text, self.standalone_chunk_prompt).strip()
        except Exception:
            logger.warning(
                "%s: chunk transformation failed, using raw text", self.name, exc_info=True
            )
            return chunk.text
        return transformed or chunk.text

    def prepare_query_text(self, query: str) -> str:
        if len(query.split()) <= self.query_word_threshold:
            return query

        try:
            transformed = self._llm.summarize(query, self.query_transform_prompt).strip()
        except Exception:
            logger.warning(
                "%s: query transformation failed, using raw query", self.name, exc_info=True
            )
            return query
        return transformed or query
