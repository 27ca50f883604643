"""Chunk preprocessor — one combined LLM call per chunk for every LLM strategy.

Without it, keyword and summary strategies would each send the same chunk to
the LLM. The preprocessor concatenates their labeled directives into a single
prompt and lets each strategy parse its own section out of the response.
A strategy whose section is missing simply falls back to its standalone call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from recall.rag.llm_client import TextGenerator
from recall.rag.strategies.base import RetrievalStrategy

logger = logging.getLogger(__name__)


class ChunkPreprocessor:
    """Batch LLM enrichment for one indexing run.

    Results are cached by chunk text for the lifetime of the instance; build
    a new preprocessor per run to bound memory.

    Raises:
        ValueError: If two contributing strategies use the same label.
    """

    def __init__(self, llm: TextGenerator | None, strategies: Sequence[RetrievalStrategy]) -> None:
        self._llm = llm
        self._contributors = [s for s in strategies if s.preprocessing_directive()]
        self._cache: dict[str, dict[str, str]] = {}

        labels: dict[str, str] = {}
        for strategy in self._contributors:
            label = (strategy.label or strategy.id).upper()
            if label in labels:
                raise ValueError(
                    f"Strategies '{labels[label]}' and '{strategy.id}' both use "
                    f"preprocessing label '{label}'"
                )
            labels[label] = strategy.id

    @property
    def contributors(self) -> list[RetrievalStrategy]:
        return list(self._contributors)

    def build_prompt(self) -> str:
        directives = "\n\n".join(s.preprocessing_directive() for s in self._contributors)
        formats = "\n".join(f"{(s.label or s.id).upper()}: ..." for s in self._contributors)
        return (
            f"Analyze the following text and produce {len(self._contributors)} output(s).\n\n"
            f"{directives}\n\n"
            "Respond in EXACTLY this format (no other text):\n"
            f"{formats}"
        )

    def process(self, text: str) -> dict[str, str]:
        """Return {strategy_id: extracted_text} for *text*.

        Makes no LLM call when nothing contributes. A failed call yields an
        empty mapping, so every contributor uses its standalone fallback.
        """
        if not self._contributors or self._llm is None:
            return {}
        if text in self._cache:
            return self._cache[text]

        try:
            response = self._llm.summarize(text, self.build_prompt())
        except Exception:
            logger.warning("Combined preprocessing call failed; strategies will fall back", exc_info=True)
            result: dict[str, str] = {}
        else:
            result = {}
            for strategy in self._contributors:
                extracted = strategy.extract_preprocessed(response)
                if extracted:
                    result[strategy.id] = extracted
                else:
                    logger.debug("No %s section in preprocessing response", strategy.id)

        self._cache[text] = result
        return result

    def process_batch(self, texts: Iterable[str]) -> list[dict[str, str]]:
        return [self.process(t) for t in texts]

    def clear_cache(self) -> None:
        self._cache.clear()
