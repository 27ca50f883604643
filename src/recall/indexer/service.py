"""Incremental message indexer.

Each run picks up messages strictly after the persisted watermark, chunks
them, lets every enabled strategy transform the chunk text, embeds the
result in batches and upserts it into that strategy's vector table. Only
when every strategy has been written does the watermark move forward, so a
failed run is simply retried from the same position next time. Vector rows
are keyed by ``msg:{messageId}:{chunkIndex}``, which makes the retry
idempotent.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from recall.config import RecallConfig
from recall.db.models import Chunk, VectorRecord, Watermark
from recall.db.repository import MessageRepository
from recall.db.vectors import VectorStore, clear_all_vector_tables, existing_strategy_ids
from recall.ingest.chunker import MessageChunker
from recall.rag.llm_client import EmbeddingProvider, TextGenerator
from recall.rag.strategies.base import RetrievalStrategy
from recall.rag.strategies.preprocessor import ChunkPreprocessor

logger = logging.getLogger(__name__)


@dataclass
class IndexingResult:
    """Completion record of one indexing run."""

    messages_indexed: int = 0
    chunks_created: int = 0
    duration_ms: float = 0.0
    has_more: bool = False


@dataclass
class IndexStats:
    watermark: Watermark
    vector_counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_vectors(self) -> int:
        return sum(self.vector_counts.values())


class MessageIndexer:
    """Moves the watermark forward one batch at a time.

    ``run_once`` is single-flight: a call made while another run is in
    progress returns None immediately instead of waiting.
    """

    def __init__(
        self,
        repo: MessageRepository,
        embedder: EmbeddingProvider,
        strategies: Sequence[RetrievalStrategy],
        *,
        config_key: str,
        llm: TextGenerator | None = None,
        chunker: MessageChunker | None = None,
        batch_size: int = 50,
        max_messages_per_run: int = 500,
        indexable_roles: Sequence[str] = ("user", "assistant"),
        min_content_length: int = 10,
        on_complete: Callable[[IndexingResult], None] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_messages_per_run < 1:
            raise ValueError("max_messages_per_run must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self._strategies = list(strategies)
        self._config_key = config_key
        self._llm = llm
        self._chunker = chunker or MessageChunker()
        self._batch_size = batch_size
        self._max_messages = max_messages_per_run
        self._roles = list(indexable_roles)
        self._min_length = min_content_length
        self._on_complete = on_complete

        self._stores = {s.id: VectorStore(repo.database, s.id) for s in self._strategies}
        self._run_lock = threading.Lock()
        self._watermark: Watermark | None = None

    @classmethod
    def from_config(
        cls,
        repo: MessageRepository,
        embedder: EmbeddingProvider,
        strategies: Sequence[RetrievalStrategy],
        cfg: RecallConfig,
        llm: TextGenerator | None = None,
        on_complete: Callable[[IndexingResult], None] | None = None,
    ) -> MessageIndexer:
        return cls(
            repo,
            embedder,
            strategies,
            config_key=cfg.config_key,
            llm=llm,
            chunker=MessageChunker(cfg.chunker.chunk_size, cfg.chunker.overlap),
            batch_size=cfg.embedding.batch_size,
            max_messages_per_run=cfg.indexer.max_messages_per_run,
            indexable_roles=cfg.indexer.indexable_roles,
            min_content_length=cfg.indexer.min_content_length,
            on_complete=on_complete,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def strategies(self) -> list[RetrievalStrategy]:
        return list(self._strategies)

    @property
    def config_key(self) -> str:
        return self._config_key

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def watermark(self) -> Watermark:
        """Last committed watermark (read from the store on first access)."""
        if self._watermark is None:
            self._watermark = self._repo.get_watermark(self._config_key) or Watermark()
        return self._watermark

    def stats(self) -> IndexStats:
        watermark = self._repo.get_watermark(self._config_key) or Watermark()
        return IndexStats(
            watermark=watermark,
            vector_counts={sid: store.count() for sid, store in self._stores.items()},
        )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_once(self) -> IndexingResult | None:
        """Index the next batch. Returns None if a run is already in progress.

        Raises:
            Exception: Whatever the embedding provider or vector store raised;
                the watermark is left where it was.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.debug("Indexing run already in progress; trigger ignored")
            return None
        try:
            return self._index_next_batch()
        finally:
            self._run_lock.release()

    def run_safe(self) -> IndexingResult | None:
        """``run_once`` for timer loops: failures are logged, never raised."""
        try:
            return self.run_once()
        except Exception:
            logger.exception("Indexing run failed; watermark not advanced")
            return None

    def run_until_caught_up(self, max_runs: int | None = None) -> list[IndexingResult]:
        """Run back-to-back batches while more messages are pending."""
        results: list[IndexingResult] = []
        while max_runs is None or len(results) < max_runs:
            result = self.run_once()
            if result is None:
                break
            results.append(result)
            if not result.has_more:
                break
        return results

    def _index_next_batch(self) -> IndexingResult:
        start = time.monotonic()
        if not self._strategies:
            logger.warning("No retrieval strategies enabled; skipping indexing")
            return IndexingResult()

        watermark = self._repo.ensure_watermark(self._config_key)
        self._watermark = watermark
        messages = self._repo.fetch_after(
            watermark, self._roles, self._min_length, self._max_messages
        )
        if not messages:
            return IndexingResult(duration_ms=_elapsed_ms(start))

        chunks = [chunk for message in messages for chunk in self._chunker.chunk(message)]
        if chunks:
            preprocessor = ChunkPreprocessor(self._llm, self._strategies)
            preprocessed = preprocessor.process_batch(c.text for c in chunks)
            self._write_all_strategies(chunks, preprocessed)

        last = messages[-1]
        advanced = Watermark(
            last_indexed_at=last.created_at,
            last_indexed_id=last.id,
            total_indexed=watermark.total_indexed + len(messages),
        )
        if self._repo.advance_watermark(self._config_key, advanced):
            self._watermark = advanced
        else:
            logger.warning(
                "Watermark for %s moved past %s while indexing; keeping stored value",
                self._config_key,
                advanced.position,
            )
            self._watermark = self._repo.get_watermark(self._config_key)

        result = IndexingResult(
            messages_indexed=len(messages),
            chunks_created=len(chunks),
            duration_ms=_elapsed_ms(start),
            has_more=len(messages) >= self._max_messages,
        )
        logger.info(
            "Indexed %d messages (%d chunks) in %.0fms%s",
            result.messages_indexed,
            result.chunks_created,
            result.duration_ms,
            " (more pending)" if result.has_more else "",
        )
        if self._on_complete is not None:
            try:
                self._on_complete(result)
            except Exception:
                logger.exception("on_complete callback failed")
        return result

    def _write_all_strategies(
        self, chunks: list[Chunk], preprocessed: list[dict[str, str]]
    ) -> None:
        """Embed and store chunks for every strategy concurrently; re-raise the first failure."""
        workers = len(self._strategies)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="recall-embed") as pool:
            futures = {
                pool.submit(self._write_strategy, strategy, chunks, preprocessed): strategy
                for strategy in self._strategies
            }
            for future in as_completed(futures):
                strategy = futures[future]
                count = future.result()
                logger.debug("Strategy %s: wrote %d vectors", strategy.id, count)

    def _write_strategy(
        self,
        strategy: RetrievalStrategy,
        chunks: list[Chunk],
        preprocessed: list[dict[str, str]],
    ) -> int:
        texts = [
            self._prepare_text(strategy, chunk, shared)
            for chunk, shared in zip(chunks, preprocessed)
        ]

        vectors: list[list[float]] = []
        for i in range(0, len(texts), self._batch_size):
            batch = texts[i : i + self._batch_size]
            batch_vectors = self._embedder.embed_batch(batch)
            if len(batch_vectors) != len(batch):
                raise RuntimeError(
                    f"Embedding provider returned {len(batch_vectors)} vectors "
                    f"for {len(batch)} inputs"
                )
            vectors.extend(batch_vectors)

        records = [
            VectorRecord(
                id=chunk.record_id,
                document_path=chunk.document_path,
                chunk_index=chunk.chunk_index,
                text=chunk.text,
                vector=vector,
                content_type=chunk.content_type,
                metadata=dict(chunk.metadata),
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        return self._stores[strategy.id].upsert(records)

    @staticmethod
    def _prepare_text(
        strategy: RetrievalStrategy, chunk: Chunk, shared: Mapping[str, str]
    ) -> str:
        try:
            text = strategy.prepare_chunk_text(chunk, shared)
        except Exception:
            logger.warning(
                "Strategy %s failed on %s; embedding raw text", strategy.id, chunk.record_id,
                exc_info=True,
            )
            return chunk.text
        return text or chunk.text

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def delete_conversation(self, conversation_id: str) -> int:
        """Remove a conversation's vectors from every strategy table. Returns rows deleted."""
        strategy_ids = set(self._stores) | set(existing_strategy_ids(self._repo.database))
        deleted = 0
        for sid in sorted(strategy_ids):
            store = self._stores.get(sid) or VectorStore(self._repo.database, sid)
            deleted += store.delete_by_document(conversation_id)
        logger.info("Deleted %d vectors for conversation %s", deleted, conversation_id)
        return deleted

    def reindex_all(self) -> None:
        """Drop all vectors and rewind every model's watermark; waits for an in-flight run."""
        with self._run_lock:
            cleared = clear_all_vector_tables(self._repo.database)
            rewound = self._repo.reset_all_watermarks()
            self._watermark = self._repo.reset_watermark(self._config_key)
        logger.info(
            "Cleared vectors for %s and reset %d watermark(s); next run re-indexes everything",
            ", ".join(cleared) or "no strategies",
            rewound,
        )


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000.0
