"""Message chunker — paragraph packing with character overlap.

Most chat messages fit in one chunk. Longer ones are split on blank-line
paragraph boundaries; a paragraph is only cut when it alone exceeds the
chunk size, in which case it falls back to a fixed window that prefers
cutting at a space.
"""

from __future__ import annotations

import re

from recall.db.models import Chunk, Message

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_JOINER = "\n\n"


class MessageChunker:
    """Split message content into Chunks keyed by conversation.

    ``document_path`` is set to the conversation id so every vector of a
    conversation can be deleted at once.
    """

    def __init__(self, chunk_size: int = 800, overlap: int = 100) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, message: Message) -> list[Chunk]:
        texts = self.split(message.content)
        return [
            Chunk(
                text=text,
                document_path=message.conversation_id,
                chunk_index=i,
                metadata={
                    "messageId": message.id,
                    "conversationId": message.conversation_id,
                    "role": message.role,
                    "createdAt": message.created_at,
                    "totalChunks": len(texts),
                },
            )
            for i, text in enumerate(texts)
        ]

    def split(self, text: str) -> list[str]:
        """Split *text* into chunk strings. Empty or blank text yields []."""
        stripped = text.strip()
        if not stripped:
            return []
        if len(stripped) <= self.chunk_size:
            return [stripped]

        paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(stripped) if p.strip()]
        chunks: list[str] = []
        current: list[str] = []

        for para in paragraphs:
            if len(para) > self.chunk_size:
                if current:
                    chunks.append(_JOINER.join(current))
                    current = []
                chunks.extend(self._split_fixed_window(para))
                continue

            if current and _joined_len(current + [para]) > self.chunk_size:
                chunks.append(_JOINER.join(current))
                current = self._overlap_tail(current)
                while current and _joined_len(current + [para]) > self.chunk_size:
                    current.pop(0)
            current.append(para)

        if current:
            chunks.append(_JOINER.join(current))
        return chunks

    def _overlap_tail(self, paragraphs: list[str]) -> list[str]:
        """Trailing paragraphs (never all of them) whose joined length fits in the overlap."""
        tail: list[str] = []
        for para in reversed(paragraphs[1:]):
            if _joined_len([para] + tail) > self.overlap:
                break
            tail.insert(0, para)
        return tail

    def _split_fixed_window(self, text: str) -> list[str]:
        """Split one oversize paragraph into windows of at most chunk_size characters."""
        segments: list[str] = []
        pos = 0
        length = len(text)

        while pos < length:
            end = min(pos + self.chunk_size, length)
            if end < length:
                cut = text.rfind(" ", pos + self.chunk_size // 2, end)
                if cut > pos:
                    end = cut
            segment = text[pos:end].strip()
            if segment:
                segments.append(segment)
            if end >= length:
                break
            pos = max(end - self.overlap, pos + 1)

        return segments


def _joined_len(parts: list[str]) -> int:
    if not parts:
        return 0
    return sum(len(p) for p in parts) + len(_JOINER) * (len(parts) - 1)
