"""Recall ingest — message chunking and conversation import."""

from recall.ingest.chunker import MessageChunker
from recall.ingest.importer import ExportFormatError, import_conversations, load_export

__all__ = [
    "MessageChunker",
    "ExportFormatError",
    "import_conversations",
    "load_export",
]
