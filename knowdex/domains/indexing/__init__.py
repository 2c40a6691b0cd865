"""
Indexing Domain - Keeps the vector store in sync with the corpus.

This domain handles:
- Document discovery (directory walking, front matter)
- Chunking (whole, section, fixed, auto)
- Incremental change detection by content hash
- Embedding through an optional provider and cache
"""

from .chunker import MarkdownChunker, estimate_tokens
from .contracts import Chunker, DocumentSource, EmbeddingProvider
from .models import Chunk, IndexRunStats, SourceDocument
from .pipeline import IndexingPipeline, hash_content, parent_id_for
from .sources import DirectorySource, detect_language, split_front_matter

__all__ = [
    # Contracts
    "DocumentSource",
    "Chunker",
    "EmbeddingProvider",
    # Models
    "SourceDocument",
    "Chunk",
    "IndexRunStats",
    # Implementations
    "IndexingPipeline",
    "MarkdownChunker",
    "DirectorySource",
    # Helpers
    "estimate_tokens",
    "hash_content",
    "parent_id_for",
    "detect_language",
    "split_front_matter",
]
