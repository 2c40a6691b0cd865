"""
Markdown Chunker - Split documents into embeddable pieces.

Strategies:
- whole: one chunk per document
- section: split on ``#``-``###`` headings, merge small sections, fixed-split
  oversized ones
- fixed: fixed size with overlap, cutting at newlines where possible
- auto: whole when small, section when the text has sub-headings, else fixed

Sizes are estimated at roughly four characters per token.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Literal

from .models import Chunk, SourceDocument

logger = logging.getLogger(__name__)

__all__ = ["MarkdownChunker", "estimate_tokens"]

ChunkStrategy = Literal["auto", "whole", "section", "fixed"]

CHARS_PER_TOKEN = 4
DEFAULT_MAX_CHUNK_TOKENS = 512
DEFAULT_OVERLAP_TOKENS = 50

_HEADING = re.compile(r"^#{1,3}\s+")


def estimate_tokens(text: str) -> int:
    """Approximate token count (~4 chars/token)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class MarkdownChunker:
    """
    Heading-aware chunker for markdown documents.

    Example:
        >>> chunker = MarkdownChunker(strategy="section", max_chunk_tokens=256)
        >>> chunks = chunker.chunk(document)
    """

    def __init__(
        self,
        strategy: ChunkStrategy = "auto",
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
        overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
    ) -> None:
        self.strategy = strategy
        self.max_chunk_tokens = max_chunk_tokens
        self.overlap_tokens = overlap_tokens

    def chunk(self, document: SourceDocument) -> list[Chunk]:
        content = document.content
        if not content or not content.strip():
            return []

        strategy = self.strategy
        if strategy == "auto":
            strategy = self._select_strategy(content)

        if strategy == "section":
            pieces = self._chunk_by_section(content)
        elif strategy == "fixed":
            pieces = [(text, None) for text in self._chunk_fixed(content, self.overlap_tokens)]
        else:
            pieces = [(content, None)]

        total = len(pieces)
        logger.debug("Chunked %s into %d pieces (%s)", document.path, total, strategy)
        return [
            Chunk(content=text, chunk_index=i, total_chunks=total, section_title=title)
            for i, (text, title) in enumerate(pieces)
        ]

    def _select_strategy(self, content: str) -> ChunkStrategy:
        if estimate_tokens(content) <= self.max_chunk_tokens:
            return "whole"
        if "## " in content or "### " in content:
            return "section"
        return "fixed"

    def _chunk_by_section(self, content: str) -> list[tuple[str, str | None]]:
        sections: list[tuple[str, list[str]]] = []
        title = ""
        lines: list[str] = []

        for line in content.split("\n"):
            if _HEADING.match(line):
                if lines:
                    sections.append((title, lines))
                title = _HEADING.sub("", line).strip()
                lines = [line]
            else:
                lines.append(line)
        if lines:
            sections.append((title, lines))

        # Merge neighbours while they fit
        merged: list[tuple[str, str]] = []
        buffer: tuple[str, str] | None = None
        for section_title, section_lines in sections:
            text = "\n".join(section_lines)
            if buffer is None:
                buffer = (section_title, text)
                continue
            combined = buffer[1] + "\n" + text
            if estimate_tokens(combined) <= self.max_chunk_tokens:
                buffer = (buffer[0], combined)
            else:
                merged.append(buffer)
                buffer = (section_title, text)
        if buffer is not None:
            merged.append(buffer)

        results: list[tuple[str, str | None]] = []
        for section_title, text in merged:
            if estimate_tokens(text) > self.max_chunk_tokens:
                results.extend((piece, section_title or None) for piece in self._chunk_fixed(text, 0))
            else:
                results.append((text, section_title or None))
        return results

    def _chunk_fixed(self, content: str, overlap_tokens: int) -> list[str]:
        max_chars = self.max_chunk_tokens * CHARS_PER_TOKEN
        overlap_chars = overlap_tokens * CHARS_PER_TOKEN
        pieces: list[str] = []

        start = 0
        length = len(content)
        while start < length:
            end = start + max_chars
            if end < length:
                boundary = content.rfind("\n", 0, end + 1)
                if boundary > start + max_chars * 0.5:
                    end = boundary + 1
            else:
                end = length

            pieces.append(content[start:end])

            # Always advance, even when the overlap is as large as a chunk
            next_start = end - overlap_chars
            start = next_start if next_start > start else end
            if end >= length:
                break
        return pieces
