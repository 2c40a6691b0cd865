"""
Inverted Index - token -> document-index postings for fast keyword recall.

Built per search call over the candidate set. Lookups cost
O(query tokens x average postings).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from .tokenizer import tokenize

if TYPE_CHECKING:
    from .models import RankingCandidate

__all__ = [
    "InvertedIndex",
    "build_inverted_index",
    "lookup",
    "lookup_all",
    "searchable_text",
]

Postings = dict[str, set[int]]


def searchable_text(candidate: RankingCandidate) -> str:
    """Concatenate the text fields of a candidate used for keyword recall."""
    parts = [
        candidate.title,
        candidate.trigger,
        candidate.description,
        candidate.content,
        candidate.code,
        " ".join(candidate.tags),
    ]
    return " ".join(p for p in parts if p)


def build_inverted_index(documents: Iterable[str | tuple[str, str]]) -> Postings:
    """
    Build postings from documents.

    Args:
        documents: Searchable texts, or ``(id, searchable_text)`` pairs. The
            posting value is the document's position in the input.

    Returns:
        Mapping token -> set of document indices
    """
    index: Postings = {}
    for doc_index, doc in enumerate(documents):
        text = doc[1] if isinstance(doc, tuple) else doc
        for token in tokenize(text):
            index.setdefault(token, set()).add(doc_index)
    return index


def lookup(index: Postings, query: str) -> list[int]:
    """OR semantics: documents containing any query token."""
    matched: set[int] = set()
    for token in tokenize(query):
        postings = index.get(token)
        if postings:
            matched |= postings
    return sorted(matched)


def lookup_all(index: Postings, query: str) -> list[int]:
    """AND semantics: documents containing every query token."""
    tokens = tokenize(query)
    if not tokens:
        return []

    matched: set[int] | None = None
    for token in tokens:
        postings = index.get(token)
        if not postings:
            return []
        matched = set(postings) if matched is None else matched & postings
        if not matched:
            return []
    return sorted(matched or ())


class InvertedIndex:
    """
    Object wrapper around the postings map.

    Example:
        >>> index = InvertedIndex.from_texts(["cat dog", "cat bird"])
        >>> index.lookup("cat")
        [0, 1]
        >>> index.lookup_all("cat dog")
        [0]
    """

    def __init__(self, postings: Postings | None = None, size: int = 0) -> None:
        self._postings: Postings = postings or {}
        self._size = size

    @classmethod
    def from_texts(cls, texts: Sequence[str | tuple[str, str]]) -> InvertedIndex:
        return cls(build_inverted_index(texts), len(texts))

    @classmethod
    def from_candidates(cls, candidates: Sequence[RankingCandidate]) -> InvertedIndex:
        return cls.from_texts([(c.id, searchable_text(c)) for c in candidates])

    def lookup(self, query: str) -> list[int]:
        return lookup(self._postings, query)

    def lookup_all(self, query: str) -> list[int]:
        return lookup_all(self._postings, query)

    def postings(self, token: str) -> frozenset[int]:
        """Read-only postings of a single token."""
        return frozenset(self._postings.get(token, ()))

    @property
    def vocabulary_size(self) -> int:
        return len(self._postings)

    def __len__(self) -> int:
        return self._size
