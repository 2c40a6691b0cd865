"""
Tokenizer - Text to token sequence, shared by indexing and keyword scoring.
"""

from __future__ import annotations

import re
from typing import Any

__all__ = ["tokenize", "token_set", "MIN_TOKEN_LENGTH"]

MIN_TOKEN_LENGTH = 2

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WORD = re.compile(r"\w+")


def tokenize(text: Any) -> list[str]:
    """
    Split text into lowercase tokens.

    camelCase/PascalCase boundaries are split before lowercasing, tokens are
    maximal runs of Unicode letters, digits and underscores, and tokens
    shorter than two characters are dropped. Order and duplicates are kept.

    Args:
        text: Input text; anything that is not a non-empty string yields []

    Returns:
        List of tokens

    Example:
        >>> tokenize("URLSession dataTask")
        ['urlsession', 'data', 'task']
    """
    if not isinstance(text, str) or not text:
        return []
    expanded = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    return [t for t in _WORD.findall(expanded.lower()) if len(t) >= MIN_TOKEN_LENGTH]


def token_set(text: Any) -> set[str]:
    """Distinct tokens of ``text``."""
    return set(tokenize(text))
