"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from knowdex.config.errors import DimensionMismatchError

    raise DimensionMismatchError(expected=384, actual=768, item_id="recipe_a")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Index errors
    INDEX_DIMENSION_MISMATCH = "INDEX_DIMENSION_MISMATCH"
    INDEX_INVALID_ITEM = "INDEX_INVALID_ITEM"

    # Embedding errors
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    EMBEDDING_TIMEOUT = "EMBEDDING_TIMEOUT"

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"

    # Storage errors
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KnowdexError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class DimensionMismatchError(KnowdexError):
    """Vector length differs from the configured embedding dimension."""

    def __init__(
        self,
        expected: int,
        actual: int,
        item_id: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        details: dict[str, Any] = {"expected": expected, "actual": actual}
        if item_id is not None:
            details["item_id"] = item_id
        super().__init__(
            ErrorCode.INDEX_DIMENSION_MISMATCH,
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            details,
        )


class InvalidItemError(KnowdexError):
    """Item is missing a required field."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.INDEX_INVALID_ITEM, message, details)


class EmbeddingError(KnowdexError):
    """Embedding provider failed, timed out or is not configured."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.EMBEDDING_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class SearchError(KnowdexError):
    """Search domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INVALID_QUERY, message, details)


class StorageError(KnowdexError):
    """Persisted index or cache files could not be written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_WRITE_FAILED, message, details)
