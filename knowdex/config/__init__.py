"""
Configuration - Application settings, error taxonomy, and index manifests.
"""

from .errors import (
    DimensionMismatchError,
    EmbeddingError,
    ErrorCode,
    InvalidItemError,
    KnowdexError,
    SearchError,
    StorageError,
)
from .manifest import (
    SCHEMA_VERSION,
    IndexManifest,
    ManifestStore,
    atomic_write_json,
    read_json,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "KnowdexError",
    "DimensionMismatchError",
    "InvalidItemError",
    "EmbeddingError",
    "SearchError",
    "StorageError",
    # Manifests
    "SCHEMA_VERSION",
    "IndexManifest",
    "ManifestStore",
    "atomic_write_json",
    "read_json",
]
