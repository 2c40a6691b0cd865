"""
CLI Interface - Command-line tools for Knowdex.

Provides commands for:
- Indexing the corpus
- Search queries
- Index and cache maintenance
- Serving the API
"""

from .main import app, main

__all__ = ["app", "main"]
