"""
API Routes.
"""

from . import health, index, search

__all__ = ["health", "search", "index"]
