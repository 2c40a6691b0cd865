"""
Knowdex - Document indexing and multi-stage retrieval for knowledge bases.

Example:
    >>> from knowdex.domains.search import RetrievalFunnel
    >>> funnel = RetrievalFunnel()
    >>> results = await funnel.execute("singleton", candidates)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
