"""
API Interface - FastAPI REST API over the index and retrieval funnel.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
