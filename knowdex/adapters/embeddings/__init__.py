"""
Embedding Adapters - Text-to-vector providers.

Supports:
- sentence-transformers models run locally in a worker thread
- Ollama embedding models over HTTP
"""

from .factory import create_embedding_provider
from .ollama import OllamaEmbedder
from .sentence_transformer import SentenceTransformerEmbedder

__all__ = ["SentenceTransformerEmbedder", "OllamaEmbedder", "create_embedding_provider"]
