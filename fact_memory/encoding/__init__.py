"""
Encoding module.

Provides:
- Embedding generation (Ollama)
- Query embedding cache
"""

from fact_memory.encoding.cache import EmbeddingCache
from fact_memory.encoding.embedder import (
    BaseEmbedder,
    EmbeddingResult,
    OllamaEmbedder,
    create_embedder,
    l2_normalize,
)

__all__ = [
    "BaseEmbedder",
    "EmbeddingCache",
    "EmbeddingResult",
    "OllamaEmbedder",
    "create_embedder",
    "l2_normalize",
]
