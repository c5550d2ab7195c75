"""
Embedding generation for fact content and search queries.

Uses Ollama's embedding API (nomic-embed-text by default). Vectors are
L2-normalized so cosine similarity reduces to a dot product.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx
import numpy as np
from pydantic import BaseModel

from fact_memory.config import EmbeddingConfig

logger = logging.getLogger(__name__)


class EmbeddingResult(BaseModel):
    """Result of an embedding operation."""

    text: str
    embedding: list[float]
    model: str
    dimensions: int


def l2_normalize(vector: list[float]) -> list[float]:
    """Scale ``vector`` to unit length; zero vectors are returned unchanged."""
    array = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(array)
    if norm == 0:
        return array.tolist()
    return (array / norm).tolist()


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config

    @abstractmethod
    async def _embed_raw(self, text: str) -> list[float]:
        """Call the provider for a single, already truncated text."""
        pass

    def zero_vector(self) -> list[float]:
        return [0.0] * self.config.dimensions

    async def embed(self, text: str) -> list[float]:
        """
        Generate a normalized embedding for a single text.

        Empty text yields a zero vector without calling the provider.
        """
        if not text or not text.strip():
            return self.zero_vector()
        raw = await self._embed_raw(text[: self.config.max_text_length])
        return l2_normalize(raw)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts, preserving order.

        Texts are embedded concurrently in chunks of ``batch_size``. If a
        chunk fails, its texts are retried one by one and any text that
        still fails gets an empty list.
        """
        results: list[list[float]] = []
        batch_size = self.config.batch_size

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            try:
                batch_results = await asyncio.gather(*(self.embed(text) for text in batch))
            except Exception as e:
                logger.warning(f"Batch embedding failed, falling back to sequential: {e}")
                batch_results = [await self._embed_or_empty(text) for text in batch]
            results.extend(batch_results)

        return results

    async def _embed_or_empty(self, text: str) -> list[float]:
        try:
            return await self.embed(text)
        except Exception as e:
            logger.warning(f"Embedding failed for text ({len(text)} chars): {e}")
            return []

    async def embed_with_metadata(self, text: str) -> EmbeddingResult:
        """Generate embedding with metadata."""
        embedding = await self.embed(text)
        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.config.model,
            dimensions=len(embedding),
        )

    async def close(self) -> None:
        """Release provider resources."""


class OllamaEmbedder(BaseEmbedder):
    """
    Ollama-based embedder for local embedding generation.

    Uses Ollama's embedding API with models like:
    - nomic-embed-text (768 dimensions)
    - mxbai-embed-large (1024 dimensions)
    - all-minilm (384 dimensions)
    """

    def __init__(self, config: EmbeddingConfig | None = None):
        super().__init__(config or EmbeddingConfig())
        self.base_url = self.config.ollama_base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _embed_raw(self, text: str) -> list[float]:
        client = await self._get_client()

        response = await client.post(
            f"{self.base_url}/api/embeddings",
            json={
                "model": self.config.model,
                "prompt": text,
            },
        )
        response.raise_for_status()

        data = response.json()
        return data["embedding"]

    async def __aenter__(self) -> "OllamaEmbedder":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_embedder(config: EmbeddingConfig | None = None) -> BaseEmbedder:
    """Factory function for the configured embedder."""
    return OllamaEmbedder(config or EmbeddingConfig())
