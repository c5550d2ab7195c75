"""
Pytest configuration and shared fixtures.
"""

import re
import tempfile
import zlib
from pathlib import Path

import pytest

from fact_memory.config import EmbeddingConfig, StorageConfig
from fact_memory.encoding.embedder import BaseEmbedder
from fact_memory.llm import LLMError
from fact_memory.storage.sqlite import SQLiteFactStore


class FakeEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder: one bucket per token (crc32)."""

    def __init__(self, dimensions: int = 256):
        super().__init__(EmbeddingConfig(dimensions=dimensions))
        self.calls: list[str] = []

    async def _embed_raw(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self.config.dimensions
        for token in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(token.encode()) % self.config.dimensions] += 1.0
        return vector


class ScriptedLLM:
    """Async LLM stand-in returning queued responses; exceptions in the queue are raised."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise LLMError("No scripted response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def temp_directory():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage_config(temp_directory):
    return StorageConfig(sqlite_path=temp_directory / "facts.db")


@pytest.fixture
async def store(storage_config):
    """Connected SQLite fact store on a temp database."""
    fact_store = SQLiteFactStore(storage_config)
    await fact_store.connect()
    yield fact_store
    await fact_store.disconnect()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def make_llm():
    """Factory for scripted LLMs: ``make_llm([response, error, ...])``."""
    return ScriptedLLM
