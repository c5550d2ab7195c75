"""
Tests for fact data models and configuration.
"""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

from fact_memory.config import MemoryConfig, RankingConfig
from fact_memory.models.fact import FactKind, MemoryFact
from fact_memory.models.results import ExtractionResult, ExtractedEntity, SearchResult


class TestMemoryFact:
    """Tests for MemoryFact model."""

    def test_defaults(self):
        """A new fact is the latest first version and not forgotten."""
        fact = MemoryFact(owner_id="u1", content="User likes tea")

        assert fact.is_latest is True
        assert fact.version == 1
        assert fact.previous_version is None
        assert fact.is_forgotten is False
        assert fact.kind == FactKind.FACT
        assert fact.tags == []
        assert len(fact.id) == 26  # ULID

    def test_ids_are_unique(self):
        ids = {MemoryFact(owner_id="u1", content="x" * 5).id for _ in range(50)}
        assert len(ids) == 50

    def test_content_length_bounds(self):
        with pytest.raises(ValueError):
            MemoryFact(owner_id="u1", content="")
        with pytest.raises(ValueError):
            MemoryFact(owner_id="u1", content="x" * 10001)

    def test_version_must_be_positive(self):
        with pytest.raises(ValueError):
            MemoryFact(owner_id="u1", content="User likes tea", version=0)

    def test_shares_scope_untagged(self):
        fact = MemoryFact(owner_id="u1", content="User likes tea")
        assert fact.shares_scope([])
        assert not fact.shares_scope(["work"])

    def test_shares_scope_overlap(self):
        fact = MemoryFact(owner_id="u1", content="User likes tea", tags=["work", "home"])
        assert fact.shares_scope(["home"])
        assert not fact.shares_scope(["gym"])
        assert not fact.shares_scope([])

    def test_is_expired(self):
        now = datetime(2024, 3, 13, 12, 0)
        fact = MemoryFact(owner_id="u1", content="Meeting tomorrow", expires_at=now - timedelta(seconds=1))
        assert fact.is_expired(now)
        assert not MemoryFact(owner_id="u1", content="User likes tea").is_expired(now)

    def test_kind_from_string(self):
        fact = MemoryFact(owner_id="u1", content="User prefers tea", kind="preference")
        assert fact.kind == FactKind.PREFERENCE


class TestResultModels:
    """Tests for extraction and search result types."""

    def test_raw_entities(self):
        result = ExtractionResult(entities=[ExtractedEntity("Alice", "person"), ExtractedEntity("Acme")])
        assert result.raw_entities == ["Alice", "Acme"]

    def test_search_result_serializes(self):
        result = SearchResult(id="f1", memory="User likes tea", similarity=0.7)
        data = result.model_dump()
        assert data["memory"] == "User likes tea"
        assert data["is_latest"] is True
        assert data["kind"] == "fact"


class TestMemoryConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        config = MemoryConfig()

        assert config.embedding.model == "nomic-embed-text"
        assert config.embedding.dimensions == 768
        assert config.embedding.batch_size == 100
        assert config.llm.temperature == 0.1
        assert config.consistency.scan_limit == 200
        assert config.consistency.semantic_min_score == 0.85
        assert config.consistency.max_content_length == 10000
        assert config.ranking.superseded_penalty == 0.3
        assert config.ranking.latest_boost == 1.3
        assert config.ranking.rerank_top_n == 20

    def test_ranking_bounds(self):
        with pytest.raises(ValueError):
            RankingConfig(superseded_penalty=1.5)
        with pytest.raises(ValueError):
            RankingConfig(latest_boost=0.5)

    def test_round_trip_file(self, temp_directory):
        path = temp_directory / "nested" / "config.json"
        config = MemoryConfig(debug=True)
        config.ranking.default_limit = 25

        config.to_file(path)
        loaded = MemoryConfig.from_file(path)

        assert loaded.debug is True
        assert loaded.ranking.default_limit == 25
        assert loaded.storage.sqlite_path == Path("./data/facts.db")

    def test_unsupported_format(self, temp_directory):
        with pytest.raises(ValueError):
            MemoryConfig.from_file(temp_directory / "config.yaml")
