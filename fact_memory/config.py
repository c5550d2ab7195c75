"""
Configuration management for the Fact Memory engine.

Provides centralized configuration for:
- Text normalization
- Embedding generation
- LLM completion calls
- Storage backend
- Consistency (dedup / contradiction) limits
- Ranking and reranking weights
"""

from pathlib import Path

from pydantic import BaseModel, Field


class NormalizerConfig(BaseModel):
    """Configuration for text normalization before extraction."""

    resolve_pronouns: bool = Field(
        default=True,
        description="Replace third-person pronouns with the last matching entity",
    )
    convert_dates: bool = Field(
        default=True,
        description="Rewrite relative date expressions into absolute dates",
    )


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation."""

    model: str = Field(
        default="nomic-embed-text",
        description="Embedding model name (e.g., nomic-embed-text for Ollama)",
    )
    dimensions: int = Field(
        default=768,
        description="Embedding vector dimensions (768 for nomic-embed-text)",
        gt=0,
    )
    batch_size: int = Field(
        default=100,
        description="Batch size for embedding requests",
        gt=0,
    )
    max_text_length: int = Field(
        default=2048,
        description="Texts are truncated to this many characters before embedding",
        gt=0,
    )
    timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for a single embedding request",
        gt=0.0,
    )

    # Ollama-specific settings
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )


class LLMConfig(BaseModel):
    """Configuration for LLM operations (extraction, reranking, query expansion)."""

    model: str = Field(
        default="qwen2.5:7b",
        description="Model for memory operations (e.g., qwen2.5:7b for Ollama)",
    )
    temperature: float = Field(
        default=0.1,
        description="Temperature for LLM responses",
        ge=0.0,
        le=2.0,
    )
    timeout_seconds: float = Field(
        default=60.0,
        description="Upper bound for a single completion call",
        gt=0.0,
    )

    # Ollama-specific settings
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )


class StorageConfig(BaseModel):
    """Configuration for the fact store."""

    sqlite_path: Path = Field(
        default=Path("./data/facts.db"),
        description="Path to SQLite database file",
    )


class ConsistencyConfig(BaseModel):
    """Configuration for deduplication and contradiction handling."""

    scan_limit: int = Field(
        default=200,
        description="Maximum existing facts scanned for lexical dedup/contradiction",
        gt=0,
    )
    min_normalized_length: int = Field(
        default=5,
        description="Normalized content shorter than this is skipped",
        ge=0,
    )
    semantic_min_score: float = Field(
        default=0.85,
        description="Minimum similarity for a semantic supersede candidate",
        ge=0.0,
        le=1.0,
    )
    semantic_limit: int = Field(
        default=10,
        description="Number of vector candidates checked for semantic supersede",
        gt=0,
    )
    max_content_length: int = Field(
        default=10000,
        description="Maximum characters of fact content",
        gt=0,
    )
    max_batch_size: int = Field(
        default=100,
        description="Maximum items in a batch create or batch forget",
        gt=0,
    )


class RankingConfig(BaseModel):
    """Configuration for query-time ranking."""

    default_limit: int = Field(
        default=10,
        description="Default number of results returned",
    )
    max_candidates: int = Field(
        default=100,
        description="Upper bound on vector search candidates (k)",
    )
    vector_min_score: float = Field(
        default=0.3,
        description="Minimum similarity for vector candidates",
        ge=0.0,
        le=1.0,
    )

    # Status adjustment
    superseded_penalty: float = Field(
        default=0.3,
        description="Multiplier applied to superseded (not latest) facts",
        ge=0.0,
        le=1.0,
    )
    latest_boost: float = Field(
        default=1.3,
        description="Multiplier applied to latest facts (result capped at 1.0)",
        ge=1.0,
    )

    # Recency
    recency_boost: float = Field(
        default=0.5,
        description="Maximum extra weight for a fact updated just now",
        ge=0.0,
    )
    recency_window_days: int = Field(
        default=365,
        description="Age after which the recency boost is zero",
        gt=0,
    )

    dedup_prefix_length: int = Field(
        default=100,
        description="Characters of normalized content used as the dedup key",
        gt=0,
    )

    # Reranking
    rerank_top_n: int = Field(
        default=20,
        description="Number of top results sent to the LLM reranker",
        gt=0,
    )
    rerank_original_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    rerank_llm_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    keyword_boost: float = Field(
        default=0.05,
        description="Score added per query word found in a result (keyword fallback)",
        ge=0.0,
    )

    # Query embedding cache
    cache_ttl_seconds: float = Field(default=300.0, gt=0.0)
    cache_max_size: int = Field(default=500, gt=0)


class MemoryConfig(BaseModel):
    """Master configuration for the Fact Memory engine."""

    # Sub-configurations
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    consistency: ConsistencyConfig = Field(default_factory=ConsistencyConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    @classmethod
    def from_file(cls, path: Path) -> "MemoryConfig":
        """Load configuration from a JSON file."""
        import json

        path = Path(path)
        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

    def to_file(self, path: Path) -> None:
        """Save configuration to a JSON file."""
        import json

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)
