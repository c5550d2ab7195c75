"""
Query-time ranking of vector candidates.

Applies, in order:
- Status adjustment (superseded facts penalized, latest facts boosted)
- Recency weighting on the last update time
- Content-prefix deduplication
- Descending sort
"""

from datetime import datetime, timezone

from fact_memory.config import RankingConfig
from fact_memory.models.results import SearchResult


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Ranker:
    """
    Deterministic score adjustment for search results.

    Every adjustment keeps scores in [0, 1]. For equal inputs a latest fact
    always outranks a superseded one, and a more recently updated fact never
    ranks below an older one.
    """

    def __init__(self, config: RankingConfig | None = None):
        self.config = config or RankingConfig()

    def status_factor(self, is_latest: bool) -> float:
        return self.config.latest_boost if is_latest else self.config.superseded_penalty

    def recency_factor(self, timestamp: datetime | None, now: datetime | None = None) -> float:
        """Multiplier in [1, 1 + recency_boost] decaying linearly over the window."""
        if timestamp is None:
            return 1.0
        now = now or _utcnow()
        window = self.config.recency_window_days
        age_days = max(0.0, (now - timestamp).total_seconds() / 86400)
        age_days = min(age_days, window)
        return 1.0 + self.config.recency_boost * (1.0 - age_days / window)

    def adjust(self, result: SearchResult, now: datetime | None = None) -> SearchResult:
        score = min(1.0, result.similarity * self.status_factor(result.is_latest))
        score = min(1.0, score * self.recency_factor(result.updated_at or result.created_at, now))
        return result.model_copy(update={"similarity": max(0.0, score)})

    def dedup_key(self, result: SearchResult) -> str:
        return result.memory.lower().strip()[: self.config.dedup_prefix_length]

    def deduplicate(self, results: list[SearchResult]) -> list[SearchResult]:
        """Keep the first result for each content prefix."""
        seen: set[str] = set()
        unique = []
        for result in results:
            key = self.dedup_key(result)
            if key in seen:
                continue
            seen.add(key)
            unique.append(result)
        return unique

    def rank(self, results: list[SearchResult], now: datetime | None = None) -> list[SearchResult]:
        """
        Adjust, deduplicate and sort results.

        Deduplication runs on the adjusted list in score order so the
        surviving copy of a duplicate is the best scored one.
        """
        now = now or _utcnow()
        adjusted = sorted(
            (self.adjust(result, now) for result in results),
            key=lambda r: r.similarity,
            reverse=True,
        )
        return self.deduplicate(adjusted)
