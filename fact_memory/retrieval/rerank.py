"""
LLM reranking and query expansion.

Both are optional search steps. Neither ever raises: reranking falls back to
a keyword-overlap boost and expansion falls back to the original query.
"""

import logging
import math
import re

from fact_memory.config import RankingConfig
from fact_memory.llm import parse_json_array
from fact_memory.models.results import SearchResult

logger = logging.getLogger(__name__)

RERANK_CONTENT_LENGTH = 300
MAX_EXPANSION_WORDS = 5
MAX_EXPANDED_LENGTH = 500

RERANK_PROMPT = """You are a search relevance scorer. Given a query and a list of results, score each result's relevance from 0.0 to 1.0.

Query: "{query}"

Results:
{results}

Scoring criteria:
- 1.0: Perfect match, directly answers the query
- 0.8-0.9: Highly relevant, contains key information
- 0.6-0.7: Somewhat relevant, related topic
- 0.4-0.5: Tangentially related
- 0.1-0.3: Barely relevant
- 0.0: Not relevant at all

Return ONLY a JSON array of scores in the same order, like: [0.9, 0.7, 0.3, ...]"""

EXPANSION_PROMPT = '''Expand this search query with related terms and synonyms to improve search recall.
Keep it concise - add 3-6 relevant terms that someone might have used to describe the same concept.

Query: "{query}"

Return ONLY the expanded query, no explanations. Keep the original terms and add synonyms/related terms.
Example: "auth issues" -> "auth authentication login oauth jwt security errors issues problems"'''


def _by_score(results: list[SearchResult]) -> list[SearchResult]:
    return sorted(results, key=lambda r: r.similarity, reverse=True)


def keyword_rerank(query: str, results: list[SearchResult], boost: float = 0.05) -> list[SearchResult]:
    """Add ``boost`` per query word (longer than 2 chars) found in the content."""
    words = [word for word in query.lower().split() if len(word) > 2]
    scored = []
    for result in results:
        content = result.memory.lower()
        bonus = sum(boost for word in words if word in content)
        scored.append(result.model_copy(update={"similarity": min(1.0, result.similarity + bonus)}))
    return _by_score(scored)


def _parse_scores(text: str, expected: int) -> list[float] | None:
    scores = parse_json_array(text)
    if scores is None or len(scores) != expected:
        return None
    parsed = []
    for score in scores:
        if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
            return None
        parsed.append(min(1.0, max(0.0, float(score))))
    return parsed


class Reranker:
    """
    Blend LLM relevance scores into the top results.

    Only the top ``rerank_top_n`` results are scored; the remainder keep
    their scores and follow the reranked block.
    """

    def __init__(self, llm, config: RankingConfig | None = None):
        self.llm = llm
        self.config = config or RankingConfig()

    def build_prompt(self, query: str, candidates: list[SearchResult]) -> str:
        lines = "\n".join(
            f"[{i}]: {result.memory[:RERANK_CONTENT_LENGTH]}" for i, result in enumerate(candidates)
        )
        return RERANK_PROMPT.format(query=query, results=lines)

    async def rerank(self, query: str, results: list[SearchResult]) -> list[SearchResult]:
        if not results:
            return results

        candidates = results[: self.config.rerank_top_n]
        remainder = results[self.config.rerank_top_n:]

        try:
            text = await self.llm.complete(self.build_prompt(query, candidates))
        except Exception as e:
            logger.warning(f"Smart reranking failed, using keyword fallback: {e}")
            return keyword_rerank(query, candidates, self.config.keyword_boost) + remainder

        scores = _parse_scores(text, len(candidates))
        if scores is None:
            logger.warning("Could not parse rerank scores, using keyword fallback")
            return keyword_rerank(query, candidates, self.config.keyword_boost) + remainder

        original, weight = self.config.rerank_original_weight, self.config.rerank_llm_weight
        reranked = [
            result.model_copy(update={"similarity": min(1.0, result.similarity * original + score * weight)})
            for result, score in zip(candidates, scores)
        ]
        return _by_score(reranked) + remainder


class QueryExpander:
    """Ask the LLM for related terms to widen short queries."""

    def __init__(self, llm):
        self.llm = llm

    async def expand(self, query: str) -> str:
        if len(query.split()) > MAX_EXPANSION_WORDS:
            return query

        try:
            text = await self.llm.complete(EXPANSION_PROMPT.format(query=query))
        except Exception as e:
            logger.warning(f"Query expansion failed, using original query: {e}")
            return query

        expanded = re.sub(r"\s+", " ", (text or "").strip().strip('"')).strip()
        if 0 < len(expanded) < MAX_EXPANDED_LENGTH:
            logger.debug(f"Expanded query {query!r} -> {expanded!r}")
            return expanded
        return query
