"""
Tests for LLM reranking and query expansion.
"""

import pytest

from fact_memory.config import RankingConfig
from fact_memory.llm import LLMError
from fact_memory.models.results import SearchResult
from fact_memory.retrieval.rerank import QueryExpander, Reranker, keyword_rerank


def results(*pairs):
    return [SearchResult(id=memory, memory=memory, similarity=score) for memory, score in pairs]


CANDIDATES = results(("User likes tea", 0.8), ("User lives in Oslo", 0.6), ("User owns a bike", 0.4))


class TestKeywordRerank:
    def test_boost_per_word(self):
        reranked = keyword_rerank("where does user live oslo", CANDIDATES, boost=0.05)

        assert reranked[0].id == "User likes tea"
        # "user", "live" and "oslo" match; "does" and "where" do not
        assert reranked[1].similarity == pytest.approx(0.75)

    def test_short_words_ignored(self):
        reranked = keyword_rerank("a to in", CANDIDATES)
        assert [r.similarity for r in reranked] == [0.8, 0.6, 0.4]

    def test_capped(self):
        reranked = keyword_rerank("user likes tea", results(("User likes tea", 0.95)), boost=0.05)
        assert reranked[0].similarity == 1.0


class TestReranker:
    async def test_blends_scores(self, make_llm):
        reranker = Reranker(make_llm(["[0.1, 0.9, 0.2]"]))

        reranked = await reranker.rerank("where does the user live", CANDIDATES)

        assert [r.id for r in reranked] == ["User lives in Oslo", "User likes tea", "User owns a bike"]
        assert reranked[0].similarity == pytest.approx(0.6 * 0.4 + 0.9 * 0.6)

    async def test_scores_clamped(self, make_llm):
        reranker = Reranker(make_llm(["[2.5, -1, 0]"]))
        reranked = await reranker.rerank("query", CANDIDATES)

        by_id = {r.id: r.similarity for r in reranked}
        assert by_id["User likes tea"] == pytest.approx(min(1.0, 0.8 * 0.4 + 1.0 * 0.6))
        assert by_id["User lives in Oslo"] == pytest.approx(0.6 * 0.4)

    @pytest.mark.parametrize(
        "response",
        [
            LLMError("timeout"),
            "I cannot score these",
            "[0.5, 0.5]",
            '[0.5, "high", 0.1]',
        ],
    )
    async def test_falls_back_to_keywords(self, make_llm, response):
        reranker = Reranker(make_llm([response]))

        reranked = await reranker.rerank("oslo", CANDIDATES)

        assert reranked == keyword_rerank("oslo", CANDIDATES, RankingConfig().keyword_boost)

    async def test_only_top_n_scored(self, make_llm):
        llm = make_llm(["[0.0, 1.0]"])
        reranker = Reranker(llm, RankingConfig(rerank_top_n=2))

        reranked = await reranker.rerank("query", CANDIDATES)

        assert [r.id for r in reranked] == ["User lives in Oslo", "User likes tea", "User owns a bike"]
        assert reranked[2].similarity == 0.4
        assert "[2]" not in llm.prompts[0]

    async def test_empty(self, make_llm):
        llm = make_llm()
        assert await Reranker(llm).rerank("query", []) == []
        assert llm.prompts == []

    def test_prompt_truncates_content(self, make_llm):
        reranker = Reranker(make_llm())
        prompt = reranker.build_prompt("q", results(("x" * 400, 0.5)))
        assert "[0]: " + "x" * 300 + "\n" in prompt


class TestQueryExpander:
    async def test_expands_short_query(self, make_llm):
        expander = QueryExpander(make_llm(['"coffee espresso latte caffeine"']))
        assert await expander.expand("coffee") == "coffee espresso latte caffeine"

    async def test_long_query_untouched(self, make_llm):
        llm = make_llm()
        query = "what does the user usually drink in the morning"

        assert await QueryExpander(llm).expand(query) == query
        assert llm.prompts == []

    async def test_failure_keeps_query(self, make_llm):
        assert await QueryExpander(make_llm([LLMError("down")])).expand("coffee") == "coffee"

    @pytest.mark.parametrize("response", ["", "   ", "x" * 500])
    async def test_unusable_expansion(self, make_llm, response):
        assert await QueryExpander(make_llm([response])).expand("coffee") == "coffee"
