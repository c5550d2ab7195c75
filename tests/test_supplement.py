"""
Tests for the regex supplement and the no-LLM fallback extraction.
"""

from datetime import datetime

from fact_memory.extraction.supplement import RegexSupplement, fallback_extraction
from fact_memory.models.fact import FactKind
from fact_memory.models.results import ExtractedFact


def supplement(text, existing=None, primary_person=None):
    added = RegexSupplement().supplement(text, existing or [], primary_person)
    return [fact.content for fact in added]


class TestRegexSupplement:
    def test_allergy(self):
        assert supplement("I am allergic to peanuts") == ["User is allergic to peanuts"]

    def test_guard_skips_known_topic(self):
        existing = [ExtractedFact(content="User has a severe nut allergy")]
        assert supplement("I am allergic to peanuts", existing) == []

    def test_relationship(self):
        assert supplement("My husband Mike loves hiking") == ["User's husband is Mike"]

    def test_budget(self):
        assert supplement("We have a $50K budget for Q3") == ["The budget is $50K"]

    def test_tech_stack(self):
        assert supplement("Our stack: React 18, PostgreSQL, Redis") == [
            "User uses React 18",
            "User uses PostgreSQL",
            "User uses Redis",
        ]

    def test_job_and_company(self):
        assert supplement("I'm a software engineer and I work at Stripe") == [
            "User is a software engineer",
            "User works at Stripe",
        ]

    def test_primary_person_makes_facts_static(self):
        added = RegexSupplement().supplement("I am allergic to peanuts", [], primary_person="Caroline")

        assert [fact.content for fact in added] == ["Caroline is allergic to peanuts"]
        assert added[0].is_static is True
        assert added[0].entities == ["Caroline"]

    def test_nothing_to_add(self):
        assert supplement("the weather was mild") == []


class TestFallbackExtraction:
    def test_name_and_employer(self):
        result = fallback_extraction("My name is Alice and I work at Google.")

        assert [fact.content for fact in result.facts] == ["User's name is Alice", "User works at Google"]
        assert result.title == "User Information"
        assert result.facts[0].is_static is True
        assert result.facts[0].confidence == 0.7
        assert "Google" in result.raw_entities

    def test_permanence_is_reclassified(self):
        result = fallback_extraction("My name is Alice and I work at Google.")
        # "works at" is a permanent fact even though the rule emitted it as dynamic
        assert result.facts[1].is_static is True

    def test_unanchored_preference_is_noise(self):
        assert fallback_extraction("I prefer green tea").facts == []

    def test_preference_naming_an_entity_is_kept(self):
        result = fallback_extraction("I love Star Wars movies.")

        assert [fact.content for fact in result.facts] == ["User love Star Wars movies."]
        assert result.facts[0].kind == FactKind.PREFERENCE
        assert result.facts[0].confidence == 0.5
        assert result.facts[0].entities == ["Star Wars"]

    def test_runs_supplement_rule_families(self):
        result = fallback_extraction("I'm allergic to peanuts. My wife Jennifer is a pediatrician.")

        assert [fact.content for fact in result.facts] == [
            "User is allergic to peanuts",
            "User's wife is Jennifer",
            "Jennifer is a pediatrician",
        ]
        assert [fact.is_static for fact in result.facts] == [False, True, True]

    def test_supplement_does_not_repeat_fallback_facts(self):
        result = fallback_extraction("I work at Google")
        assert [fact.content for fact in result.facts] == ["User works at Google"]

    def test_event_gets_expiry(self):
        now = datetime(2024, 3, 13, 9, 0)
        result = fallback_extraction("The interview is tomorrow at noon.", now=now)

        events = [fact for fact in result.facts if fact.kind == FactKind.EVENT]
        assert len(events) == 1
        assert events[0].expires_at == datetime(2024, 3, 14, 9, 0)

    def test_summary_is_truncated(self):
        text = "word " * 100
        assert fallback_extraction(text).summary == text[:200]
