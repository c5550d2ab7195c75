"""
Tests for lexical contradiction and entity-attribute signatures.
"""

import pytest

from fact_memory.consistency.signatures import (
    EntityAttribute,
    detect_lexical_contradiction,
    extract_entity_attribute,
    first_numeric_value,
)


class TestLexicalContradiction:
    def test_revenue_target_update(self):
        assert detect_lexical_contradiction("Revenue target is now $6.2M", "Revenue target is $5M") == "revenue_target"

    def test_favorite_with_update_word(self):
        result = detect_lexical_contradiction("User's favorite color is now green", "User's favorite color is blue")
        assert result == "favorite_color"

    def test_changed_age(self):
        assert detect_lexical_contradiction("User is 31 years old", "User is 30 years old") == "age"

    def test_customer_count(self):
        assert detect_lexical_contradiction("We have 120 customers", "We have 100 customers") == "customer_count"

    def test_location_needs_update_signal(self):
        assert detect_lexical_contradiction("User lives in Paris", "User lives in Berlin") is None
        assert detect_lexical_contradiction("User now lives in Paris", "User lives in Berlin") == "location"

    def test_same_value_is_not_contradiction(self):
        assert detect_lexical_contradiction("Revenue target is $5M", "Revenue target is $5M") is None

    def test_unrelated_properties(self):
        assert detect_lexical_contradiction("User works at Stripe", "User lives in Berlin") is None
        assert detect_lexical_contradiction("User likes tea", "User likes coffee") is None


class TestNumericValue:
    @pytest.mark.parametrize(
        "content, expected",
        [
            ("Revenue is $6.2M", "6.2m"),
            ("We have 1,500 customers", "1500"),
            ("No numbers here", None),
        ],
    )
    def test_first_numeric_value(self, content, expected):
        assert first_numeric_value(content) == expected


class TestEntityAttribute:
    @pytest.mark.parametrize(
        "content, entity, attribute",
        [
            ("Alice lives in Paris", "alice", "location"),
            ("User works at Stripe", "user", "workplace"),
            ("User's favorite color is blue", "user", "favorite_color"),
            ("Bob is a software engineer", "bob", "job"),
            ("Sarah is 34 years old", "sarah", "age"),
            ("User prefers dark mode", "user", "preference"),
        ],
    )
    def test_signatures(self, content, entity, attribute):
        assert extract_entity_attribute(content) == EntityAttribute(entity, attribute)

    def test_no_signature(self):
        assert extract_entity_attribute("The weather was mild") is None
