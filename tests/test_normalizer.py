"""
Tests for text normalization: relative dates, pronouns and text helpers.
"""

import pytest
from datetime import date, datetime, timezone

from fact_memory.normalizer.pronouns import detect_gender, extract_named_entities, resolve_pronouns, split_sentences
from fact_memory.normalizer.temporal import (
    DateResolver,
    convert_relative_dates,
    convert_to_24_hour,
    extract_context_date,
)
from fact_memory.normalizer.text import extract_entities, parse_multi_speaker, sanitize_content

# Wednesday
REFERENCE = date(2024, 3, 13)


class TestConvertTo24Hour:
    def test_pm(self):
        assert convert_to_24_hour("3pm") == "15:00"
        assert convert_to_24_hour("3:30 pm") == "15:30"

    def test_noon_and_midnight(self):
        assert convert_to_24_hour("12pm") == "12:00"
        assert convert_to_24_hour("12am") == "00:00"

    def test_already_24_hour(self):
        assert convert_to_24_hour("9:05") == "09:05"

    def test_bare_hour_is_afternoon(self):
        assert convert_to_24_hour("3") == "15:00"


class TestConvertRelativeDates:
    """Relative date rewriting against a fixed reference."""

    def test_tomorrow(self):
        assert convert_relative_dates("Dentist tomorrow", REFERENCE) == "Dentist 2024-03-14"

    def test_tomorrow_with_time(self):
        result = convert_relative_dates("Call tomorrow at 3pm", REFERENCE)
        assert result == "Call 2024-03-14 at 15:00 UTC"

    def test_yesterday(self):
        assert convert_relative_dates("I arrived yesterday", REFERENCE) == "I arrived 2024-03-12"

    def test_next_weekday_is_following_week(self):
        assert convert_relative_dates("Lunch next Friday", REFERENCE) == "Lunch 2024-03-22"

    def test_bare_weekday_is_upcoming(self):
        assert convert_relative_dates("Gym on Friday", REFERENCE) == "Gym on 2024-03-15"

    def test_bare_weekday_same_day_rolls_a_week(self):
        assert convert_relative_dates("Standup Wednesday", REFERENCE) == "Standup 2024-03-20"

    def test_in_weeks(self):
        assert convert_relative_dates("Launch in 2 weeks", REFERENCE) == "Launch 2024-03-27"

    def test_units_ago(self):
        assert convert_relative_dates("Moved 3 days ago", REFERENCE) == "Moved 2024-03-10"

    def test_months(self):
        assert convert_relative_dates("Started last month", REFERENCE) == "Started February 2024"
        assert convert_relative_dates("Starts next month", REFERENCE) == "Starts April 2024"

    def test_last_weekday(self):
        assert convert_relative_dates("Met last Monday", REFERENCE) == "Met 2024-03-11"

    def test_stray_number_not_consumed(self):
        result = convert_relative_dates("Tomorrow 3 people join", REFERENCE)
        assert result == "2024-03-14 3 people join"

    def test_deterministic(self):
        text = "Meeting tomorrow at 10am, review next Monday, trip in 3 months"
        first = convert_relative_dates(text, REFERENCE)
        assert all(convert_relative_dates(text, REFERENCE) == first for _ in range(5))

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Meeting next Friday at 10am", "Meeting 2026-02-27 at 10:00 UTC"),
            ("Call Monday", "Call 2026-02-23"),
            ("Meeting next Friday at 10am. Call Monday.", "Meeting 2026-02-27 at 10:00 UTC. Call 2026-02-23."),
        ],
    )
    def test_reference_thursday(self, text, expected):
        # 2026-02-19 is a Thursday
        assert convert_relative_dates(text, date(2026, 2, 19)) == expected

    def test_no_relative_dates_unchanged(self):
        text = "User lives in Berlin"
        assert convert_relative_dates(text, REFERENCE) == text


class TestContextDate:
    def test_session_header(self):
        found = extract_context_date("[Session 3 - 1:56 pm on 8 May, 2023] Alice: hi")
        assert found == datetime(2023, 5, 8, 12, 0, tzinfo=timezone.utc)

    def test_latest_date_wins(self):
        found = extract_context_date("Started 2023-01-05, shipped May 8, 2023")
        assert found.date() == date(2023, 5, 8)

    def test_invalid_date_ignored(self):
        assert extract_context_date("Build 2023-13-45") is None

    def test_resolver_prefers_context_date(self):
        resolver = DateResolver(reference=datetime(2024, 3, 13))
        text = "[Session 1 - 10:00 am on 8 May, 2023] I fly out tomorrow"
        assert "2023-05-09" in resolver.resolve(text)

    def test_resolver_without_context_date(self):
        resolver = DateResolver(reference=datetime(2024, 3, 13), use_context_date=False)
        assert resolver.resolve("2023-05-08 notes: call tomorrow") == "2023-05-08 notes: call 2024-03-14"


class TestPronouns:
    def test_detect_gender(self):
        assert detect_gender("Mrs. Smith") == "female"
        assert detect_gender("Mr. Smith") == "male"
        assert detect_gender("Dr. Emily Chen") == "female"
        assert detect_gender("Xylo") == "unknown"

    def test_split_sentences_keeps_abbreviations(self):
        assert split_sentences("Dr. Chen leads. She writes.") == ["Dr. Chen leads.", "She writes."]

    def test_named_entities_sorted_by_position(self):
        entities = extract_named_entities("John met Sarah Connor")
        assert [e.position for e in entities] == sorted(e.position for e in entities)

    def test_female_pronoun(self):
        result = resolve_pronouns("Dr. Emily Chen leads the team. She published 3 papers.")
        assert "She" not in result
        assert "Emily published 3 papers" in result

    def test_male_pronoun(self):
        result = resolve_pronouns("John went home. He was tired.")
        assert result == "John went home. John was tired."

    def test_possessive(self):
        result = resolve_pronouns("Sarah is a designer. Her team is small.")
        assert "Sarah's team" in result

    def test_no_entities_unchanged(self):
        text = "she said it was fine."
        assert resolve_pronouns(text) == text


class TestTextHelpers:
    def test_sanitize(self):
        assert sanitize_content("  a\x00b\n\n\n\nc   d  ") == "ab\n\nc  d"
        assert sanitize_content("x" * 50, max_length=10) == "x" * 10

    def test_extract_entities(self):
        entities = extract_entities("Sarah Connor joined Acme Corp in Berlin and uses Google")
        by_name = {e.name: e.type for e in entities}

        assert by_name["Sarah Connor"] == "person"
        assert by_name["Google"] == "organization"
        assert by_name["Berlin"] == "location"

    def test_parse_multi_speaker(self):
        transcript = "Alice: I love hiking\nBob: I prefer chess\nand go\nAlice: me too"
        statements = parse_multi_speaker(transcript)

        assert statements == {
            "Alice": ["I love hiking", "me too"],
            "Bob": ["I prefer chess and go"],
        }
