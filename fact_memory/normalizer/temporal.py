"""
Temporal expression resolution.

Rewrites relative date phrases ("tomorrow at 3pm", "next Friday",
"in 2 weeks", "last month") into absolute dates against a reference date,
and finds the latest explicit date mentioned in a text (session headers,
"8 May, 2023", ISO dates) so conversations can be replayed against the
date they happened on.

Weekday arithmetic uses a Sunday-first index (Sunday=0 ... Saturday=6).
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Callable

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
DAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

_MONTHS = "|".join(MONTH_NAMES)
_DAYS = "|".join(DAY_NAMES)

# Optional trailing clock time. Only real times are consumed: "at 3",
# "at 3:30pm", "15:00", "3 pm". A stray number after a date word is left alone.
_TIME = (
    r"(?:\s+(?:at\s+(?P<at>\d{1,2}(?::\d{2})?(?:\s*[ap]m\b)?)"
    r"|(?P<clock>\d{1,2}:\d{2}(?:\s*[ap]m\b)?|\d{1,2}\s*[ap]m\b)))?"
)

_CONTEXT_DATE_PATTERNS = [
    # [Session 3 - 1:56 pm on 8 May, 2023]
    ("dmy", re.compile(
        r"\[Session\s+\d+\s*[-–]\s*[\d:]+\s*(?:am|pm)?\s*on\s+(\d{1,2})\s+(" + _MONTHS + r")[,\s]+(\d{4})\]",
        re.IGNORECASE,
    )),
    # on 8 May, 2023
    ("dmy", re.compile(r"on\s+(\d{1,2})\s+(" + _MONTHS + r")[,\s]+(\d{4})", re.IGNORECASE)),
    # May 8, 2023
    ("mdy", re.compile(r"(" + _MONTHS + r")\s+(\d{1,2})[,\s]+(\d{4})", re.IGNORECASE)),
    # 8 May 2023
    ("dmy", re.compile(r"(\d{1,2})\s+(" + _MONTHS + r")\s+(\d{4})", re.IGNORECASE)),
    # 2023-05-08
    ("iso", re.compile(r"(\d{4})-(\d{2})-(\d{2})")),
]


def js_weekday(d: date) -> int:
    """Weekday index with Sunday=0."""
    return (d.weekday() + 1) % 7


def convert_to_24_hour(time_str: str) -> str:
    """
    Convert a time string to ``HH:MM``.

    "3pm" -> "15:00", "3:30 pm" -> "15:30", "15:00" -> "15:00".
    A bare hour below 12 is read as an afternoon time ("3" -> "15:00").
    """
    clean = time_str.lower().strip()

    if re.fullmatch(r"\d{1,2}:\d{2}", clean):
        hours, mins = clean.split(":")
        return f"{int(hours):02d}:{mins}"

    match = re.fullmatch(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)", clean)
    if match:
        hours = int(match.group(1))
        mins = match.group(2) or "00"
        period = match.group(3)
        if period == "pm" and hours != 12:
            hours += 12
        elif period == "am" and hours == 12:
            hours = 0
        return f"{hours:02d}:{mins}"

    if re.fullmatch(r"\d{1,2}", clean):
        hours = int(clean)
        if hours < 12:
            hours += 12
        return f"{hours:02d}:00"

    return clean


def format_date(d: date, time_str: str | None = None) -> str:
    """Format as ``YYYY-MM-DD`` or ``YYYY-MM-DD at HH:MM UTC``."""
    date_str = d.strftime("%Y-%m-%d")
    if time_str:
        return f"{date_str} at {convert_to_24_hour(time_str)} UTC"
    return date_str


def _month_label(d: date) -> str:
    return f"{MONTH_NAMES[d.month - 1].capitalize()} {d.year}"


def _time_of(match: re.Match) -> str | None:
    groups = match.groupdict()
    return groups.get("at") or groups.get("clock")


def _shift(d: date, count: int, unit: str) -> date:
    unit = unit.lower()
    if unit.startswith("day"):
        return d + relativedelta(days=count)
    if unit.startswith("week"):
        return d + relativedelta(weeks=count)
    if unit.startswith("month"):
        return d + relativedelta(months=count)
    return d + relativedelta(years=count)


@dataclass(frozen=True)
class DateRule:
    """One relative-date rewrite: a pattern and the function producing its replacement."""

    name: str
    pattern: re.Pattern
    convert: Callable[[re.Match, date], str]


def _day_offset(days: int) -> Callable[[re.Match, date], str]:
    def convert(match: re.Match, ref: date) -> str:
        return format_date(ref + relativedelta(days=days), _time_of(match))
    return convert


def _next_weekday(match: re.Match, ref: date) -> str:
    # "next X" is always the occurrence in the following week
    target = DAY_NAMES.index(match.group("day").lower())
    days = target - js_weekday(ref) + 7
    return format_date(ref + relativedelta(days=days), _time_of(match))


def _this_weekday(match: re.Match, ref: date) -> str:
    target = DAY_NAMES.index(match.group("day").lower())
    days = target - js_weekday(ref)
    return format_date(ref + relativedelta(days=days), _time_of(match))


def _bare_weekday(match: re.Match, ref: date) -> str:
    target = DAY_NAMES.index(match.group("day").lower())
    days = target - js_weekday(ref)
    if days <= 0:
        days += 7
    return format_date(ref + relativedelta(days=days), _time_of(match))


def _in_units(match: re.Match, ref: date) -> str:
    future = _shift(ref, int(match.group("num")), match.group("unit"))
    return format_date(future, _time_of(match))


def _units_ago(match: re.Match, ref: date) -> str:
    return format_date(_shift(ref, -int(match.group("num")), match.group("unit")))


def _next_week(match: re.Match, ref: date) -> str:
    days_until_monday = (8 - js_weekday(ref)) % 7 or 7
    return f"week of {format_date(ref + relativedelta(days=days_until_monday))}"


def _this_week(match: re.Match, ref: date) -> str:
    monday = ref - relativedelta(days=(js_weekday(ref) + 6) % 7)
    return f"week of {format_date(monday)}"


def _next_month(match: re.Match, ref: date) -> str:
    return _month_label(ref + relativedelta(months=1))


def _this_weekend(match: re.Match, ref: date) -> str:
    saturday = ref + relativedelta(days=(6 - js_weekday(ref) + 7) % 7)
    sunday = saturday + relativedelta(days=1)
    return f"{format_date(saturday)} to {format_date(sunday)}"


def _last_weekday(match: re.Match, ref: date) -> str:
    target = DAY_NAMES.index(match.group("day").lower())
    days = js_weekday(ref) - target
    if days <= 0:
        days += 7
    return format_date(ref - relativedelta(days=days))


def _last_week(match: re.Match, ref: date) -> str:
    monday = ref - relativedelta(days=(js_weekday(ref) + 6) % 7 + 7)
    return f"week of {format_date(monday)}"


def _last_month(match: re.Match, ref: date) -> str:
    return _month_label(ref - relativedelta(months=1))


def _rule(name: str, pattern: str, convert: Callable[[re.Match, date], str]) -> DateRule:
    return DateRule(name, re.compile(pattern, re.IGNORECASE), convert)


# Applied in order; each rule rewrites the output of the previous one.
DATE_RULES: list[DateRule] = [
    _rule("tomorrow", r"\btomorrow\b" + _TIME, _day_offset(1)),
    _rule("yesterday", r"\byesterday\b" + _TIME, _day_offset(-1)),
    _rule("today", r"\btoday\b" + _TIME, _day_offset(0)),
    _rule("next_weekday", r"\bnext\s+(?P<day>" + _DAYS + r")\b" + _TIME, _next_weekday),
    _rule("this_weekday", r"\bthis\s+(?P<day>" + _DAYS + r")\b" + _TIME, _this_weekday),
    _rule(
        "bare_weekday",
        r"(?<!next\s)(?<!this\s)(?<!last\s)\b(?P<day>" + _DAYS + r")\b" + _TIME,
        _bare_weekday,
    ),
    _rule("in_units", r"\bin\s+(?P<num>\d+)\s+(?P<unit>days?|weeks?|months?|years?)\b" + _TIME, _in_units),
    _rule("units_ago", r"\b(?P<num>\d+)\s+(?P<unit>days?|weeks?|months?|years?)\s+ago\b", _units_ago),
    _rule("next_week", r"\bnext\s+week\b", _next_week),
    _rule("this_week", r"\bthis\s+week\b", _this_week),
    _rule("next_month", r"\bnext\s+month\b", _next_month),
    _rule("this_weekend", r"\bthis\s+weekend\b", _this_weekend),
    _rule("last_weekday", r"\blast\s+(?P<day>" + _DAYS + r")\b", _last_weekday),
    _rule("last_week", r"\blast\s+week\b", _last_week),
    _rule("last_month", r"\blast\s+month\b", _last_month),
]


def _to_date(reference: datetime | date) -> date:
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def convert_relative_dates(text: str, reference: datetime | date) -> str:
    """
    Rewrite every relative date expression in ``text`` to an absolute date.

    Args:
        text: Input text
        reference: The date relative expressions are resolved against

    Returns:
        Text with relative dates replaced
    """
    ref = _to_date(reference)
    result = text
    conversions = 0

    for rule in DATE_RULES:
        def replace(match: re.Match, rule: DateRule = rule) -> str:
            nonlocal conversions
            conversions += 1
            converted = rule.convert(match, ref)
            logger.debug(f"Date rule {rule.name}: '{match.group(0)}' -> '{converted}'")
            return converted

        result = rule.pattern.sub(replace, result)

    if conversions:
        logger.debug(f"Converted {conversions} relative date expression(s)")
    return result


def extract_context_date(text: str) -> datetime | None:
    """
    Find the latest explicit date mentioned in ``text``.

    Recognizes session headers ("[Session 1 - 1:56 pm on 8 May, 2023]"),
    "on 8 May, 2023", "May 8, 2023", "8 May 2023" and ISO "2023-05-08".

    Returns:
        The latest date found at 12:00 UTC, or None
    """
    latest: datetime | None = None

    for layout, pattern in _CONTEXT_DATE_PATTERNS:
        for match in pattern.finditer(text):
            if layout == "iso":
                year, month, day = int(match.group(1)), int(match.group(2)), int(match.group(3))
            elif layout == "mdy":
                month = MONTH_NAMES.index(match.group(1).lower()) + 1
                day, year = int(match.group(2)), int(match.group(3))
            else:
                day = int(match.group(1))
                month = MONTH_NAMES.index(match.group(2).lower()) + 1
                year = int(match.group(3))

            try:
                found = datetime.combine(date(year, month, day), time(12, 0), tzinfo=timezone.utc)
            except ValueError:
                continue

            if latest is None or found > latest:
                latest = found

    if latest:
        logger.debug(f"Extracted context date from text: {latest.date().isoformat()}")
    return latest


class DateResolver:
    """
    Resolves relative dates against a fixed reference.

    When ``use_context_date`` is set, an explicit date found in the text
    (e.g. a session header) replaces the reference for that text.
    """

    def __init__(self, reference: datetime | None = None, use_context_date: bool = True):
        self.reference = reference
        self.use_context_date = use_context_date

    def reference_for(self, text: str) -> datetime:
        if self.use_context_date:
            context_date = extract_context_date(text)
            if context_date is not None:
                return context_date
        return self.reference or datetime.now(timezone.utc)

    def resolve(self, text: str) -> str:
        return convert_relative_dates(text, self.reference_for(text))
