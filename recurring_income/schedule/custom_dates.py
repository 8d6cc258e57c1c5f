"""
Custom-dates input parsing.

The form takes days of the month as free text ("15, 30"). Each entry
counts for its leading whole number ("15th" and "15.5" are 15); entries
without one, or outside 1-31, are dropped without complaint. An empty
result is reported by the validator, not here.
"""

import re
from typing import Optional

MIN_DAY = 1
MAX_DAY = 31

LEADING_INT = re.compile(r"[+-]?[0-9]+")


def parse_custom_dates(text: Optional[str]) -> list[int]:
    """
    Parse a comma-separated list of days of the month.

    >>> parse_custom_dates("15, 30, 31, 32, abc, 1")
    [1, 15, 30, 31]
    """
    if not text:
        return []

    days = set()
    for token in text.split(","):
        match = LEADING_INT.match(token.strip())
        if not match:
            continue
        day = int(match.group())
        if MIN_DAY <= day <= MAX_DAY:
            days.add(day)

    return sorted(days)


def normalize_custom_dates(days: list[int]) -> list[int]:
    """Sort and deduplicate, keeping out-of-range values for the validator to report."""
    return sorted(set(days))


def out_of_range(days: list[int]) -> list[int]:
    return [d for d in days if not MIN_DAY <= d <= MAX_DAY]
