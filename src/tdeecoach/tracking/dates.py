"""Calendar helpers.

Dates are user-local calendar days keyed as ISO ``YYYY-MM-DD`` strings; no
timezone normalisation happens anywhere in the chain.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator


def format_date_key(day: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return day.isoformat()


def parse_date_key(key: str) -> date:
    """Parse a ``YYYY-MM-DD`` key, raising ValueError on anything else."""
    try:
        return date.fromisoformat(key)
    except ValueError as exc:
        raise ValueError(f"Invalid date '{key}', expected YYYY-MM-DD") from exc


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each day from start to end inclusive.

    Raises:
        ValueError: If end is before start
    """
    if end < start:
        raise ValueError(f"end date {end} is before start date {start}")
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_start_date(day: date) -> date:
    """Return the Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def week_end_date(day: date) -> date:
    """Return the Sunday of the week containing day."""
    return day + timedelta(days=6 - day.weekday())


def calculate_age(birth_date: date, on_date: date) -> int:
    """Age in whole years on a given date."""
    age = on_date.year - birth_date.year
    if (on_date.month, on_date.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age
