"""Utility functions for the loan cost simulator.

This module provides helpers for parsing user input into Python data types and
for stepping dates month by month under the 30/360 convention.
"""

from __future__ import annotations

import calendar
from datetime import date

from .config import MAX_DAY_OF_MONTH


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    A bare ``YYYY-MM`` is accepted too and means the first day of that month.

    Raises
    ------
    ValueError
        If the string is not a valid date.
    """
    try:
        parts = value.strip().split("-")
        if len(parts) == 2:
            return date(int(parts[0]), int(parts[1]), 1)
        if len(parts) != 3:
            raise ValueError
        return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except Exception as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months_30_360(dt: date, months: int) -> date:
    """Return the date ``months`` months after ``dt``.

    The day of the month never goes past 30, nor past the last day of the
    target month (so Jan 31 + 1 month is Feb 28 or 29, and + 2 is Mar 30).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, MAX_DAY_OF_MONTH, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def float_from_str(value: str) -> float:
    """Convert a numeric string into a ``float``, ignoring thousands commas."""
    try:
        return float(value.replace(",", "").strip())
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc


def parse_amount(value: str) -> float:
    """Parse an amount with an optional ``k``/``m`` suffix ("180k" -> 180000)."""
    cleaned = value.strip().lower()
    factor = 1.0
    if cleaned.endswith("k"):
        factor = 1_000.0
        cleaned = cleaned[:-1]
    elif cleaned.endswith("m"):
        factor = 1_000_000.0
        cleaned = cleaned[:-1]
    return float_from_str(cleaned) * factor


def parse_rate(value: str) -> float:
    """Parse a rate given as a percentage ("8.5", "8.5%") or a fraction ("0.085").

    Values with a ``%`` sign, or greater than 1 in absolute value, are read as
    percentages.
    """
    cleaned = value.strip()
    if cleaned.endswith("%"):
        return float_from_str(cleaned[:-1]) / 100
    rate = float_from_str(cleaned)
    if abs(rate) > 1:
        rate = rate / 100
    return rate
