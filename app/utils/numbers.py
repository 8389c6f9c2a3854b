"""Numeric helpers shared by the scoring and alerting services."""

import math


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2).

    Python's round() is banker's rounding (2.5 -> 2), which would shift
    scores by a point at every .5 boundary.
    """
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def format_money(amount: float) -> str:
    """$12,345 style, dropping cents for whole amounts."""
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return f"${amount:,.2f}"
