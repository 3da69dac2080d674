"""Shared monetary helpers.

Amounts are plain floats in currency units. Anything within TOLERANCE of
zero is treated as zero.
"""

TOLERANCE = 0.01


def round_money(amount: float) -> float:
    """Round to 2 decimal places for output"""
    # "+ 0.0" turns -0.0 into 0.0
    return round(amount, 2) + 0.0


def is_zero(amount: float) -> bool:
    return abs(amount) < TOLERANCE


def amounts_match(first: float, second: float) -> bool:
    """True when two totals agree within the split tolerance"""
    return abs(first - second) <= TOLERANCE
