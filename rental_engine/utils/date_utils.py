"""Date manipulation utilities"""

from datetime import date


def days_between(start: date, end: date) -> int:
    """Number of nights in the half-open range [start, end)"""
    return (end - start).days


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """
    Half-open overlap test.

    [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1, so a booking
    that starts on the day another one ends does not overlap it.
    """
    return start_a < end_b and start_b < end_a
