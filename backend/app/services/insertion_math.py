"""
Binary Insertion Math
─────────────────────
Pure functions behind the comparison session. No DB, no state.

The window [low, high] indexes the owner's ranked list as it was when the
session started (0-based). Every prompt and every answer go through
midpoint(); using two different formulas would narrow the window around the
wrong comparator.
"""
import math


def midpoint(low: int, high: int) -> int:
    """Index of the comparator for the window [low, high]."""
    return (low + high) // 2


def narrow(low: int, high: int, candidate_preferred: bool) -> tuple[int, int]:
    """
    Shrink the window after one answer.

    candidate_preferred=True means the user liked the new movie more than
    the comparator, so it belongs above it (numerically lower rank).
    """
    mid = midpoint(low, high)
    if candidate_preferred:
        return low, mid - 1
    return mid + 1, high


def is_settled(low: int, high: int) -> bool:
    return low > high


def target_rank(low: int) -> int:
    """Convert the settled 0-based window start into a 1-based rank."""
    return low + 1


def max_comparisons(n: int) -> int:
    """Upper bound on answers needed to place one movie among *n* others."""
    if n <= 0:
        return 0
    return math.ceil(math.log2(n + 1))
