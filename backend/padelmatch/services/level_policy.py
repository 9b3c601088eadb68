"""Level compatibility between two players, or a player and a match average."""
import math
from typing import Sequence


def level_distance(level_a: float, level_b: float) -> float:
    return abs(level_a - level_b)


def is_compatible(level_a: float, level_b: float, tolerance: float) -> bool:
    """True when the two levels are at most `tolerance` apart (inclusive)."""
    return level_distance(level_a, level_b) <= tolerance


def average_level(levels: Sequence[float]) -> float:
    """Mean level rounded to 2 decimals, as stored on the match."""
    if not levels:
        return 0.0
    return round(sum(levels) / len(levels), 2)


def category_for(levels: Sequence[float]) -> int:
    """Mean level rounded half-up to the nearest integer."""
    if not levels:
        return 0
    return int(math.floor(sum(levels) / len(levels) + 0.5))
