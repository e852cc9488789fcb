from __future__ import annotations

import math
import re

_DIGITS = re.compile(r"(\d+)")


def recording_sort_key(filename: str) -> list:
    """
    Sort key for recording filenames.
    Case- and space-insensitive, with embedded numbers compared numerically
    so that "take 2.wav" sorts before "take 10.wav".
    """
    name = filename.lower().replace(" ", "")
    return [int(part) if part.isdigit() else part for part in _DIGITS.split(name)]


def round_up_to_power_of_two(value: float) -> int:
    """Smallest power of two that is >= *value* (1 for values <= 1)."""
    if value <= 1:
        return 1
    return 1 << math.ceil(math.log2(value))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def clamped_lerp(start: float, end: float, factor: float) -> float:
    return start + (end - start) * clamp(factor, 0.0, 1.0)
