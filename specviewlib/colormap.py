"""Color scales: control points → 256-entry lookup table."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable

import numpy as np

from .models import ColorPoint, Rgb

FALLBACK_COLOR: Rgb = (255, 0, 0)

# Just under 256 so that 1.0 maps to index 255 without overflowing.
_INDEX_SCALE = 255.999_999_999_999


# ---------------------------------------------------------------------------
# Named color scales (thresholds on 0..255)
# ---------------------------------------------------------------------------

COLOR_SCALES: dict[str, tuple[ColorPoint, ...]] = {}


def _register_color_scale(name: str, controls: list[tuple[float, Rgb]]):
    COLOR_SCALES[name] = tuple(ColorPoint(t, c) for t, c in controls)


_register_color_scale("magma", [
    (0, (0, 0, 4)),
    (64, (81, 18, 124)),
    (128, (183, 55, 121)),
    (191, (254, 159, 109)),
    (255, (252, 253, 191)),
])

_register_color_scale("viridis", [
    (0, (68, 1, 84)),
    (64, (59, 82, 139)),
    (128, (33, 145, 140)),
    (191, (94, 201, 98)),
    (255, (253, 231, 37)),
])

_register_color_scale("inferno", [
    (0, (0, 0, 4)),
    (64, (87, 16, 110)),
    (128, (188, 55, 84)),
    (191, (249, 142, 9)),
    (255, (252, 255, 164)),
])

_register_color_scale("grayscale", [
    (0, (0, 0, 0)),
    (255, (255, 255, 255)),
])


def color_scale_preset(name: str) -> tuple[ColorPoint, ...]:
    try:
        return COLOR_SCALES[name]
    except KeyError:
        opts = ", ".join(sorted(COLOR_SCALES))
        raise KeyError(f"Unknown color scale '{name}' (available: {opts})") from None


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

def uniform_lookup_table(color: Rgb) -> np.ndarray:
    lut = np.empty((256, 3), dtype=np.uint8)
    lut[:] = color
    return lut


def _lerp_rgb(start: Rgb, end: Rgb, factor: float) -> Rgb:
    factor = max(0.0, min(factor, 1.0))
    return (
        math.floor(start[0] + (end[0] - start[0]) * factor),
        math.floor(start[1] + (end[1] - start[1]) * factor),
        math.floor(start[2] + (end[2] - start[2]) * factor),
    )


def build_lookup_table(color_scale: Iterable[ColorPoint]) -> np.ndarray:
    """Build a (256, 3) uint8 table from *color_scale* control points.

    Points are sorted by threshold first.  An empty scale gives a uniform
    red table and a single point a uniform table of its color.  Between
    points, channels are interpolated linearly and floored; outside the
    outermost thresholds the nearest point's color is held.
    """
    points = sorted(color_scale, key=lambda p: p.threshold)
    if not points:
        return uniform_lookup_table(FALLBACK_COLOR)
    if len(points) == 1:
        return uniform_lookup_table(points[0].color)

    lut = np.empty((256, 3), dtype=np.uint8)
    top, beneath_top = points[0], points[1]
    remaining = iter(points[2:])
    upcoming = next(remaining, None)
    for i in range(256):
        while i > beneath_top.threshold and upcoming is not None:
            top, beneath_top = beneath_top, upcoming
            upcoming = next(remaining, None)
        span = beneath_top.threshold - top.threshold
        factor = (i - top.threshold) / span if span > 0 else 1.0
        lut[i] = _lerp_rgb(top.color, beneath_top.color, factor)
    return lut


@lru_cache(maxsize=32)
def lookup_table_for(color_scale: tuple[ColorPoint, ...]) -> np.ndarray:
    """Memoized :func:`build_lookup_table`; the returned array is read-only."""
    lut = build_lookup_table(color_scale)
    lut.setflags(write=False)
    return lut


def color_index(unit_magnitude: float) -> int:
    return math.floor(unit_magnitude * _INDEX_SCALE)


def color_at(lut: np.ndarray, unit_magnitude: float) -> Rgb:
    """Color for a magnitude on [0, 1]."""
    r, g, b = lut[color_index(unit_magnitude)]
    return int(r), int(g), int(b)


def colorize(lut: np.ndarray, unit_magnitudes: np.ndarray) -> np.ndarray:
    """Vectorized :func:`color_at`: (n,) magnitudes → (n, 3) uint8."""
    indices = np.floor(np.asarray(unit_magnitudes) * _INDEX_SCALE).astype(np.intp)
    return lut[indices]


class ColorMapper:
    def __init__(self, color_scale: Iterable[ColorPoint]):
        self.lut = lookup_table_for(tuple(color_scale))

    def color_at(self, unit_magnitude: float) -> Rgb:
        return color_at(self.lut, unit_magnitude)

    def colorize(self, unit_magnitudes: np.ndarray) -> np.ndarray:
        return colorize(self.lut, unit_magnitudes)
