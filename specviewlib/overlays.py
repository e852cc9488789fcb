"""Compositing of time markings, the played segment and reference lines."""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np

from .models import Marking, OverlayConfig, Raster, Rgb, Rgba
from .utils import clamp, clamped_lerp


class OverlayError(Exception):
    """Raised when an overlay cannot be drawn (e.g. a field has no color)."""


def _time_to_x(time_ms: float, duration_ms: float, width: int) -> int:
    if duration_ms <= 0:
        return 0
    return math.floor(min(width, clamp(time_ms / duration_ms, 0.0, 1.0) * width))


def render_markings(raster: Raster, markings: Iterable[Marking], duration_ms: float,
                    field_colors: dict[str, Rgb]) -> None:
    """Draw a one-pixel vertical line per marking (in place).

    A marking at the very end of the recording falls on ``x == width`` and
    is clipped away.
    """
    pixels = raster.pixels
    for marking in markings:
        color = field_colors.get(marking.field_name)
        if color is None:
            raise OverlayError(f"Cannot find color for field {marking.field_name}")
        x = _time_to_x(marking.time_ms, duration_ms, raster.width)
        if x < raster.width:
            pixels[:, x, :3] = color
            pixels[:, x, 3] = 255


def render_played_segment(raster: Raster, segment_ms: tuple[float, float] | None,
                          duration_ms: float, color: Rgba) -> None:
    """Alpha-blend *color* over the columns of the played segment (in place)."""
    if segment_ms is None or duration_ms <= 0:
        return
    start_ms, end_ms = segment_ms
    width = raster.width
    start_x = _time_to_x(start_ms, duration_ms, width)
    span = math.floor(clamp((end_ms - start_ms) / duration_ms, 0.0, 1.0) * width)
    end_x = min(start_x + span, width)
    if end_x <= start_x:
        return
    alpha = color[3] / 255.0
    region = raster.pixels[:, start_x:end_x, :3].astype(np.float64)
    blended = region * (1.0 - alpha) + np.asarray(color[:3], dtype=np.float64) * alpha
    raster.pixels[:, start_x:end_x, :3] = np.floor(blended).astype(np.uint8)


def render_reference_lines(raster: Raster, times_ms: Iterable[float],
                           freqs_hz: Iterable[float], duration_ms: float,
                           max_frequency_hz: float, color: Rgb) -> None:
    """Draw vertical lines at *times_ms* and horizontal lines at *freqs_hz*.

    Frequencies are placed against the rendered bin rows, so 0 Hz is the
    bottom of the spectrum and *max_frequency_hz* its top.
    """
    pixels = raster.pixels
    width = raster.width
    for t in times_ms:
        x = _time_to_x(t, duration_ms, width)
        if x < width:
            pixels[:, x, :3] = color
    rows = min(raster.spectrum_bins, raster.height)
    if rows <= 0 or max_frequency_hz <= 0:
        return
    for f in freqs_hz:
        y = math.floor(clamped_lerp(rows, 0, f / max_frequency_hz))
        if 0 <= y < rows:
            pixels[y, :, :3] = color


def composite(raster: Raster, overlay: OverlayConfig, duration_ms: float, *,
              markings: Iterable[Marking] = (),
              played_segment_ms: tuple[float, float] | None = None,
              max_frequency_hz: float = 0.0) -> Raster:
    """Return a copy of *raster* with all overlays drawn on top.

    The input raster is left untouched so cached rasters can be reused.
    """
    out = raster.copy()
    if overlay.reference_lines_in_ms or overlay.reference_lines_in_hz:
        render_reference_lines(out, overlay.reference_lines_in_ms,
                               overlay.reference_lines_in_hz, duration_ms,
                               max_frequency_hz, overlay.reference_line_color)
    render_markings(out, markings, duration_ms, overlay.field_colors)
    render_played_segment(out, played_segment_ms, duration_ms,
                          overlay.played_segment_color)
    return out
