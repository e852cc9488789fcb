"""Spectrogram raster rendering."""

from __future__ import annotations

import logging
import math

import numpy as np

from .colormap import colorize, lookup_table_for
from .models import AudioSource, Raster, Rgb, SpectrogramConfig
from .planner import plan_for_source
from .spectrum import SpectrumComputer

log = logging.getLogger(__name__)


def blank_raster(width: int, height: int, color: Rgb, spectrum_bins: int = 0) -> Raster:
    pixels = np.empty((max(0, height), max(0, width), 4), dtype=np.uint8)
    pixels[..., :3] = color
    pixels[..., 3] = 255
    return Raster(pixels=pixels, spectrum_bins=spectrum_bins)


def render(source: AudioSource, config: SpectrogramConfig, width: int,
           height: int | None = None, lut: np.ndarray | None = None) -> Raster:
    """Render *source* into a ``height`` x ``width`` RGBA raster.

    *height* defaults to the number of display bins.  The background is
    painted first; each analysis window then becomes one column (low
    frequencies at the bottom) copied across all display columns that
    window covers.  A height below the bin count keeps the lowest bins.
    Audio too short for one window, or a bin size too coarse for one
    display bin, leaves the background untouched.
    """
    window_plan = plan_for_source(source, config, width)
    computer = SpectrumComputer(source, config, window_plan.window_length_frames)
    geometry = computer.geometry
    bins = geometry.spectrum_bins if geometry.renderable else 0
    if height is None:
        height = bins

    raster = blank_raster(width, height, config.background_color, spectrum_bins=bins)
    if window_plan.window_count <= 0 or bins <= 0 or width <= 0 or height <= 0:
        log.debug("Nothing to paint: %d windows, %d bins, %dx%d",
                  window_plan.window_count, bins, width, height)
        return raster

    if lut is None:
        lut = lookup_table_for(tuple(config.color_scale))

    pixels = raster.pixels
    rows = min(bins, height)
    span = window_plan.ceiled_columns_per_window
    column = np.empty((bins, 4), dtype=np.uint8)
    column[:, 3] = 255
    for i in range(window_plan.window_count):
        magnitudes = computer.display_spectrum(window_plan.window_start(i))
        # row rows - k - 1 holds bin k
        column[:, :3] = colorize(lut, magnitudes)[::-1]
        left = math.floor(i * window_plan.columns_per_window)
        right = min(left + span, width)
        if left >= right:
            continue
        pixels[:rows, left:right] = column[bins - rows:, np.newaxis, :]
    return raster


class SpectrogramRenderer:
    """Renders sources with one config; the lookup table is built once."""

    def __init__(self, config: SpectrogramConfig):
        self.config = config
        self.lut = lookup_table_for(tuple(config.color_scale))

    def render(self, source: AudioSource, width: int, height: int | None = None) -> Raster:
        return render(source, self.config, width, height, lut=self.lut)
