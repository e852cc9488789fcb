import numpy as np
import pytest

from specviewlib.models import Marking, OverlayConfig
from specviewlib.overlays import (
    OverlayError, composite, render_markings, render_played_segment,
    render_reference_lines,
)
from specviewlib.rendering import blank_raster

GRAY = (100, 100, 100)


def test_marking_draws_vertical_line():
    raster = blank_raster(100, 10, GRAY, spectrum_bins=10)
    render_markings(raster, [Marking("onset", 500)], 1000, {"onset": (0, 255, 0)})
    assert (raster.pixels[:, 50, :3] == (0, 255, 0)).all()
    assert (raster.pixels[:, 49, :3] == GRAY).all()
    assert (raster.pixels[:, 51, :3] == GRAY).all()


def test_marking_without_color_raises():
    raster = blank_raster(10, 10, GRAY)
    with pytest.raises(OverlayError, match="offset"):
        render_markings(raster, [Marking("offset", 1)], 1000, {"onset": (0, 255, 0)})


def test_marking_at_end_is_clipped():
    raster = blank_raster(20, 4, GRAY)
    render_markings(raster, [Marking("onset", 1000)], 1000, {"onset": (0, 255, 0)})
    assert (raster.pixels[..., :3] == GRAY).all()


def test_played_segment_is_blended():
    raster = blank_raster(100, 4, GRAY)
    render_played_segment(raster, (250, 500), 1000, (200, 0, 0, 128))
    px = raster.pixels
    assert tuple(px[0, 25, :3]) == (150, 49, 49)
    assert tuple(px[0, 49, :3]) == (150, 49, 49)
    assert (px[:, :25, :3] == GRAY).all()
    assert (px[:, 50:, :3] == GRAY).all()


def test_played_segment_none_is_noop():
    raster = blank_raster(10, 4, GRAY)
    render_played_segment(raster, None, 1000, (200, 0, 0, 128))
    assert (raster.pixels[..., :3] == GRAY).all()


def test_reference_lines():
    raster = blank_raster(100, 10, GRAY, spectrum_bins=10)
    render_reference_lines(raster, [250], [2000, 4000], 1000, 4000, (255, 0, 0))
    px = raster.pixels
    assert (px[:, 25, :3] == (255, 0, 0)).all()
    assert (px[5, :, :3] == (255, 0, 0)).all()
    assert (px[0, :, :3] == (255, 0, 0)).all()
    assert (px[9, :24, :3] == GRAY).all()


def test_composite_leaves_input_untouched():
    raster = blank_raster(100, 10, GRAY, spectrum_bins=10)
    overlay = OverlayConfig(field_colors={"onset": (0, 255, 0)},
                            reference_lines_in_ms=(100.0,))
    out = composite(raster, overlay, 1000, markings=[Marking("onset", 500)],
                    played_segment_ms=(0, 100), max_frequency_hz=4000)
    assert (raster.pixels[..., :3] == GRAY).all()
    assert (out.pixels[:, 50, :3] == (0, 255, 0)).all()
    assert not np.array_equal(out.pixels, raster.pixels)
    assert out.spectrum_bins == 10
