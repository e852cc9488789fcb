import numpy as np

from specviewlib.models import SpectrogramConfig
from specviewlib.rendering import SpectrogramRenderer, blank_raster, render

from conftest import GRAYSCALE, mono_source, sine_wave


def test_short_audio_renders_background_only(config):
    source = mono_source(np.zeros(220, dtype=np.float32), 44100)
    raster = render(source, config, 50)
    assert raster.spectrum_bins == 199
    assert raster.pixels.shape == (199, 50, 4)
    assert (raster.pixels[..., :3] == (0, 0, 255)).all()
    assert (raster.pixels[..., 3] == 255).all()


def test_coarse_bins_give_empty_raster():
    cfg = SpectrogramConfig(ideal_bin_size_in_hz=50000, color_scale=GRAYSCALE)
    source = mono_source(sine_wave(440.0, 8000, 0.5), 8000)
    raster = render(source, cfg, 40)
    assert raster.height == 0
    assert raster.width == 40


def test_shape_and_alpha(config, one_second_sine):
    raster = render(one_second_sine, config, 100)
    assert raster.pixels.shape == (199, 100, 4)
    assert raster.pixels.dtype == np.uint8
    assert (raster.pixels[..., 3] == 255).all()


def test_render_is_deterministic(config, one_second_sine):
    first = render(one_second_sine, config, 120)
    second = render(one_second_sine, config, 120)
    assert first.tobytes() == second.tobytes()


def test_every_column_is_painted(config, one_second_sine):
    # grayscale pixels never equal the blue background
    raster = render(one_second_sine, config, 200)
    px = raster.pixels
    assert (px[..., 0] == px[..., 2]).all()


def test_wide_columns_are_replicated(config):
    source = mono_source(sine_wave(1000.0, 44100, 0.1, amplitude=0.01), 44100)
    raster = render(source, config, 200)
    # 9 windows over 200 columns: window 0 fills columns 0..21
    np.testing.assert_array_equal(raster.pixels[:, 0], raster.pixels[:, 21])


def test_extra_height_keeps_background(config, one_second_sine):
    raster = render(one_second_sine, config, 64, height=250)
    assert raster.height == 250
    assert (raster.pixels[199:, :, :3] == (0, 0, 255)).all()
    assert not (raster.pixels[:199, :, :3] == (0, 0, 255)).all()


def test_low_frequencies_at_the_bottom(config, one_second_sine):
    raster = render(one_second_sine, config, 100)
    bins = raster.spectrum_bins
    tone_row = bins - 25 - 1
    far_row = bins - 150 - 1
    assert raster.pixels[tone_row, 50, 0] > raster.pixels[far_row, 50, 0]


def test_renderer_object_matches_function(config, one_second_sine):
    renderer = SpectrogramRenderer(config)
    assert renderer.render(one_second_sine, 80).tobytes() == \
        render(one_second_sine, config, 80).tobytes()


def test_blank_raster():
    raster = blank_raster(3, 2, (1, 2, 3))
    assert raster.pixels.shape == (2, 3, 4)
    assert (raster.pixels[..., :3] == (1, 2, 3)).all()


def test_short_height_keeps_lowest_bins(config, one_second_sine):
    full = render(one_second_sine, config, 64)
    cropped = render(one_second_sine, config, 64, height=30)
    assert cropped.height == 30
    np.testing.assert_array_equal(cropped.pixels, full.pixels[-30:])
