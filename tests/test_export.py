import json

import numpy as np
import pytest
from PIL import Image

from specviewlib.export import raster_to_image, save_json, save_png
from specviewlib.models import Recording, RenderResult, SpectrogramConfig
from specviewlib.rendering import blank_raster


def test_png_roundtrip_keeps_pixels(tmp_path):
    raster = blank_raster(7, 3, (10, 20, 30))
    raster.pixels[1, 2] = (200, 100, 50, 255)
    path = tmp_path / "nested" / "out.png"
    save_png(raster, str(path))
    with Image.open(path) as img:
        assert img.mode == "RGBA"
        assert img.size == (7, 3)
        np.testing.assert_array_equal(np.asarray(img), raster.pixels)


def test_empty_raster_cannot_be_saved(tmp_path):
    with pytest.raises(ValueError):
        save_png(blank_raster(10, 0, (0, 0, 0)), str(tmp_path / "x.png"))


def test_raster_to_image_mode():
    assert raster_to_image(blank_raster(2, 2, (0, 0, 0))).mode == "RGBA"


def test_manifest(tmp_path):
    result = RenderResult(
        recording=Recording("a.wav", "/src/a.wav"),
        raster=blank_raster(64, 20, (0, 0, 0), spectrum_bins=20),
        duration_ms=1234.5678,
        width=64,
        data={"spectrum_bins": 20, "sample_rate": 8000, "channels": 1, "frames": 9876},
    )
    path = tmp_path / "manifest.json"
    save_json([(result, str(tmp_path / "a.png"))], SpectrogramConfig(), str(path),
              source_dir=str(tmp_path), errors={"b.wav": "Cannot decode"})
    data = json.loads(path.read_text())
    assert data["schema_version"] == "1.0"
    assert data["config"]["ideal_window_size_in_ms"] == 20.0
    assert data["errors"] == {"b.wav": "Cannot decode"}
    entry = data["recordings"][0]
    assert entry["name"] == "a.wav"
    assert entry["image"] == "a.png"
    assert entry["width"] == 64 and entry["height"] == 20
    assert entry["duration_ms"] == 1234.568
    assert entry["sample_rate"] == 8000
