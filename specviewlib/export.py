from __future__ import annotations

import json
import os
from dataclasses import asdict
from datetime import datetime
from typing import Any

import numpy as np
from PIL import Image

from ._version import __version__
from .models import Raster, RenderResult, SpectrogramConfig

MANIFEST_SCHEMA_VERSION = "1.0"


def raster_to_image(raster: Raster) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(raster.pixels))


def save_png(raster: Raster, output_path: str) -> None:
    """Write *raster* as an RGBA PNG.  Empty rasters cannot be saved."""
    if raster.width == 0 or raster.height == 0:
        raise ValueError(f"Cannot save empty raster ({raster.width}x{raster.height})")
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    raster_to_image(raster).save(output_path, format="PNG")


def save_json(
    results: list[tuple[RenderResult, str | None]],
    config: SpectrogramConfig,
    output_path: str,
    source_dir: str = "",
    errors: dict[str, str] | None = None,
) -> None:
    """Write a manifest of rendered recordings for automation tools.

    *results* pairs each render with the PNG it was written to (or None).
    """
    data: dict[str, Any] = {
        "schema_version": MANIFEST_SCHEMA_VERSION,
        "generator": f"specview {__version__}",
        "timestamp": datetime.now().isoformat(),
        "source_directory": os.path.abspath(source_dir) if source_dir else "",
        "config": asdict(config),
        "recordings": [],
        "errors": dict(errors or {}),
    }
    for result, png_path in results:
        data["recordings"].append({
            "name": result.recording.name,
            "image": os.path.basename(png_path) if png_path else None,
            "width": result.raster.width,
            "height": result.raster.height,
            "duration_ms": round(result.duration_ms, 3),
            **result.data,
        })

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
