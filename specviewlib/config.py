from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from .models import ColorPoint, OverlayConfig, SpectrogramConfig

log = logging.getLogger(__name__)

PRESET_SCHEMA_VERSION = "1.0"

# Keys that are internal/CLI-only and should not be saved in presets
_INTERNAL_KEYS = {"output", "json", "width", "height", "_source_dir"}


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ConfigFieldError:
    """A single validation error for one configuration field.

    Attributes:
        key:     The config key that failed validation.
        value:   The offending value.
        message: Human-readable explanation of what is wrong.
    """
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """Declarative specification for a single configuration parameter.

    Describes type, default, valid range and labels so presets and CLI
    overrides can be validated in one place.
    """
    key: str
    type: type | tuple              # expected Python type(s)
    default: Any
    label: str                       # short UI label
    description: str = ""            # longer help text
    min: float | int | None = None   # inclusive lower bound (unless min_exclusive)
    max: float | int | None = None   # inclusive upper bound (unless max_exclusive)
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list | None = None      # allowed string values
    item_type: type | None = None    # element type for list fields
    nullable: bool = False           # True if None is valid


DEFAULT_COLOR_SCALE: list[list[Any]] = [
    [0, [0, 0, 4]],
    [64, [81, 18, 124]],
    [128, [183, 55, 121]],
    [191, [254, 159, 109]],
    [255, [252, 253, 191]],
]


def default_config() -> dict[str, Any]:
    """Returns the built-in default configuration (flat)."""
    return {
        "ideal_window_size_in_ms": 20.0,
        "ideal_step_size_in_ms": 10.0,
        "ideal_bin_size_in_hz": 40.0,
        "ideal_max_frequency_in_hz": 8000.0,
        "color_scale": [list(p) for p in DEFAULT_COLOR_SCALE],
        "background_color": [0, 0, 0],
        "field_colors": {},
        "played_segment_color": [255, 255, 255, 64],
        "reference_lines_in_ms": [],
        "reference_lines_in_hz": [],
        "reference_line_color": [255, 0, 0],
        "width": 1024,
        "height": None,
    }


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """
    Merge multiple config dicts left-to-right.
    Later values override earlier ones.
    Dict values (field_colors) are merged key by key.
    """
    _DICT_KEYS = {"field_colors"}
    result: dict[str, Any] = {}
    for cfg in configs:
        for k, v in cfg.items():
            if k in _DICT_KEYS and isinstance(result.get(k), dict) and isinstance(v, dict):
                result[k] = {**result[k], **v}
            else:
                result[k] = v
    return result


def load_preset(path: str) -> dict[str, Any]:
    """
    Load a JSON preset file. Returns a partial flat config dict.

    Both flat presets and the structured layout
    ``{"spectrogram": {...}, "overlays": {...}}`` are accepted.
    Raises ConfigError if the file cannot be read or parsed.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Preset file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in preset file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read preset file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Preset file must contain a JSON object, got {type(data).__name__}")

    version = data.get("schema_version")
    if version is not None and version != PRESET_SCHEMA_VERSION:
        log.warning("Preset %s has schema_version %s, expected %s",
                    path, version, PRESET_SCHEMA_VERSION)

    # Strip metadata keys, they are informational
    preset = {k: v for k, v in data.items() if k not in ("schema_version", "_description")}
    if any(isinstance(preset.get(s), dict) for s in ("spectrogram", "overlays")):
        preset = flatten_structured_config(preset)

    errors = validate_config_fields(preset)
    if errors:
        lines = [f"{e.key}: {e.message}" for e in errors]
        raise ConfigError(
            f"Preset {path} has invalid values:\n  • " + "\n  • ".join(lines)
        )
    return preset


def save_preset(config: dict[str, Any], path: str, *, description: str | None = None) -> None:
    """
    Save a flat config dict as a structured JSON preset file.
    Internal/CLI-only keys and values equal to the defaults are skipped.
    """
    defaults = default_config()
    flat: dict[str, Any] = {}
    for k, v in config.items():
        if k in _INTERNAL_KEYS or k.startswith("_"):
            continue
        if k in defaults and defaults[k] == v:
            continue
        flat[k] = v

    preset: dict[str, Any] = {"schema_version": PRESET_SCHEMA_VERSION}
    if description:
        preset["_description"] = description
    preset.update(build_structured_config(flat))

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(preset, f, indent=4, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Parameter sections
# ---------------------------------------------------------------------------

SPECTROGRAM_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="ideal_window_size_in_ms", type=(int, float), default=20.0,
        min=0.0, min_exclusive=True,
        label="Window size (ms)",
        description="Length of each analysis window before power-of-two padding.",
    ),
    ParamSpec(
        key="ideal_step_size_in_ms", type=(int, float), default=10.0,
        min=0.0, min_exclusive=True,
        label="Step size (ms)",
        description=(
            "Preferred offset between consecutive windows. Stretched when the "
            "display is narrower than the number of windows."
        ),
    ),
    ParamSpec(
        key="ideal_bin_size_in_hz", type=(int, float), default=40.0,
        min=0.0, min_exclusive=True,
        label="Bin size (Hz)",
        description="Frequency span aggregated into one display row.",
    ),
    ParamSpec(
        key="ideal_max_frequency_in_hz", type=(int, float), default=8000.0,
        min=0.0, min_exclusive=True,
        label="Max frequency (Hz)",
        description="Upper frequency shown; capped at the Nyquist frequency.",
    ),
    ParamSpec(
        key="color_scale", type=list, default=DEFAULT_COLOR_SCALE,
        item_type=list,
        label="Color scale",
        description="List of [threshold 0-255, [r, g, b]] control points.",
    ),
    ParamSpec(
        key="background_color", type=list, default=[0, 0, 0],
        item_type=int,
        label="Background color",
        description="RGB painted where no spectrum is available.",
    ),
]

OVERLAY_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="field_colors", type=dict, default={},
        label="Field colors",
        description="Map of field name to [r, g, b] used for time markings.",
    ),
    ParamSpec(
        key="played_segment_color", type=list, default=[255, 255, 255, 64],
        item_type=int,
        label="Played segment color",
        description="RGBA (alpha 0-255) blended over the played segment.",
    ),
    ParamSpec(
        key="reference_lines_in_ms", type=list, default=[],
        item_type=(int, float),
        label="Reference times (ms)",
    ),
    ParamSpec(
        key="reference_lines_in_hz", type=list, default=[],
        item_type=(int, float),
        label="Reference frequencies (Hz)",
    ),
    ParamSpec(
        key="reference_line_color", type=list, default=[255, 0, 0],
        item_type=int,
        label="Reference line color",
    ),
]

DISPLAY_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="width", type=int, default=1024, min=1,
        label="Display width (px)",
    ),
    ParamSpec(
        key="height", type=int, default=None, min=1, nullable=True,
        label="Display height (px)",
        description="Defaults to the number of display bins.",
    ),
]


# ---------------------------------------------------------------------------
# Validation  (ParamSpec-driven)
# ---------------------------------------------------------------------------

def _check_value(spec: ParamSpec, value: Any) -> str | None:
    """Problem with *value* for *spec*, or None if it is acceptable."""
    if value is None:
        return None if spec.nullable else f"{spec.label} must not be empty."
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, spec.type):
        got = "boolean" if isinstance(value, bool) else type(value).__name__
        return f"{spec.label} must be {_type_label(spec.type)}, got {got}."
    if spec.choices is not None and value not in spec.choices:
        return f"{spec.label} must be one of {', '.join(map(repr, spec.choices))}."

    if isinstance(value, (int, float)):
        lo, hi = spec.min, spec.max
        if lo is not None and (value <= lo if spec.min_exclusive else value < lo):
            bound = "greater than" if spec.min_exclusive else "at least"
            return f"{spec.label} must be {bound} {lo}."
        if hi is not None and (value >= hi if spec.max_exclusive else value > hi):
            bound = "less than" if spec.max_exclusive else "at most"
            return f"{spec.label} must be {bound} {hi}."

    if spec.item_type is not None and isinstance(value, list):
        for i, item in enumerate(value):
            if isinstance(item, bool) or not isinstance(item, spec.item_type):
                return (f"{spec.label}[{i}] must be {_type_label(spec.item_type)}, "
                        f"got {type(item).__name__}.")
    return None


def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Check the keys of *values* that *params* describes.

    Missing keys are fine (they fall back to their defaults); one
    :class:`ConfigFieldError` is returned per offending key.
    """
    errors = []
    for spec in params:
        if spec.key in values:
            message = _check_value(spec, values[spec.key])
            if message is not None:
                errors.append(ConfigFieldError(spec.key, values[spec.key], message))
    return errors


def _all_param_specs() -> list[ParamSpec]:
    return SPECTROGRAM_PARAMS + OVERLAY_PARAMS + DISPLAY_PARAMS


def validate_config_fields(config: dict[str, Any]) -> list[ConfigFieldError]:
    """Validate a **flat** config dict against all known :class:`ParamSpec`
    definitions.  Returns structured errors.  Never raises.
    """
    return validate_param_values(_all_param_specs(), config)


def validate_config(config: dict[str, Any]) -> None:
    """Validate a flat config dict.

    Raises :class:`ConfigError` listing every invalid field.
    """
    errors = validate_config_fields(config)
    if errors:
        lines = [e.message for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


# ---------------------------------------------------------------------------
# Structured config  (preset file format)
# ---------------------------------------------------------------------------

def build_structured_config(flat: dict[str, Any]) -> dict[str, Any]:
    """Split a flat config into ``spectrogram`` / ``overlays`` / ``display``
    sections.  Keys that belong to no section are dropped."""
    sections = {
        "spectrogram": SPECTROGRAM_PARAMS,
        "overlays": OVERLAY_PARAMS,
        "display": DISPLAY_PARAMS,
    }
    structured: dict[str, Any] = {}
    for name, params in sections.items():
        section = {p.key: flat[p.key] for p in params if p.key in flat}
        if section:
            structured[name] = section
    return structured


def flatten_structured_config(structured: dict[str, Any]) -> dict[str, Any]:
    """Merge all sections of a structured config into one flat dict."""
    flat: dict[str, Any] = {}
    for key, value in structured.items():
        if key in ("spectrogram", "overlays", "display") and isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat


def _type_label(t) -> str:
    """Human-readable label for an expected type or tuple of types."""
    if isinstance(t, tuple):
        return " or ".join(x.__name__ for x in t)
    return t.__name__


# ---------------------------------------------------------------------------
# Conversion to engine types
# ---------------------------------------------------------------------------

def _rgb(value, fallback=(0, 0, 0)) -> tuple[int, int, int]:
    if value is None:
        return fallback
    r, g, b = value[:3]
    return int(r), int(g), int(b)


def color_scale_from_list(points: list) -> tuple[ColorPoint, ...]:
    """``[[threshold, [r, g, b]], ...]`` → ColorPoint tuple (order kept)."""
    return tuple(
        ColorPoint(threshold=float(threshold), color=_rgb(color))
        for threshold, color in points
    )


def spectrogram_config_from_dict(config: dict[str, Any]) -> SpectrogramConfig:
    """Build a SpectrogramConfig from a flat config dict.

    Missing keys receive their defaults.  Values are not range-checked here;
    call :func:`validate_config` first when the source is untrusted.
    """
    cfg = merge_configs(default_config(), config)
    return SpectrogramConfig(
        ideal_window_size_in_ms=float(cfg["ideal_window_size_in_ms"]),
        ideal_step_size_in_ms=float(cfg["ideal_step_size_in_ms"]),
        ideal_bin_size_in_hz=float(cfg["ideal_bin_size_in_hz"]),
        ideal_max_frequency_in_hz=float(cfg["ideal_max_frequency_in_hz"]),
        color_scale=color_scale_from_list(cfg["color_scale"] or []),
        background_color=_rgb(cfg["background_color"]),
    )


def overlay_config_from_dict(config: dict[str, Any]) -> OverlayConfig:
    cfg = merge_configs(default_config(), config)
    r, g, b, a = cfg["played_segment_color"]
    return OverlayConfig(
        field_colors={name: _rgb(c) for name, c in cfg["field_colors"].items()},
        played_segment_color=(int(r), int(g), int(b), int(a)),
        reference_lines_in_ms=tuple(float(t) for t in cfg["reference_lines_in_ms"]),
        reference_lines_in_hz=tuple(float(f) for f in cfg["reference_lines_in_hz"]),
        reference_line_color=_rgb(cfg["reference_line_color"]),
    )
