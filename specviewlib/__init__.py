from ._version import __version__
from .models import (
    AudioSource,
    ColorPoint,
    SpectrogramConfig,
    OverlayConfig,
    WindowPlan,
    SpectrumGeometry,
    Raster,
    Marking,
    Recording,
    CacheEntry,
    RenderResult,
    SchedulerState,
)
from .config import (
    default_config,
    merge_configs,
    validate_config,
    validate_config_fields,
    load_preset,
    save_preset,
    spectrogram_config_from_dict,
    overlay_config_from_dict,
    ConfigError,
    ConfigFieldError,
    ParamSpec,
    SPECTROGRAM_PARAMS,
    OVERLAY_PARAMS,
)
from .audio import load_audio, decode_bytes, discover_recordings, AudioDecodeError
from .planner import WindowPlanner, plan, plan_for_source
from .spectrum import SpectrumComputer, spectrum_geometry, compute_window, aggregate
from .colormap import (
    ColorMapper,
    COLOR_SCALES,
    build_lookup_table,
    color_at,
    colorize,
    color_scale_preset,
)
from .rendering import SpectrogramRenderer, render
from .overlays import OverlayError, composite
from .cache import AnalysisCache
from .scheduler import RenderScheduler
from .events import EventBus
from .browser import RecordingBrowser
from .export import save_png, save_json

__all__ = [
    "__version__",
    "AudioSource",
    "ColorPoint",
    "SpectrogramConfig",
    "OverlayConfig",
    "WindowPlan",
    "SpectrumGeometry",
    "Raster",
    "Marking",
    "Recording",
    "CacheEntry",
    "RenderResult",
    "SchedulerState",
    "default_config",
    "merge_configs",
    "validate_config",
    "validate_config_fields",
    "load_preset",
    "save_preset",
    "spectrogram_config_from_dict",
    "overlay_config_from_dict",
    "ConfigError",
    "ConfigFieldError",
    "ParamSpec",
    "SPECTROGRAM_PARAMS",
    "OVERLAY_PARAMS",
    "load_audio",
    "decode_bytes",
    "discover_recordings",
    "AudioDecodeError",
    "WindowPlanner",
    "plan",
    "plan_for_source",
    "SpectrumComputer",
    "spectrum_geometry",
    "compute_window",
    "aggregate",
    "ColorMapper",
    "COLOR_SCALES",
    "build_lookup_table",
    "color_at",
    "colorize",
    "color_scale_preset",
    "SpectrogramRenderer",
    "render",
    "OverlayError",
    "composite",
    "AnalysisCache",
    "RenderScheduler",
    "EventBus",
    "RecordingBrowser",
    "save_png",
    "save_json",
]
