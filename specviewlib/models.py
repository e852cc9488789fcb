from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

Rgb = tuple[int, int, int]
Rgba = tuple[int, int, int, int]


class SchedulerState(Enum):
    IDLE = "idle"
    RENDERING = "rendering"


@dataclass(frozen=True)
class AudioSource:
    """Decoded PCM audio, one float32 array per channel.

    Attributes:
        channels:    Per-channel sample arrays, all ``frame_count`` long.
        sample_rate: Frames per second (> 0).
        frame_count: Number of frames in every channel.
    """
    channels: tuple[np.ndarray, ...]
    sample_rate: int
    frame_count: int

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.channels:
            raise ValueError("AudioSource needs at least one channel")
        for i, ch in enumerate(self.channels):
            if len(ch) != self.frame_count:
                raise ValueError(
                    f"channel {i} has {len(ch)} frames, expected {self.frame_count}"
                )

    @classmethod
    def from_array(cls, data: np.ndarray, sample_rate: int) -> AudioSource:
        """Build from a (frames,) or (frames, channels) array."""
        if data.ndim == 1:
            channels = (np.ascontiguousarray(data, dtype=np.float32),)
        else:
            channels = tuple(
                np.ascontiguousarray(data[:, ch], dtype=np.float32)
                for ch in range(data.shape[1])
            )
        return cls(channels=channels, sample_rate=int(sample_rate),
                   frame_count=int(data.shape[0]))

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def duration_ms(self) -> float:
        return self.frame_count / self.sample_rate * 1e3


@dataclass(frozen=True)
class ColorPoint:
    """One control point of a color scale (threshold on 0..255)."""
    threshold: float
    color: Rgb


@dataclass(frozen=True)
class SpectrogramConfig:
    ideal_window_size_in_ms: float = 20.0
    ideal_step_size_in_ms: float = 10.0
    ideal_bin_size_in_hz: float = 40.0
    ideal_max_frequency_in_hz: float = 8000.0
    color_scale: tuple[ColorPoint, ...] = ()
    background_color: Rgb = (0, 0, 0)


@dataclass(frozen=True)
class OverlayConfig:
    """Colors used when compositing markings on top of a spectrogram."""
    field_colors: dict[str, Rgb] = field(default_factory=dict)
    played_segment_color: Rgba = (255, 255, 255, 64)
    reference_lines_in_ms: tuple[float, ...] = ()
    reference_lines_in_hz: tuple[float, ...] = ()
    reference_line_color: Rgb = (255, 0, 0)


@dataclass(frozen=True)
class WindowPlan:
    """How a source is cut into analysis windows for a given display width.

    All frame quantities are fractional; callers floor them when slicing.
    """
    window_count: int
    window_length_frames: float
    step_size_frames: float
    columns_per_window: float
    fft_input_length: int

    @property
    def ceiled_columns_per_window(self) -> int:
        return int(np.ceil(self.columns_per_window))

    def window_start(self, index: int) -> float:
        return index * self.step_size_frames


@dataclass(frozen=True)
class SpectrumGeometry:
    fft_input_length: int
    fractional_bins_per_bin: float
    spectrum_bins: int

    @property
    def renderable(self) -> bool:
        return self.fractional_bins_per_bin > 0 and self.spectrum_bins > 0


@dataclass
class Raster:
    """RGBA pixel buffer, shape (height, width, 4), dtype uint8."""
    pixels: np.ndarray
    spectrum_bins: int

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def copy(self) -> Raster:
        return Raster(pixels=self.pixels.copy(), spectrum_bins=self.spectrum_bins)

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class Marking:
    """A time position tagged with a field name, e.g. an onset mark."""
    field_name: str
    time_ms: float


@dataclass(frozen=True)
class Recording:
    name: str
    path: str


@dataclass
class CacheEntry:
    raster: Raster
    built_at_width: int
    # whatever else the raster was built from (config, height)
    variant: Any = None


@dataclass
class RenderResult:
    recording: Recording
    raster: Raster
    duration_ms: float
    width: int
    data: dict[str, Any] = field(default_factory=dict)
