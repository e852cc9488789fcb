"""Window planning: fit analysis windows to a display width."""

from __future__ import annotations

import math

from .models import AudioSource, SpectrogramConfig, WindowPlan
from .utils import round_up_to_power_of_two


def plan(duration_ms: float, sample_rate: int, frame_count: int,
         target_columns: int, config: SpectrogramConfig) -> WindowPlan:
    """Compute how many windows to analyse, their step, and their width.

    The number of windows never exceeds *target_columns*.  The configured
    step is used unless it would push the last window past the end of the
    buffer, in which case it is stretched.  A trailing partial window is
    dropped rather than analysed short.  Audio shorter than one window
    yields ``window_count == 0``.
    """
    window_ms = config.ideal_window_size_in_ms
    step_ms = config.ideal_step_size_in_ms

    desired = 1 + (duration_ms - window_ms) / step_ms
    desired = min(desired, target_columns)

    ceiled = math.ceil(desired)
    columns_per_window = target_columns / ceiled if ceiled > 0 else 0.0

    window_frames = window_ms * sample_rate / 1000
    ideal_step_frames = step_ms * sample_rate / 1000
    if desired > 1:
        min_step_frames = (frame_count - window_frames) / (desired - 1)
        step_frames = max(ideal_step_frames, min_step_frames)
    else:
        # at most one window: the step is never applied
        step_frames = ideal_step_frames

    window_count = max(0, math.floor(desired))

    return WindowPlan(
        window_count=window_count,
        window_length_frames=window_frames,
        step_size_frames=step_frames,
        columns_per_window=columns_per_window if window_count > 0 else 0.0,
        fft_input_length=round_up_to_power_of_two(window_frames),
    )


def plan_for_source(source: AudioSource, config: SpectrogramConfig,
                    target_columns: int) -> WindowPlan:
    return plan(source.duration_ms, source.sample_rate, source.frame_count,
                target_columns, config)


class WindowPlanner:
    """Plans windows for one config; thin object wrapper around :func:`plan`."""

    def __init__(self, config: SpectrogramConfig):
        self.config = config

    def plan(self, source: AudioSource, target_columns: int) -> WindowPlan:
        return plan_for_source(source, self.config, target_columns)
