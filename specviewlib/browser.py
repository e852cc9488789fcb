from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from .audio import load_audio
from .cache import AnalysisCache
from .events import (
    CONFIG_CHANGED, RENDER_COMPLETE, RENDER_FAILED, SELECTION_CHANGED,
    WIDTH_CHANGED, EventBus,
)
from .log import dbg
from .models import (
    AudioSource, Marking, OverlayConfig, Recording, RenderResult,
    SpectrogramConfig,
)
from .overlays import composite
from .rendering import render
from .scheduler import RenderScheduler

log = logging.getLogger(__name__)


class RecordingBrowser:
    """Steps through recordings and keeps the selected one rendered.

    Owns the analysis cache and the render scheduler.  Every mutator that
    affects the picture (selection, width, config, overlays) schedules a
    render and returns the scheduler's future; renders always read the
    state that is live when they start, so a burst of changes costs at
    most one extra render.

    Must be used from a running asyncio event loop.
    """

    def __init__(
        self,
        recordings: Sequence[Recording],
        config: SpectrogramConfig,
        width: int,
        *,
        overlay: OverlayConfig | None = None,
        height: int | None = None,
        cache: AnalysisCache | None = None,
        event_bus: EventBus | None = None,
        decoder: Callable[[str], AudioSource] = load_audio,
    ):
        self.recordings: list[Recording] = list(recordings)
        self.config = config
        self.overlay = overlay or OverlayConfig()
        self.width = width
        self.height = height
        self.cache = cache or AnalysisCache()
        self.event_bus = event_bus or EventBus()
        self._decoder = decoder
        self._selected_index = 0
        self._markings: dict[str, list[Marking]] = {}
        self._played_segment: tuple[float, float] | None = None
        self.scheduler = RenderScheduler(self._render_selected)

    # ── Selection ───────────────────────────────────────────────────────────

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def selected(self) -> Recording | None:
        if not self.recordings:
            return None
        return self.recordings[self._selected_index]

    def has_next(self) -> bool:
        return self._selected_index < len(self.recordings) - 1

    def has_previous(self) -> bool:
        return self._selected_index > 0

    def select(self, index: int) -> asyncio.Future:
        """Select recording *index* (clamped) and schedule a render."""
        index = max(0, min(index, len(self.recordings) - 1))
        if index != self._selected_index:
            self._selected_index = index
            self._played_segment = None
            self.event_bus.emit(SELECTION_CHANGED, index=index,
                                recording=self.selected)
        return self.scheduler.request_render()

    def next(self) -> asyncio.Future:
        return self.select(self._selected_index + 1)

    def previous(self) -> asyncio.Future:
        return self.select(self._selected_index - 1)

    # ── Display / config ────────────────────────────────────────────────────

    def set_width(self, width: int) -> asyncio.Future:
        if width != self.width:
            old = self.width
            self.width = width
            self.cache.observe_width(width)
            self.event_bus.emit(WIDTH_CHANGED, old=old, new=width)
        return self.scheduler.request_render()

    def set_config(self, config: SpectrogramConfig) -> asyncio.Future:
        if config != self.config:
            self.config = config
            # cache keys carry no config, so every raster is stale now
            self.cache.invalidate_rasters()
            self.event_bus.emit(CONFIG_CHANGED, config=config)
        return self.scheduler.request_render()

    def set_overlay(self, overlay: OverlayConfig) -> asyncio.Future:
        self.overlay = overlay
        return self.scheduler.request_render()

    # ── Markings ────────────────────────────────────────────────────────────

    def markings(self, recording: Recording | None = None) -> list[Marking]:
        recording = recording or self.selected
        if recording is None:
            return []
        return list(self._markings.get(recording.name, []))

    def mark(self, time_ms: float, field_name: str) -> asyncio.Future:
        """Add a time marking to the selected recording."""
        recording = self.selected
        if recording is None:
            raise ValueError("No recording selected")
        self._markings.setdefault(recording.name, []).append(
            Marking(field_name=field_name, time_ms=float(time_ms)))
        return self.scheduler.request_render()

    def clear_markings(self) -> asyncio.Future:
        recording = self.selected
        if recording is not None:
            self._markings.pop(recording.name, None)
        return self.scheduler.request_render()

    def set_played_segment(self, start_ms: float | None,
                           end_ms: float | None = None) -> asyncio.Future:
        """Highlight ``[start_ms, end_ms]``; pass ``None`` to clear."""
        if start_ms is None or end_ms is None:
            self._played_segment = None
        else:
            self._played_segment = (float(start_ms), float(end_ms))
        return self.scheduler.request_render()

    def request_render(self) -> asyncio.Future:
        return self.scheduler.request_render()

    # ── Render pipeline ─────────────────────────────────────────────────────

    async def _decode(self, recording: Recording) -> AudioSource:
        return await self.cache.get_or_decode(
            recording.path,
            lambda: asyncio.to_thread(self._decoder, recording.path),
        )

    async def _render_selected(self) -> RenderResult | None:
        recording = self.selected
        if recording is None:
            return None
        # snapshot live state; later changes schedule their own render
        config, width, height = self.config, self.width, self.height
        dbg(f"Rendering {recording.name} @ {width}px")
        try:
            audio = await self._decode(recording)

            def build():
                return render(audio, config, width, height)

            raster = await self.cache.get_or_compute(
                recording.path, width, build, variant=(config, height))
            rows = min(raster.spectrum_bins, raster.height)
            shown = composite(
                raster, self.overlay, audio.duration_ms,
                markings=self._markings.get(recording.name, ()),
                played_segment_ms=self._played_segment,
                max_frequency_hz=rows * config.ideal_bin_size_in_hz,
            )
        except Exception as e:
            log.warning("Render of %s failed: %s", recording.name, e)
            self.event_bus.emit(RENDER_FAILED, recording=recording, error=e)
            raise

        result = RenderResult(
            recording=recording,
            raster=shown,
            duration_ms=audio.duration_ms,
            width=width,
            data={
                "spectrum_bins": raster.spectrum_bins,
                "sample_rate": audio.sample_rate,
                "channels": audio.channel_count,
                "frames": audio.frame_count,
            },
        )
        self.event_bus.emit(RENDER_COMPLETE, result=result)
        return result
