from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Hashable, Union

from .log import dbg
from .models import AudioSource, CacheEntry, Raster

ComputeFn = Callable[[], Union[Raster, Awaitable[Raster]]]
DecodeFn = Callable[[], Union[AudioSource, Awaitable[AudioSource]]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AnalysisCache:
    """Memoizes decoded audio per source and rendered rasters per
    (source, width).

    Raster geometry depends on the display width, so any change of width
    drops every raster entry, for every source.  Decoded audio does not
    depend on width and survives.  Failed computations are never stored.

    A raster entry also remembers the *variant* it was built for (the
    browser passes its config and height); a lookup with a different
    variant is a miss.  Rasters whose computation straddled a width change
    or :meth:`invalidate_rasters` are handed back but not stored.

    Only the event-loop thread touches the cache; no locking is done.
    """

    def __init__(self) -> None:
        self._rasters: dict[tuple[Hashable, int], CacheEntry] = {}
        self._audio: dict[Hashable, AudioSource] = {}
        self._width: int | None = None
        self._generation = 0

    @property
    def width(self) -> int | None:
        """Width the current raster entries were built at."""
        return self._width

    def observe_width(self, width: int) -> None:
        """Record *width*; a change invalidates all rasters."""
        if self._width is not None and width != self._width:
            if self._rasters:
                dbg(f"Width {self._width} -> {width}: dropping {len(self._rasters)} rasters")
            self._rasters.clear()
            self._generation += 1
        self._width = width

    async def get_or_compute(self, source_key: Hashable, width: int,
                             compute_fn: ComputeFn, variant: Hashable = None) -> Raster:
        """Return the cached raster for ``(source_key, width)`` or build it.

        *compute_fn* may be a plain function or return an awaitable.
        """
        self.observe_width(width)
        key = (source_key, width)
        entry = self._rasters.get(key)
        if entry is not None and entry.variant == variant:
            return entry.raster
        dbg(f"Raster miss for {source_key!r} @ {width}px")
        generation = self._generation
        raster = await _resolve(compute_fn())
        if generation == self._generation:
            self._rasters[key] = CacheEntry(raster=raster, built_at_width=width,
                                            variant=variant)
        else:
            dbg(f"Cache invalidated while building {source_key!r}; not stored")
        return raster

    async def get_or_decode(self, source_key: Hashable, decode_fn: DecodeFn) -> AudioSource:
        """Return decoded audio for *source_key*, decoding it at most once."""
        audio = self._audio.get(source_key)
        if audio is None:
            dbg(f"Decoding {source_key!r}")
            audio = await _resolve(decode_fn())
            self._audio[source_key] = audio
        return audio

    def invalidate_rasters(self) -> None:
        """Drop all rasters (e.g. after a config change), keep audio."""
        if self._rasters:
            dbg(f"Dropping {len(self._rasters)} rasters")
        self._rasters.clear()
        self._generation += 1

    def forget(self, source_key: Hashable) -> None:
        """Drop everything cached for one source."""
        self._audio.pop(source_key, None)
        for key in [k for k in self._rasters if k[0] == source_key]:
            del self._rasters[key]

    def clear(self) -> None:
        self._rasters.clear()
        self._audio.clear()
        self._width = None
        self._generation += 1

    def __contains__(self, key: tuple[Hashable, int]) -> bool:
        return key in self._rasters

    def __len__(self) -> int:
        return len(self._rasters)

    def has_audio(self, source_key: Hashable) -> bool:
        return source_key in self._audio
