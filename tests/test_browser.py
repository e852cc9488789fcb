import asyncio
import dataclasses

import numpy as np
import pytest
import soundfile as sf

from specviewlib.audio import AudioDecodeError
from specviewlib.browser import RecordingBrowser
from specviewlib.events import (
    CONFIG_CHANGED, RENDER_COMPLETE, RENDER_FAILED, SELECTION_CHANGED, WIDTH_CHANGED,
)
from specviewlib.models import ColorPoint, OverlayConfig, Recording
from specviewlib.overlays import OverlayError

from conftest import mono_source, sine_wave

MAGENTA = (255, 0, 255)


class FakeDecoder:
    def __init__(self, sources):
        self.sources = sources
        self.calls = []

    def __call__(self, path):
        self.calls.append(path)
        source = self.sources[path]
        if isinstance(source, Exception):
            raise source
        return source


def make_browser(config, width=100, names=("a.wav", "b.wav", "c.wav"), broken=(), **kwargs):
    sources = {}
    for i, name in enumerate(names):
        if name in broken:
            sources[name] = AudioDecodeError(f"Cannot decode {name}")
        else:
            sources[name] = mono_source(sine_wave(500.0 * (i + 1), 8000, 1.0, 0.05), 8000)
    decoder = FakeDecoder(sources)
    recordings = [Recording(name=n, path=n) for n in names]
    browser = RecordingBrowser(recordings, config, width, decoder=decoder, **kwargs)
    return browser, decoder


def collect(browser, event_type):
    events = []
    browser.event_bus.subscribe(event_type, lambda **data: events.append(data))
    return events


def test_navigation_clamps_at_ends(config):
    async def run():
        browser, _ = make_browser(config)
        changes = collect(browser, SELECTION_CHANGED)
        assert not browser.has_previous()
        await browser.previous()
        assert browser.selected_index == 0
        await browser.next()
        await browser.next()
        result = await browser.next()
        assert browser.selected_index == 2
        assert not browser.has_next()
        assert result.recording.name == "c.wav"
        await browser.previous()
        assert browser.selected.name == "b.wav"
        return changes

    changes = asyncio.run(run())
    assert [c["index"] for c in changes] == [1, 2, 1]


def test_render_result_describes_recording(config):
    async def run():
        browser, _ = make_browser(config, width=64)
        return await browser.select(0)

    result = asyncio.run(run())
    assert result.width == 64
    assert result.raster.width == 64
    assert result.raster.height == result.data["spectrum_bins"] > 0
    assert result.data["sample_rate"] == 8000
    assert result.data["channels"] == 1
    assert result.duration_ms == pytest.approx(1000.0)


def test_width_change_rerenders_at_new_width(config):
    async def run():
        browser, _ = make_browser(config, width=64)
        widths = collect(browser, WIDTH_CHANGED)
        await browser.select(0)
        result = await browser.set_width(80)
        return widths, result

    widths, result = asyncio.run(run())
    assert widths == [{"old": 64, "new": 80}]
    assert result.raster.width == 80


def test_burst_of_changes_renders_twice_with_final_state(config):
    async def run():
        browser, _ = make_browser(config, width=64)
        first = browser.select(1)
        await asyncio.sleep(0)
        browser.set_width(90)
        browser.set_config(dataclasses.replace(config, background_color=(1, 2, 3)))
        last = browser.select(2)
        await asyncio.gather(first, last)
        result = await last
        await browser.scheduler.wait_idle()
        return browser, result

    browser, result = asyncio.run(run())
    assert browser.scheduler.render_count == 2
    assert result.recording.name == "c.wav"
    assert result.raster.width == 90


def test_decode_failure_propagates_and_is_not_cached(config):
    async def run():
        browser, decoder = make_browser(config, broken=("b.wav",))
        failures = collect(browser, RENDER_FAILED)
        await browser.select(0)
        with pytest.raises(AudioDecodeError):
            await browser.next()
        with pytest.raises(AudioDecodeError):
            await browser.request_render()
        result = await browser.next()
        return browser, decoder, failures, result

    browser, decoder, failures, result = asyncio.run(run())
    assert len(failures) == 2
    assert failures[0]["recording"].name == "b.wav"
    assert decoder.calls.count("b.wav") == 2
    assert not browser.cache.has_audio("b.wav")
    assert result.recording.name == "c.wav"


def test_audio_decoded_once_across_width_changes(config):
    async def run():
        browser, decoder = make_browser(config, width=50)
        await browser.select(0)
        await browser.set_width(60)
        await browser.set_width(70)
        return decoder

    decoder = asyncio.run(run())
    assert decoder.calls == ["a.wav"]


def test_markings_drawn_on_copy(config):
    overlay = OverlayConfig(field_colors={"onset": MAGENTA})

    async def run():
        browser, _ = make_browser(config, width=100, overlay=overlay)
        await browser.select(0)
        marked = await browser.mark(500, "onset")
        cleared = await browser.clear_markings()
        return marked, cleared

    marked, cleared = asyncio.run(run())
    assert (marked.raster.pixels[:, 50, :3] == MAGENTA).all()
    assert not (cleared.raster.pixels[:, 50, :3] == MAGENTA).all()


def test_mark_records_marking(config):
    async def run():
        browser, _ = make_browser(config, overlay=OverlayConfig(field_colors={"onset": MAGENTA}))
        await browser.mark(250, "onset")
        return browser

    browser = asyncio.run(run())
    assert [(m.field_name, m.time_ms) for m in browser.markings()] == [("onset", 250.0)]
    assert browser.markings(Recording("b.wav", "b.wav")) == []


def test_config_change_invalidates_rasters(config):
    async def run():
        browser, _ = make_browser(config, width=40)
        changes = collect(browser, CONFIG_CHANGED)
        before = await browser.select(0)
        assert len(browser.cache) == 1
        future = browser.set_config(dataclasses.replace(config, ideal_bin_size_in_hz=80))
        assert len(browser.cache) == 0
        after = await future
        return changes, before, after

    changes, before, after = asyncio.run(run())
    assert len(changes) == 1
    assert abs(after.raster.height - before.raster.height / 2) <= 1


def test_render_complete_event(config):
    async def run():
        browser, _ = make_browser(config)
        completed = collect(browser, RENDER_COMPLETE)
        result = await browser.select(0)
        return completed, result

    completed, result = asyncio.run(run())
    assert completed == [{"result": result}]


def test_no_recordings_renders_nothing(config):
    async def run():
        browser = RecordingBrowser([], config, 100)
        assert browser.selected is None
        return await browser.request_render()

    assert asyncio.run(run()) is None


def test_decodes_real_file_from_disk(tmp_path, config):
    path = tmp_path / "tone.wav"
    stereo = np.column_stack([sine_wave(440.0, 16000, 0.5), sine_wave(880.0, 16000, 0.5)])
    sf.write(str(path), stereo, 16000)

    async def run():
        browser = RecordingBrowser([Recording("tone.wav", str(path))], config, 120)
        return await browser.select(0)

    result = asyncio.run(run())
    assert result.data["channels"] == 2
    assert result.data["sample_rate"] == 16000
    assert result.raster.width == 120


def test_config_change_during_render_is_not_served_stale(config):
    flat = (ColorPoint(0, (9, 9, 9)),)

    async def run():
        browser, _ = make_browser(config, width=64)
        first = browser.select(1)
        await asyncio.sleep(0)
        last = browser.set_config(dataclasses.replace(config, color_scale=flat))
        before = await first
        after = await last
        again = await browser.request_render()
        return before, after, again

    before, after, again = asyncio.run(run())
    assert not (before.raster.pixels[..., :3] == 9).all()
    assert (after.raster.pixels[..., :3] == 9).all()
    assert (again.raster.pixels[..., :3] == 9).all()


def test_height_change_is_not_served_from_cache(config):
    async def run():
        browser, _ = make_browser(config, width=32)
        full = await browser.select(0)
        browser.height = 20
        cropped = await browser.request_render()
        return full, cropped

    full, cropped = asyncio.run(run())
    assert cropped.raster.height == 20
    np.testing.assert_array_equal(cropped.raster.pixels, full.raster.pixels[-20:])


def test_overlay_failure_reports_render_failed(config):
    async def run():
        browser, _ = make_browser(config, overlay=OverlayConfig(field_colors={}))
        failures = collect(browser, RENDER_FAILED)
        await browser.select(0)
        with pytest.raises(OverlayError, match="offset"):
            await browser.mark(100, "offset")
        return failures

    failures = asyncio.run(run())
    assert len(failures) == 1
    assert isinstance(failures[0]["error"], OverlayError)
    assert failures[0]["recording"].name == "a.wav"
