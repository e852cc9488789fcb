import numpy as np
import pytest

from specviewlib.models import AudioSource, ColorPoint, SpectrogramConfig


def sine_wave(freq: float, sr: int, duration: float, amplitude: float = 1.0) -> np.ndarray:
    t = np.linspace(0, duration, int(sr * duration), endpoint=False)
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def mono_source(samples: np.ndarray, sr: int) -> AudioSource:
    return AudioSource(channels=(np.asarray(samples, dtype=np.float32),),
                       sample_rate=sr, frame_count=len(samples))


GRAYSCALE = (ColorPoint(0, (0, 0, 0)), ColorPoint(255, (255, 255, 255)))


@pytest.fixture
def config():
    return SpectrogramConfig(
        ideal_window_size_in_ms=20.0,
        ideal_step_size_in_ms=10.0,
        ideal_bin_size_in_hz=40.0,
        ideal_max_frequency_in_hz=8000.0,
        color_scale=GRAYSCALE,
        background_color=(0, 0, 255),
    )


@pytest.fixture
def one_second_sine():
    return mono_source(sine_wave(1000.0, 44100, 1.0, amplitude=0.01), 44100)
