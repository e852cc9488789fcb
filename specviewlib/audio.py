from __future__ import annotations

import io
import logging
import os

import numpy as np
import soundfile as sf

from .models import AudioSource, Recording
from .utils import recording_sort_key

log = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".wav", ".flac", ".ogg", ".aif", ".aiff", ".mp3")


class AudioDecodeError(Exception):
    """Raised when an audio file cannot be decoded."""


def format_duration(samples: int, samplerate: int) -> str:
    if samplerate <= 0:
        return "00:00.000"
    seconds = samples / samplerate
    m = int(seconds // 60)
    s = int(seconds % 60)
    ms = int((seconds % 1) * 1000)
    return f"{m:02d}:{s:02d}.{ms:03d}"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def load_audio(source: str | os.PathLike | io.BytesIO) -> AudioSource:
    """Decode a file (path or in-memory bytes) into an :class:`AudioSource`.

    Samples are float32 and split per channel.  Any decoder failure is
    re-raised as :class:`AudioDecodeError`.
    """
    try:
        data, samplerate = sf.read(source, dtype="float32", always_2d=True)
    except Exception as exc:
        raise AudioDecodeError(f"Cannot decode {_describe(source)}: {exc}") from exc
    if samplerate <= 0:
        raise AudioDecodeError(f"Invalid sample rate {samplerate} in {_describe(source)}")
    source_obj = AudioSource.from_array(data, samplerate)
    log.debug("Decoded %s: %d ch, %d Hz, %s", _describe(source),
              source_obj.channel_count, samplerate,
              format_duration(source_obj.frame_count, samplerate))
    return source_obj


def decode_bytes(raw: bytes) -> AudioSource:
    """Decode a file's raw bytes."""
    return load_audio(io.BytesIO(raw))


def _describe(source) -> str:
    if isinstance(source, io.BytesIO):
        return "<bytes>"
    return os.fspath(source)


def write_audio(path: str, audio: AudioSource, subtype: str | None = None) -> None:
    """Write an AudioSource back to disk (used for fixtures and exports)."""
    data = np.column_stack(audio.channels)
    sf.write(path, data, audio.sample_rate, subtype=subtype)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def discover_recordings(source_dir: str, recursive: bool = False) -> list[Recording]:
    """
    List audio files in *source_dir*, sorted with :func:`recording_sort_key`.

    When *recursive* is True, subdirectories are scanned and names become
    relative paths (e.g. ``"takes/take 2.wav"``).
    """
    if not os.path.isdir(source_dir):
        raise ValueError(f"Directory not found: {source_dir}")

    names: list[str] = []
    if recursive:
        for root, _dirs, files in os.walk(source_dir):
            for fname in files:
                if os.path.splitext(fname)[1].lower() in AUDIO_EXTENSIONS:
                    rel = os.path.relpath(os.path.join(root, fname), source_dir)
                    names.append(rel.replace(os.sep, "/"))
    else:
        names = [
            f for f in os.listdir(source_dir)
            if os.path.splitext(f)[1].lower() in AUDIO_EXTENSIONS
            and os.path.isfile(os.path.join(source_dir, f))
        ]
    names.sort(key=recording_sort_key)
    return [Recording(name=n, path=os.path.join(source_dir, n)) for n in names]
