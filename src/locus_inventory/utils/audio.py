from __future__ import annotations

import math
import sys
import threading
from io import BytesIO

try:
    import winsound  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - non-Windows platforms
    winsound = None  # type: ignore[assignment]

_ACCEPT_WAV_CACHE: bytes | None = None
_CACHE_LOCK = threading.Lock()


def _build_wave_bytes(
    *,
    frequency_hz: int = 1800,
    duration_ms: int = 140,
    sample_rate: int = 44100,
    amplitude: float = 0.35,
) -> bytes:
    import wave

    frame_count = int(sample_rate * (duration_ms / 1000.0))
    sine_wave = bytearray()
    for index in range(frame_count):
        value = int(32767 * amplitude * math.sin(2 * math.pi * frequency_hz * index / sample_rate))
        sine_wave.extend(value.to_bytes(2, byteorder="little", signed=True))

    buffer = BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(sine_wave)
    return buffer.getvalue()


def get_accept_wave() -> bytes | None:
    """Return the cached accept tone, building it on first use."""

    global _ACCEPT_WAV_CACHE
    with _CACHE_LOCK:
        if _ACCEPT_WAV_CACHE is None:
            try:
                _ACCEPT_WAV_CACHE = _build_wave_bytes()
            except Exception:
                _ACCEPT_WAV_CACHE = b""
    return _ACCEPT_WAV_CACHE or None


def _play_with_winsound() -> None:
    wave_bytes = get_accept_wave()
    if wave_bytes is None:
        return

    try:
        winsound.PlaySound(wave_bytes, winsound.SND_MEMORY)
    except Exception:
        try:
            winsound.Beep(1500, 120)
        except Exception:
            pass


def _play_fallback() -> None:
    stream = sys.stdout
    if stream is None or not stream.isatty():
        return
    try:
        stream.write("\a")
        stream.flush()
    except Exception:
        pass


def play_accept_tone() -> None:
    if winsound is not None:
        _play_with_winsound()
    else:
        _play_fallback()


def play_accept_tone_async() -> None:
    threading.Thread(target=play_accept_tone, daemon=True).start()
