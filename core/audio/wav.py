"""Helpers for wrapping synthesized PCM into WAV and decoding it back."""

from __future__ import annotations

import io
import re
import wave
from dataclasses import dataclass

DEFAULT_SAMPLE_RATE = 24000
SAMPLE_WIDTH_BYTES = 2
CHANNELS = 1

_RATE_PATTERN = re.compile(r"rate\s*=\s*(\d+)", re.IGNORECASE)


class AudioDecodeError(ValueError):
    """Raised when audio bytes cannot be decoded into samples."""


@dataclass(frozen=True)
class DecodedClip:
    """Decoded audio ready for playback."""

    samples: bytes
    sample_rate: int
    channels: int
    sample_width: int

    @property
    def frame_count(self) -> int:
        frame_size = self.channels * self.sample_width
        if frame_size <= 0:
            return 0
        return len(self.samples) // frame_size

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / float(self.sample_rate)


def parse_pcm_mime(mime_type: str | None) -> int:
    """Return the sample rate encoded in an ``audio/L16;rate=...`` mime type."""

    if not mime_type:
        return DEFAULT_SAMPLE_RATE
    match = _RATE_PATTERN.search(mime_type)
    if match is None:
        return DEFAULT_SAMPLE_RATE
    rate = int(match.group(1))
    return rate if rate > 0 else DEFAULT_SAMPLE_RATE


def pcm_to_wav(pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap signed 16-bit little-endian mono PCM in a RIFF/WAVE container."""

    if len(pcm) % SAMPLE_WIDTH_BYTES:
        # drop a dangling half sample
        pcm = pcm[: len(pcm) - (len(pcm) % SAMPLE_WIDTH_BYTES)]
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(CHANNELS)
        wav_file.setsampwidth(SAMPLE_WIDTH_BYTES)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return buffer.getvalue()


def decode_wav(data: bytes) -> DecodedClip:
    if not data:
        raise AudioDecodeError("No audio data provided")
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            channels = wav_file.getnchannels()
            sample_width = wav_file.getsampwidth()
            sample_rate = wav_file.getframerate()
            samples = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError) as exc:
        raise AudioDecodeError(f"Unable to decode audio: {exc}") from exc
    return DecodedClip(
        samples=samples,
        sample_rate=sample_rate,
        channels=channels,
        sample_width=sample_width,
    )


__all__ = [
    "AudioDecodeError",
    "DEFAULT_SAMPLE_RATE",
    "DecodedClip",
    "decode_wav",
    "parse_pcm_mime",
    "pcm_to_wav",
]
