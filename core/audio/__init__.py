"""Audio container helpers."""

from .wav import (
    DEFAULT_SAMPLE_RATE,
    AudioDecodeError,
    DecodedClip,
    decode_wav,
    parse_pcm_mime,
    pcm_to_wav,
)

__all__ = [
    "AudioDecodeError",
    "DEFAULT_SAMPLE_RATE",
    "DecodedClip",
    "decode_wav",
    "parse_pcm_mime",
    "pcm_to_wav",
]
