"""Speak AI replies through the audio player."""

from __future__ import annotations

import base64
import binascii
from typing import Protocol

import structlog

from core.audio import AudioDecodeError, parse_pcm_mime, pcm_to_wav

from .client import SpeechClip, StoreError
from .playback import AudioPlayer, PlaybackStatus

log = structlog.get_logger(__name__)

NO_AUDIO_MESSAGE = "No audio data received from AI for speaking."


class SpeechSource(Protocol):
    async def synthesize_speech(self, text: str) -> SpeechClip: ...


class VoiceController:
    def __init__(self, client: SpeechSource, player: AudioPlayer) -> None:
        self.client = client
        self.player = player

    async def speak(self, text: str) -> bool:
        """Fetch speech for ``text`` and play it from the start."""

        text = (text or "").strip()
        if not text:
            return False
        try:
            clip = await self.client.synthesize_speech(text)
        except StoreError as exc:
            log.warning("voice.synthesis_failed", error=str(exc))
            self.player.view.show_status(exc.message or NO_AUDIO_MESSAGE)
            return False
        try:
            pcm = base64.b64decode(clip.audio_data, validate=True)
            if not pcm:
                raise AudioDecodeError("Empty audio payload")
            wav = pcm_to_wav(pcm, parse_pcm_mime(clip.mime_type))
        except (binascii.Error, AudioDecodeError, ValueError) as exc:
            log.warning("voice.payload_invalid", mime_type=clip.mime_type, error=str(exc))
            self.player.view.show_status(NO_AUDIO_MESSAGE)
            return False
        return await self.player.play_clip(wav)

    async def pause_or_resume(self) -> PlaybackStatus:
        return await self.player.pause_or_resume()

    async def stop(self) -> None:
        await self.player.stop()


__all__ = ["NO_AUDIO_MESSAGE", "SpeechSource", "VoiceController"]
