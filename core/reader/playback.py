"""Single-clip speech player with pause/resume.

The player owns at most one decoded buffer and one active source.  Pausing
stops the source but keeps the buffer, so resuming restarts the same buffer at
the remembered position without fetching or decoding again.
"""

from __future__ import annotations

import asyncio
import enum
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from core.audio import DecodedClip, decode_wav

log = structlog.get_logger(__name__)

SPEAKING_LABEL = "AI is speaking..."
PAUSED_LABEL = "AI speech paused..."
PLAYBACK_ERROR = "Error playing audio. Please try again."
STOP_ERROR = "Error stopping audio playback."


class PlaybackStatus(str, enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackTransitionError(RuntimeError):
    """Raised when an operation is not valid in the current playback state."""


_TRANSITIONS: dict[tuple[PlaybackStatus, str], PlaybackStatus] = {
    (PlaybackStatus.IDLE, "play"): PlaybackStatus.PLAYING,
    (PlaybackStatus.PLAYING, "play"): PlaybackStatus.PLAYING,
    (PlaybackStatus.PAUSED, "play"): PlaybackStatus.PLAYING,
    (PlaybackStatus.PLAYING, "pause"): PlaybackStatus.PAUSED,
    (PlaybackStatus.PAUSED, "resume"): PlaybackStatus.PLAYING,
    (PlaybackStatus.PLAYING, "end"): PlaybackStatus.IDLE,
    (PlaybackStatus.IDLE, "stop"): PlaybackStatus.IDLE,
    (PlaybackStatus.PLAYING, "stop"): PlaybackStatus.IDLE,
    (PlaybackStatus.PAUSED, "stop"): PlaybackStatus.IDLE,
}


def next_status(current: PlaybackStatus, event: str) -> PlaybackStatus:
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise PlaybackTransitionError(f"Cannot {event} while {current.value}") from None


@dataclass
class PlaybackState:
    decoded_buffer: Any = None
    is_playing: bool = False
    is_paused: bool = False
    resume_position: float = 0.0
    playback_start: float = 0.0
    generation: int = 0

    @property
    def status(self) -> PlaybackStatus:
        if self.is_playing and self.is_paused:
            raise PlaybackTransitionError("Playback cannot be playing and paused at once")
        if self.is_playing:
            return PlaybackStatus.PLAYING
        if self.is_paused:
            return PlaybackStatus.PAUSED
        return PlaybackStatus.IDLE


class AudioSource(Protocol):
    on_ended: Callable[[], None] | None

    def start(self, offset: float) -> None: ...

    def stop(self) -> None: ...

    def disconnect(self) -> None: ...


class AudioOutput(Protocol):
    """The audio output context: a clock, a decoder and a source factory."""

    @property
    def current_time(self) -> float: ...

    @property
    def state(self) -> str: ...

    async def resume(self) -> None: ...

    async def suspend(self) -> None: ...

    async def decode(self, data: bytes) -> Any: ...

    def create_source(self, buffer: Any) -> AudioSource: ...


class PlaybackView(Protocol):
    def show_controls(self, label: str) -> None: ...

    def hide_controls(self) -> None: ...

    def set_paused(self, paused: bool) -> None: ...

    def show_status(self, message: str) -> None: ...


class NullPlaybackView:
    def show_controls(self, label: str) -> None:
        return None

    def hide_controls(self) -> None:
        return None

    def set_paused(self, paused: bool) -> None:
        return None

    def show_status(self, message: str) -> None:
        return None


class AudioPlayer:
    """Idle -> Playing <-> Paused -> Idle, driven by UI events and source callbacks."""

    def __init__(
        self,
        output_factory: Callable[[], AudioOutput],
        view: PlaybackView | None = None,
    ) -> None:
        self._output_factory = output_factory
        self._output: AudioOutput | None = None
        self.view: PlaybackView = view or NullPlaybackView()
        self.state = PlaybackState()
        self._source: AudioSource | None = None
        self._release: Callable[[], None] | None = None

    @property
    def status(self) -> PlaybackStatus:
        return self.state.status

    @property
    def output(self) -> AudioOutput:
        if self._output is None:
            self._output = self._output_factory()
        return self._output

    def _teardown_source(self) -> None:
        source, self._source = self._source, None
        if source is None:
            return
        source.on_ended = None
        source.stop()
        source.disconnect()

    def _release_transient(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def _reset_to_idle(self) -> None:
        self._teardown_source()
        self.state.is_playing = False
        self.state.is_paused = False
        self.state.resume_position = 0.0
        self.state.decoded_buffer = None
        self._release_transient()
        self.view.hide_controls()
        self.view.set_paused(False)

    async def play(
        self,
        data: bytes | None = None,
        *,
        buffer: Any = None,
        release: Callable[[], None] | None = None,
    ) -> bool:
        """Start ``data`` (decoded first) or a retained ``buffer`` at ``resume_position``.

        ``release`` frees a transient resource tied to the clip; it runs on natural
        end, on stop and when the clip is replaced.  Returns ``False`` when the
        request was superseded or failed.
        """

        next_status(self.status, "play")
        self.state.generation += 1
        generation = self.state.generation
        try:
            output = self.output
            if output.state == "suspended":
                await output.resume()
            self._teardown_source()
            if buffer is None:
                if data is None:
                    raise ValueError("No audio data provided")
                self._release_transient()
                self._release = release
                decoded = await output.decode(data)
                if generation != self.state.generation:
                    log.info(
                        "playback.stale_decode",
                        generation=generation,
                        current=self.state.generation,
                    )
                    return False
                if self.state.is_paused:
                    # paused while decoding: keep the clip for resume, start nothing
                    self.state.decoded_buffer = decoded
                    log.info("playback.decoded_while_paused", generation=generation)
                    return False
            else:
                decoded = buffer
            self.state.decoded_buffer = decoded
            source = output.create_source(decoded)
            source.on_ended = self.on_source_ended
            self.state.playback_start = output.current_time
            source.start(self.state.resume_position)
            self._source = source
        except Exception as exc:
            if generation != self.state.generation:
                log.info("playback.stale_failure", generation=generation, error=str(exc))
                return False
            log.warning("playback.decode_failed", error=str(exc), exc_info=True)
            self._reset_to_idle()
            self.view.show_status(PLAYBACK_ERROR)
            return False

        self.state.is_playing = True
        self.state.is_paused = False
        self.view.show_controls(SPEAKING_LABEL)
        self.view.set_paused(False)
        log.info("playback.start", offset=self.state.resume_position, generation=generation)
        return True

    async def play_clip(self, data: bytes, *, release: Callable[[], None] | None = None) -> bool:
        """Play a new clip from the beginning, discarding any paused clip."""

        self.state.resume_position = 0.0
        self.state.is_paused = False
        return await self.play(data, release=release)

    def pause(self) -> None:
        next_status(self.status, "pause")
        self.state.is_paused = True
        self.state.is_playing = False
        source, self._source = self._source, None
        if source is not None:
            source.stop()
            source.on_ended = None
            elapsed = self.output.current_time - self.state.playback_start
            self.state.resume_position += max(0.0, elapsed)
            source.disconnect()
        self.view.set_paused(True)
        self.view.show_controls(PAUSED_LABEL)
        log.info("playback.pause", position=self.state.resume_position)

    async def resume(self) -> bool:
        next_status(self.status, "resume")
        return await self.play(buffer=self.state.decoded_buffer)

    async def pause_or_resume(self) -> PlaybackStatus:
        status = self.status
        if status is PlaybackStatus.PLAYING:
            self.pause()
        elif status is PlaybackStatus.PAUSED:
            await self.resume()
        return self.status

    async def stop(self) -> None:
        next_status(self.status, "stop")
        self.state.generation += 1
        self.state.is_paused = False
        self._teardown_source()
        output = self._output
        if output is not None and output.state != "suspended":
            try:
                await output.suspend()
            except Exception as exc:
                log.warning("playback.suspend_failed", error=str(exc))
                self.view.show_status(STOP_ERROR)
        self._reset_to_idle()
        log.info("playback.stop")

    def on_source_ended(self) -> None:
        """Natural end of the buffer, or the echo of a pause-triggered stop."""

        if self.state.is_paused:
            return
        if not self.state.is_playing:
            return
        next_status(self.status, "end")
        self._reset_to_idle()
        log.info("playback.ended")


class SoundDeviceOutput:
    """Audio output backed by a PortAudio stream (``sounddevice`` + ``numpy``)."""

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        try:
            import numpy as np
            import sounddevice as sd
        except ImportError as exc:  # pragma: no cover - optional extra
            raise RuntimeError(
                "Audio output needs the optional audio dependencies: "
                "pip install 'aibookchat[audio]'"
            ) from exc
        self._np = np
        self._sd = sd
        self._loop = loop or asyncio.get_running_loop()
        self._state = "running"
        self._clock_origin = time.monotonic()
        self._suspended_at: float | None = None

    @property
    def current_time(self) -> float:
        now = self._suspended_at if self._suspended_at is not None else time.monotonic()
        return now - self._clock_origin

    @property
    def state(self) -> str:
        return self._state

    async def resume(self) -> None:
        if self._suspended_at is not None:
            self._clock_origin += time.monotonic() - self._suspended_at
            self._suspended_at = None
        self._state = "running"

    async def suspend(self) -> None:
        if self._suspended_at is None:
            self._suspended_at = time.monotonic()
        self._state = "suspended"

    async def decode(self, data: bytes) -> DecodedClip:
        return await asyncio.to_thread(decode_wav, data)

    def create_source(self, buffer: DecodedClip) -> _SoundDeviceSource:
        return _SoundDeviceSource(self, buffer)


class _SoundDeviceSource:
    def __init__(self, output: SoundDeviceOutput, clip: DecodedClip) -> None:
        self.on_ended: Callable[[], None] | None = None
        self._output = output
        self._clip = clip
        self._stream: Any = None
        frames = output._np.frombuffer(clip.samples, dtype="<i2")
        self._frames = frames.reshape(-1, max(1, clip.channels))
        self._position = 0

    def start(self, offset: float) -> None:
        sd = self._output._sd
        self._position = min(len(self._frames), int(offset * self._clip.sample_rate))
        self._stream = sd.OutputStream(
            samplerate=self._clip.sample_rate,
            channels=self._frames.shape[1],
            dtype="int16",
            callback=self._fill,
            finished_callback=self._finished,
        )
        self._stream.start()

    def _fill(self, outdata: Any, frames: int, _time: Any, _status: Any) -> None:
        chunk = self._frames[self._position : self._position + frames]
        outdata[: len(chunk)] = chunk
        outdata[len(chunk) :] = 0
        self._position += len(chunk)
        if len(chunk) < frames:
            raise self._output._sd.CallbackStop

    def _finished(self) -> None:
        self._output._loop.call_soon_threadsafe(self._notify_ended)

    def _notify_ended(self) -> None:
        callback = self.on_ended
        if callback is not None:
            callback()

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()

    def disconnect(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()


__all__ = [
    "AudioOutput",
    "AudioPlayer",
    "AudioSource",
    "NullPlaybackView",
    "PlaybackState",
    "PlaybackStatus",
    "PlaybackTransitionError",
    "PlaybackView",
    "SoundDeviceOutput",
    "next_status",
]
