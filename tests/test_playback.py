from __future__ import annotations

import asyncio
from typing import Any

import pytest

from core.reader.playback import (
    PAUSED_LABEL,
    PLAYBACK_ERROR,
    SPEAKING_LABEL,
    AudioPlayer,
    PlaybackStatus,
    PlaybackTransitionError,
    next_status,
)


class FakeSource:
    def __init__(self, buffer: Any) -> None:
        self.buffer = buffer
        self.on_ended = None
        self.started_at: list[float] = []
        self.stopped = False
        self.disconnected = False

    def start(self, offset: float) -> None:
        self.started_at.append(offset)

    def stop(self) -> None:
        self.stopped = True
        # a real source reports "ended" after an explicit stop as well
        if self.on_ended is not None:
            self.on_ended()

    def disconnect(self) -> None:
        self.disconnected = True

    def finish(self) -> None:
        if self.on_ended is not None:
            self.on_ended()


class FakeOutput:
    def __init__(self) -> None:
        self.current_time = 0.0
        self.state = "running"
        self.decoded: list[bytes] = []
        self.sources: list[FakeSource] = []
        self.gates: dict[bytes, asyncio.Event] = {}

    async def resume(self) -> None:
        self.state = "running"

    async def suspend(self) -> None:
        self.state = "suspended"

    async def decode(self, data: bytes) -> Any:
        gate = self.gates.get(data)
        if gate is not None:
            await gate.wait()
        if data == b"corrupt":
            raise ValueError("cannot decode")
        self.decoded.append(data)
        return ("buffer", data)

    def create_source(self, buffer: Any) -> FakeSource:
        source = FakeSource(buffer)
        self.sources.append(source)
        return source


class RecordingView:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.visible = False
        self.paused = False
        self.label: str | None = None

    def show_controls(self, label: str) -> None:
        self.visible = True
        self.label = label
        self.events.append(("show", label))

    def hide_controls(self) -> None:
        self.visible = False
        self.events.append(("hide", None))

    def set_paused(self, paused: bool) -> None:
        self.paused = paused

    def show_status(self, message: str) -> None:
        self.events.append(("status", message))


@pytest.fixture
def output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def view() -> RecordingView:
    return RecordingView()


@pytest.fixture
def player(output: FakeOutput, view: RecordingView) -> AudioPlayer:
    return AudioPlayer(lambda: output, view)


async def test_play_starts_from_zero(player, output, view):
    assert await player.play_clip(b"clip")

    assert player.status is PlaybackStatus.PLAYING
    assert output.sources[0].started_at == [0.0]
    assert view.visible and view.label == SPEAKING_LABEL


async def test_pause_then_resume_continues_without_redecoding(player, output, view):
    output.current_time = 10.0
    await player.play_clip(b"clip")
    output.current_time = 13.0

    player.pause()

    assert player.status is PlaybackStatus.PAUSED
    assert player.state.resume_position == pytest.approx(3.0)
    assert player.state.decoded_buffer == ("buffer", b"clip")
    assert view.paused and view.label == PAUSED_LABEL
    assert output.sources[0].stopped and output.sources[0].disconnected

    output.current_time = 50.0
    assert await player.resume()

    assert player.status is PlaybackStatus.PLAYING
    assert output.decoded == [b"clip"]
    assert output.sources[1].buffer == ("buffer", b"clip")
    assert output.sources[1].started_at == [pytest.approx(3.0)]


async def test_pause_accumulates_over_several_segments(player, output):
    await player.play_clip(b"clip")
    output.current_time = 2.0
    player.pause()
    await player.resume()
    output.current_time = 3.5
    player.pause()

    assert player.state.resume_position == pytest.approx(3.5)


async def test_stop_event_from_pause_is_ignored(player, output, view):
    await player.play_clip(b"clip")
    output.current_time = 1.0

    player.pause()

    assert player.status is PlaybackStatus.PAUSED
    assert player.state.decoded_buffer is not None
    assert view.visible


async def test_natural_end_resets_to_idle(player, output, view):
    released: list[str] = []
    await player.play_clip(b"clip", release=lambda: released.append("tmp"))

    output.sources[0].finish()

    assert player.status is PlaybackStatus.IDLE
    assert player.state.decoded_buffer is None
    assert player.state.resume_position == 0.0
    assert not view.visible
    assert released == ["tmp"]


async def test_stop_from_paused_resets_everything(player, output, view):
    released: list[str] = []
    await player.play_clip(b"clip", release=lambda: released.append("tmp"))
    output.current_time = 4.0
    player.pause()

    await player.stop()

    assert player.status is PlaybackStatus.IDLE
    assert player.state.resume_position == 0.0
    assert player.state.decoded_buffer is None
    assert output.state == "suspended"
    assert not view.visible and not view.paused
    assert released == ["tmp"]


async def test_play_resumes_suspended_output(player, output):
    await player.play_clip(b"one")
    await player.stop()
    assert output.state == "suspended"

    assert await player.play_clip(b"two")

    assert output.state == "running"
    assert player.status is PlaybackStatus.PLAYING


async def test_new_clip_replaces_current_without_spurious_end(player, output, view):
    await player.play_clip(b"one")
    first = output.sources[0]

    await player.play_clip(b"two")

    assert first.stopped and first.disconnected
    assert first.on_ended is None
    assert player.status is PlaybackStatus.PLAYING
    assert player.state.decoded_buffer == ("buffer", b"two")


async def test_new_clip_while_paused_starts_from_zero(player, output):
    await player.play_clip(b"one")
    output.current_time = 2.0
    player.pause()

    await player.play_clip(b"two")

    assert output.sources[-1].started_at == [0.0]
    assert player.status is PlaybackStatus.PLAYING


async def test_decode_failure_reports_status_and_goes_idle(player, output, view):
    assert not await player.play_clip(b"corrupt")

    assert player.status is PlaybackStatus.IDLE
    assert ("status", PLAYBACK_ERROR) in view.events
    assert not view.visible


async def test_stale_decode_is_discarded(player, output):
    gate = asyncio.Event()
    output.gates[b"slow"] = gate

    slow = asyncio.create_task(player.play_clip(b"slow"))
    await asyncio.sleep(0)
    assert await player.play_clip(b"fast")
    gate.set()

    assert await slow is False
    assert player.state.decoded_buffer == ("buffer", b"fast")
    assert len(output.sources) == 1


async def test_stop_during_decode_wins(player, output, view):
    gate = asyncio.Event()
    output.gates[b"slow"] = gate

    pending = asyncio.create_task(player.play_clip(b"slow"))
    await asyncio.sleep(0)
    await player.stop()
    gate.set()

    assert await pending is False
    assert player.status is PlaybackStatus.IDLE
    assert output.sources == []


async def test_pause_during_decode_keeps_clip_paused(player, output, view):
    await player.play_clip(b"first")
    gate = asyncio.Event()
    output.gates[b"second"] = gate

    pending = asyncio.create_task(player.play_clip(b"second"))
    await asyncio.sleep(0)
    assert await player.pause_or_resume() is PlaybackStatus.PAUSED
    gate.set()

    assert await pending is False
    assert player.status is PlaybackStatus.PAUSED
    assert player.state.decoded_buffer == ("buffer", b"second")
    assert len(output.sources) == 1
    assert view.paused and view.label == PAUSED_LABEL

    assert await player.pause_or_resume() is PlaybackStatus.PLAYING
    assert output.sources[-1].buffer == ("buffer", b"second")
    assert output.sources[-1].started_at == [0.0]
    assert output.decoded == [b"first", b"second"]


async def test_pause_or_resume_toggles(player, output):
    await player.play_clip(b"clip")

    assert await player.pause_or_resume() is PlaybackStatus.PAUSED
    assert await player.pause_or_resume() is PlaybackStatus.PLAYING


async def test_illegal_transitions_raise(player):
    with pytest.raises(PlaybackTransitionError):
        player.pause()
    with pytest.raises(PlaybackTransitionError):
        await player.resume()
    with pytest.raises(PlaybackTransitionError):
        next_status(PlaybackStatus.PAUSED, "end")


async def test_pause_or_resume_when_idle_is_noop(player, output):
    assert await player.pause_or_resume() is PlaybackStatus.IDLE
    assert output.sources == []
