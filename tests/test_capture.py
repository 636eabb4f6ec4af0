"""Tests for the display stream and the capture timer."""

import asyncio
import base64

import mss
import pytest
from mss.exception import ScreenShotError
from PIL import Image

from client.capture import CaptureLoop, DisplayStream, encode_jpeg_base64
from shared.errors import AcquisitionError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

MONITORS = [
    {"left": 0, "top": 0, "width": 8, "height": 2},
    {"left": 0, "top": 0, "width": 4, "height": 2},
    {"left": 4, "top": 0, "width": 4, "height": 2},
]


class _FakeShot:
    def __init__(self, width: int, height: int):
        self.size = (width, height)
        self.bgra = bytes([0, 0, 255, 255]) * (width * height)  # solid red


class _FakeMSS:
    def __init__(self, fail: bool = False):
        self._fail = fail

    def __enter__(self):
        if self._fail:
            raise ScreenShotError("no display")
        return self

    def __exit__(self, *exc):
        return False

    @property
    def monitors(self):
        return MONITORS

    def grab(self, monitor):
        return _FakeShot(monitor["width"], monitor["height"])


@pytest.fixture
def fake_mss(monkeypatch):
    monkeypatch.setattr(mss, "mss", lambda: _FakeMSS())


# ---------------------------------------------------------------------------
# DisplayStream
# ---------------------------------------------------------------------------


class TestDisplayStream:
    def test_open_and_grab(self, fake_mss) -> None:
        stream = DisplayStream.open(monitor_index=2, target_width=1920, target_height=1080)
        image = stream.grab()
        assert stream.is_live
        assert image.size == (4, 2)
        assert image.getpixel((0, 0)) == (255, 0, 0)

    def test_frames_fit_target_resolution(self, fake_mss) -> None:
        stream = DisplayStream.open(monitor_index=1, target_width=2, target_height=2)
        assert stream.grab().size == (2, 1)

    def test_unknown_monitor(self, fake_mss) -> None:
        with pytest.raises(AcquisitionError):
            DisplayStream.open(monitor_index=3)

    def test_no_display(self, monkeypatch) -> None:
        monkeypatch.setattr(mss, "mss", lambda: _FakeMSS(fail=True))
        with pytest.raises(AcquisitionError):
            DisplayStream.open()

    def test_grab_after_stop(self, fake_mss) -> None:
        stream = DisplayStream.open()
        stream.stop()
        stream.stop()
        assert not stream.is_live
        with pytest.raises(AcquisitionError):
            stream.grab()

    def test_grab_jpeg(self, fake_mss) -> None:
        data = base64.b64decode(DisplayStream.open().grab_jpeg_base64(quality=70))
        assert data[:2] == b"\xff\xd8"


def test_encode_jpeg_base64() -> None:
    image = Image.new("RGB", (64, 32), "blue")
    data = base64.b64decode(encode_jpeg_base64(image, quality=50))
    assert data[:2] == b"\xff\xd8"
    assert data[-2:] == b"\xff\xd9"


# ---------------------------------------------------------------------------
# CaptureLoop
# ---------------------------------------------------------------------------


class TestCaptureLoop:
    def test_invalid_fps(self) -> None:
        async def tick():
            pass

        with pytest.raises(ValueError):
            CaptureLoop(tick, fps=0)
        loop = CaptureLoop(tick, fps=1)
        with pytest.raises(ValueError):
            loop.set_fps(-2)
        for bad in (float("inf"), float("nan")):
            with pytest.raises(ValueError):
                CaptureLoop(tick, fps=bad)
            with pytest.raises(ValueError):
                loop.set_fps(bad)
        assert loop.fps == 1

    def test_ticks_until_stopped(self) -> None:
        ticks = []

        async def tick():
            ticks.append(1)

        async def scenario():
            loop = CaptureLoop(tick, fps=100)
            assert not loop.running
            loop.start()
            assert loop.running
            await asyncio.sleep(0.2)
            loop.stop()
            assert not loop.running
            count = len(ticks)
            await asyncio.sleep(0.1)
            return count

        count = asyncio.run(scenario())
        assert count > 0
        assert len(ticks) == count

    def test_first_tick_waits_one_interval(self) -> None:
        ticks = []

        async def tick():
            ticks.append(1)

        async def scenario():
            loop = CaptureLoop(tick, fps=2)
            loop.start()
            await asyncio.sleep(0.05)
            loop.stop()

        asyncio.run(scenario())
        assert ticks == []

    def test_ticks_overlap_slow_work(self) -> None:
        release = None
        started = []

        async def tick():
            started.append(1)
            await release.wait()

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            loop = CaptureLoop(tick, fps=100)
            loop.start()
            await asyncio.sleep(0.1)
            overlapping = loop.in_flight
            loop.stop()
            return overlapping

        assert asyncio.run(scenario()) > 1
        assert len(started) > 1

    def test_set_fps_restarts_timer_but_keeps_in_flight_ticks(self) -> None:
        release = None

        async def tick():
            await release.wait()

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            loop = CaptureLoop(tick, fps=50)
            loop.start()
            await asyncio.sleep(0.05)
            before = loop.in_flight
            loop.set_fps(0.5)
            after = loop.in_flight
            release.set()
            await asyncio.sleep(0.01)
            drained = loop.in_flight
            loop.stop()
            return before, after, drained, loop.interval

        before, after, drained, interval = asyncio.run(scenario())
        assert before > 0
        assert after == before
        assert drained == 0
        assert interval == pytest.approx(2.0)

    def test_set_fps_while_stopped_does_not_start(self) -> None:
        async def tick():
            pass

        loop = CaptureLoop(tick, fps=1)
        loop.set_fps(4)
        assert not loop.running
        assert loop.fps == 4
        assert loop.interval == pytest.approx(0.25)

    def test_tick_errors_do_not_stop_the_loop(self) -> None:
        ticks = []

        async def tick():
            ticks.append(1)
            raise RuntimeError("boom")

        async def scenario():
            loop = CaptureLoop(tick, fps=100)
            loop.start()
            await asyncio.sleep(0.15)
            loop.stop()

        asyncio.run(scenario())
        assert len(ticks) > 1
