# =============================================================================
# Realtime Screen Share - Screen Capture Module
# =============================================================================
# Provides the DisplayStream class, a handle on one monitor grabbed with the
# mss library, and the CaptureLoop class, a recurring asyncio timer that fires
# a capture tick at a configurable frame rate. Ticks run as independent tasks
# so a slow encode or an outstanding response never delays the next tick.
# =============================================================================

import asyncio
import base64
import io
import logging
import math
from typing import Awaitable, Callable, Dict, Optional, Set

import mss
from mss.exception import ScreenShotError
from PIL import Image

from shared.errors import AcquisitionError

logger = logging.getLogger(__name__)


def encode_jpeg_base64(image: Image.Image, quality: int = 70) -> str:
    """
    Compress an image to JPEG and return it base64-encoded.

    Args:
        image:   PIL RGB Image.
        quality: JPEG quality (1-95); lower values trade detail for size.

    Returns:
        str: ASCII base64 of the JPEG bytes, without a data-URL prefix.
    """
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class DisplayStream:
    """
    A live handle on one display, acquired once per session.

    Use :meth:`open` to acquire; the handle stays live until :meth:`stop`.
    Frames are downscaled to fit the target resolution hint, preserving
    aspect ratio.

    Args:
        monitor:       mss monitor geometry dict (left, top, width, height).
        monitor_index: Index of the monitor (1 = primary).
        target_width:  Width hint for captured frames.
        target_height: Height hint for captured frames.
    """

    def __init__(
        self,
        monitor: Dict[str, int],
        monitor_index: int = 1,
        target_width: int = 1920,
        target_height: int = 1080,
    ):
        self._monitor = monitor
        self._monitor_index = monitor_index
        self._target_size = (target_width, target_height)
        self._live = True

    @classmethod
    def open(
        cls,
        monitor_index: int = 1,
        target_width: int = 1920,
        target_height: int = 1080,
    ) -> "DisplayStream":
        """
        Acquire a display for capture.

        Raises:
            AcquisitionError: If no display is available or the monitor
                index does not exist.
        """
        try:
            with mss.mss() as sct:
                # mss monitor list: index 0 = all monitors combined, 1+ = individual
                monitors = sct.monitors
        except ScreenShotError as exc:
            raise AcquisitionError(f"Display capture unavailable: {exc}") from exc

        if monitor_index < 0 or monitor_index >= len(monitors):
            raise AcquisitionError(
                f"Monitor {monitor_index} not found ({len(monitors) - 1} available)"
            )

        monitor = dict(monitors[monitor_index])
        logger.info(
            "Acquired display %d (%dx%d)",
            monitor_index,
            monitor["width"],
            monitor["height"],
        )
        return cls(monitor, monitor_index, target_width, target_height)

    @property
    def is_live(self) -> bool:
        return self._live

    def grab(self) -> Image.Image:
        """
        Capture a single frame of the display.

        Returns:
            PIL.Image.Image: The frame in RGB, no larger than the target size.

        Raises:
            AcquisitionError: If the stream was stopped or the grab failed.
        """
        if not self._live:
            raise AcquisitionError("Display stream has been stopped")

        try:
            with mss.mss() as sct:
                raw = sct.grab(self._monitor)
        except ScreenShotError as exc:
            raise AcquisitionError(f"Frame grab failed: {exc}") from exc

        # mss returns BGRA; convert to PIL Image then to RGB
        image = Image.frombytes("RGB", raw.size, raw.bgra, "raw", "BGRX")
        image.thumbnail(self._target_size)

        logger.debug(
            "Captured frame: %dx%d from monitor %d",
            image.width,
            image.height,
            self._monitor_index,
        )
        return image

    def grab_jpeg_base64(self, quality: int = 70) -> str:
        """Capture one frame and return it as base64 JPEG."""
        return encode_jpeg_base64(self.grab(), quality)

    def stop(self) -> None:
        """Release the display. Further grabs raise AcquisitionError."""
        if self._live:
            self._live = False
            logger.info("Display %d released.", self._monitor_index)


def check_fps(fps: float) -> float:
    """Return ``fps`` if it is a finite positive rate, else raise ValueError."""
    if not math.isfinite(fps) or fps <= 0:
        raise ValueError(f"fps must be a finite positive number, got {fps}")
    return fps


def _interval_for(fps: float) -> float:
    return 1.0 / check_fps(fps)


class CaptureLoop:
    """
    Recurring capture timer.

    Fires ``tick`` every ``1 / fps`` seconds, the first time one interval
    after :meth:`start`. Each tick runs as its own task and is not awaited
    by the timer, so ticks may overlap.

    Args:
        tick: Coroutine function invoked on every timer fire.
        fps:  Frames per second.
    """

    def __init__(self, tick: Callable[[], Awaitable[None]], fps: float = 1.0):
        self._tick = tick
        self._interval = _interval_for(fps)
        self._fps = fps
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> None:
        """Start (or restart) the timer. Must be called from the event loop."""
        if self._timer is not None:
            self._timer.cancel()

        logger.info(
            "Starting screen capture at %g FPS (%.0fms interval)",
            self._fps,
            self._interval * 1000.0,
        )
        self._timer = asyncio.get_running_loop().create_task(self._run(self._interval))

    def set_fps(self, fps: float) -> None:
        """
        Change the frame rate.

        A running timer is restarted with the new interval; ticks already in
        flight are left to finish.
        """
        self._interval = _interval_for(fps)
        self._fps = fps
        if self.running:
            self.start()

    def stop(self) -> None:
        """Cancel the timer and every tick still in flight."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("Capture timer stopped.")

        for task in list(self._in_flight):
            task.cancel()
        self._in_flight.clear()

    async def _run(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            next_fire += interval
            # Skip missed fires instead of bursting after a stall
            if next_fire < loop.time():
                next_fire = loop.time() + interval

            task = loop.create_task(self._run_tick())
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _run_tick(self) -> None:
        try:
            await self._tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error during frame capture")
