# =============================================================================
# Realtime Screen Share - Session Lifecycle
# =============================================================================
# Provides the RealtimeSession class, the explicit context that owns every
# resource of one screen-sharing session (display stream, transport, capture
# timer, usage metrics), and the SessionController that guarantees at most one
# of them is live at a time.
#
# Startup order, each step awaiting the previous one:
#   1. Acquire the display
#   2. Fetch an ephemeral credential from the broker
#   3. Connect the transport (peer connection, data channel, offer/answer)
#   4. On channel open: send session.update, then start the capture loop
# A failure at any step releases whatever was acquired and leaves the
# session FAILED; the user retries by starting a new session.
# =============================================================================

import asyncio
import enum
import logging
import sys
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, TextIO, Union

from client.broker import BrokerClient
from client.capture import CaptureLoop, DisplayStream, check_fps
from client.events import (
    image_item_event,
    parse_event,
    response_create_event,
    session_update_event,
)
from client.metrics import SessionMetrics
from client.report import render_report, render_session_banner
from client.transport import RealtimeTransport
from config import Config
from shared.errors import AcquisitionError, MalformedEventError
from shared.schemas import (
    ErrorEvent,
    ResponseDoneEvent,
    TextDeltaEvent,
    TextDoneEvent,
    Usage,
)

logger = logging.getLogger(__name__)

# Event types worth an INFO log line when received
_LOGGED_EVENT_TYPES = {"session.created", "session.updated", "response.done", "error"}


class SessionState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    FAILED = "failed"  # retryable: start a new session
    STOPPED = "stopped"


class Transcript:
    """
    Incremental text output for the user plus the assistant's conversation
    history.

    Args:
        stream: Where text is written as it arrives (default: stdout).
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream if stream is not None else sys.stdout
        self.text = ""
        self.history: List[Dict[str, str]] = []

    def write(self, text: str) -> None:
        self.text += text
        self._stream.write(text)
        self._stream.flush()

    def add_assistant_turn(self, text: str) -> None:
        self.history.append({"role": "assistant", "content": text})
        self.write("\n\n")

    def clear_history(self) -> None:
        self.history = []


class RealtimeSession:
    """
    One user-initiated screen-sharing session, from start to stop.

    A session is single use: construct, :meth:`start`, :meth:`stop`, discard.

    Args:
        config:            The global Config instance.
        broker:            Client for the credential broker.
        transcript:        Output surface for responses and the report.
        display_factory:   Zero-argument callable returning an open display
                           stream (default: DisplayStream.open with config).
        transport_factory: Callable ``(on_open, on_message)`` returning an
                           unconnected transport (default: RealtimeTransport).
        clock:             Monotonic clock in seconds, used for latency.
    """

    def __init__(
        self,
        config: Config,
        broker: BrokerClient,
        transcript: Transcript,
        display_factory: Optional[Callable[[], DisplayStream]] = None,
        transport_factory: Optional[Callable] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._broker = broker
        self.transcript = transcript
        self._display_factory = display_factory or self._open_display
        self._transport_factory = transport_factory or self._create_transport
        self._clock = clock

        self.state = SessionState.IDLE
        self.metrics = SessionMetrics()
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None

        self._display: Optional[DisplayStream] = None
        self._transport: Optional[RealtimeTransport] = None
        self._capture = CaptureLoop(self.capture_tick, fps=config.capture_fps)
        self._request_started_at: Optional[float] = None
        self._awaiting_response = False

    # -----------------------------------------------------------------
    # Default factories
    # -----------------------------------------------------------------

    def _open_display(self) -> DisplayStream:
        return DisplayStream.open(
            monitor_index=self._config.capture_monitor,
            target_width=self._config.capture_width,
            target_height=self._config.capture_height,
        )

    def _create_transport(self, on_open, on_message) -> RealtimeTransport:
        return RealtimeTransport(
            api_base_url=self._config.api_base_url,
            model=self._config.realtime_model,
            channel_label=self._config.data_channel_label,
            on_open=on_open,
            on_message=on_message,
            audio_device=self._config.audio_device,
            audio_format=self._config.audio_format,
            timeout=self._config.http_timeout_seconds,
        )

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.ACTIVE)

    @property
    def capturing(self) -> bool:
        return self._capture.running

    @property
    def fps(self) -> float:
        return self._capture.fps

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the display, fetch a credential and connect the transport.

        Raises:
            AcquisitionError: The display or microphone is unavailable.
            UpstreamError: The credential fetch or the handshake failed.
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session cannot be started from state {self.state.value}")

        self.state = SessionState.STARTING
        self.started_at = datetime.now()

        try:
            self._display = await asyncio.to_thread(self._display_factory)
            if self.state is SessionState.STOPPED:
                await self._release()
                return

            ephemeral_key = await asyncio.to_thread(self._broker.create_session)
            if self.state is SessionState.STOPPED:
                await self._release()
                return

            transport = self._transport_factory(self._on_channel_open, self.handle_message)
            self._transport = transport
            await transport.connect(ephemeral_key)
        except Exception:
            await self._release()
            if self.state is SessionState.STOPPED:
                # Torn down mid-startup; the failure is a consequence of the stop
                logger.debug("Startup interrupted by stop", exc_info=True)
                return
            logger.error("Error starting session", exc_info=True)
            self.state = SessionState.FAILED
            raise

        if self.state is SessionState.STOPPED:
            # Stopped while the handshake was in flight
            await transport.close()
            await self._release()
            return

        self.state = SessionState.ACTIVE
        logger.info("Session active - sharing screen")

    def _on_channel_open(self) -> None:
        if self.state is SessionState.STOPPED or self._transport is None:
            return

        self._transport.send(session_update_event(self._config.session_instructions))
        self._capture.start()

    async def stop(self) -> Optional[str]:
        """
        End the session and release every resource.

        Renders the end-of-session banner and report into the transcript
        when at least one billable request happened.

        Returns:
            The report text, or None if nothing was billed or the session
            was already stopped.
        """
        if self.state is SessionState.STOPPED:
            return None

        was_started = self.state is not SessionState.IDLE
        self.ended_at = datetime.now()
        self.state = SessionState.STOPPED

        await self._release()
        self._request_started_at = None
        self._awaiting_response = False
        self.transcript.clear_history()

        if not was_started or self.metrics.total_requests == 0:
            return None

        report = render_report(self.metrics, self.started_at, self.ended_at)
        self.transcript.write(render_session_banner(self.metrics, self.started_at, self.ended_at))
        self.transcript.write(report)
        return report

    async def _release(self) -> None:
        self._capture.stop()

        if self._display is not None:
            self._display.stop()
            self._display = None

        if self._transport is not None:
            transport, self._transport = self._transport, None
            await transport.close()

    def set_fps(self, fps: float) -> None:
        """Change the capture rate; a running capture loop restarts at the new rate."""
        self._capture.set_fps(fps)

    # -----------------------------------------------------------------
    # Capture
    # -----------------------------------------------------------------

    async def capture_tick(self) -> None:
        """
        Send one screenshot as a conversation turn and request a response.

        A no-op unless the data channel is open. With single-flight enabled,
        also a no-op while a response is outstanding.
        """
        transport = self._transport
        display = self._display
        if transport is None or display is None or not transport.is_open:
            return

        if self._config.single_flight and self._awaiting_response:
            logger.debug("Skipping frame: previous response still outstanding")
            return

        try:
            jpeg_base64 = await asyncio.to_thread(display.grab_jpeg_base64, self._config.jpeg_quality)
        except (AcquisitionError, OSError) as exc:
            logger.error("Error capturing screenshot: %s", exc)
            self._request_started_at = None
            return

        if not transport.is_open:
            return

        transport.send(image_item_event(jpeg_base64, detail=self._config.image_detail))
        self._request_started_at = self._clock()
        self._awaiting_response = True
        transport.send(response_create_event())

    # -----------------------------------------------------------------
    # Inbound events
    # -----------------------------------------------------------------

    def handle_message(self, raw: Union[str, bytes]) -> None:
        """Dispatch one raw data-channel message."""
        try:
            event = parse_event(raw)
        except MalformedEventError as exc:
            logger.error("Error processing message: %s (raw message: %.200r)", exc, raw)
            return

        if event.type in _LOGGED_EVENT_TYPES:
            logger.info("Received event: %s", event.type)

        if isinstance(event, TextDeltaEvent):
            if event.delta:
                self.transcript.write(event.delta)
        elif isinstance(event, TextDoneEvent):
            self.transcript.add_assistant_turn(event.text)
        elif isinstance(event, ResponseDoneEvent):
            self._awaiting_response = False
            if event.usage is not None:
                self._record_usage(event.usage)
        elif isinstance(event, ErrorEvent):
            logger.error("Realtime API error: %s", event.error.message)
            self.transcript.write(f"\nError: {event.error.message}\n\n")
            self._request_started_at = None
            self._awaiting_response = False
        else:
            logger.debug("Ignoring event: %s", event.type)

    def _record_usage(self, usage: Usage) -> None:
        latency_ms = 0.0
        if self._request_started_at is not None:
            latency_ms = (self._clock() - self._request_started_at) * 1000.0
        self._request_started_at = None
        self.metrics.record_completion(usage, latency_ms=latency_ms)


class SessionController:
    """
    Owns the current session and guarantees at most one is live.

    Args:
        config:          The global Config instance.
        broker:          Client for the credential broker.
        transcript:      Output surface shared by successive sessions.
        session_factory: Callable returning a new RealtimeSession
                         (default: RealtimeSession with the arguments above).
    """

    def __init__(
        self,
        config: Config,
        broker: BrokerClient,
        transcript: Transcript,
        session_factory: Optional[Callable[[], RealtimeSession]] = None,
    ):
        self._config = config
        self._broker = broker
        self._transcript = transcript
        self._session_factory = session_factory or self._create_session
        self.current: Optional[RealtimeSession] = None

    def _create_session(self) -> RealtimeSession:
        return RealtimeSession(self._config, self._broker, self._transcript)

    async def start(self) -> RealtimeSession:
        """Stop any live session, then start a fresh one."""
        if self.current is not None and self.current.is_live:
            logger.info("Stopping previous session before starting a new one")
            await self.stop()

        self.current = self._session_factory()
        await self.current.start()
        return self.current

    async def stop(self) -> Optional[str]:
        if self.current is None:
            return None
        return await self.current.stop()

    def set_fps(self, fps: float) -> None:
        """Change the capture rate for the current and future sessions."""
        self._config.capture_fps = check_fps(fps)
        if self.current is not None and self.current.is_live:
            self.current.set_fps(fps)
