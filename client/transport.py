# =============================================================================
# Realtime Screen Share - Realtime Transport
# =============================================================================
# Provides the RealtimeTransport class wrapping an aiortc peer connection and
# its "oai-events" data channel. The remote API only accepts connections that
# carry at least one media track, so an audio track is attached; it is never
# used as input.
#
# Connection sequence:
#   1. Create the peer connection and attach the audio track
#   2. Open the data channel and register its handlers
#   3. Create the SDP offer and POST it to the realtime endpoint using the
#      ephemeral credential as bearer token
#   4. Apply the returned SDP answer; the channel opens once ICE/DTLS finish
# =============================================================================

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Union

import requests
from aiortc import AudioStreamTrack, MediaStreamTrack, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaPlayer
from av.error import FFmpegError

from shared.errors import AcquisitionError, UpstreamError

logger = logging.getLogger(__name__)


class RealtimeTransport:
    """
    Peer connection plus data channel to the remote realtime API.

    Args:
        api_base_url:  Base URL of the remote API.
        model:         Realtime model identifier.
        channel_label: Data channel label.
        on_open:       Called (no arguments) when the data channel opens.
        on_message:    Called with each raw message received on the channel.
        audio_device:  Optional input device for the audio track, opened with
                       aiortc's MediaPlayer. Empty means a silent track.
        audio_format:  Optional MediaPlayer format (e.g., "pulse", "avfoundation").
        timeout:       Seconds to wait for the offer/answer exchange.
    """

    def __init__(
        self,
        api_base_url: str,
        model: str,
        channel_label: str,
        on_open: Callable[[], None],
        on_message: Callable[[Union[str, bytes]], None],
        audio_device: str = "",
        audio_format: str = "",
        timeout: float = 30.0,
    ):
        self._realtime_url = f"{api_base_url.rstrip('/')}/realtime"
        self._model = model
        self._channel_label = channel_label
        self._on_open = on_open
        self._on_message = on_message
        self._audio_device = audio_device
        self._audio_format = audio_format
        self._timeout = timeout

        self._pc: Optional[RTCPeerConnection] = None
        self._channel = None
        self._player: Optional[MediaPlayer] = None

    @property
    def is_open(self) -> bool:
        return self._channel is not None and self._channel.readyState == "open"

    def _acquire_audio_track(self) -> MediaStreamTrack:
        if not self._audio_device:
            return AudioStreamTrack()

        try:
            self._player = MediaPlayer(self._audio_device, format=self._audio_format or None)
        except (FFmpegError, OSError) as exc:
            raise AcquisitionError(f"Microphone unavailable ({self._audio_device}): {exc}") from exc

        if self._player.audio is None:
            self._release_player()
            raise AcquisitionError(f"Device {self._audio_device} has no audio track")
        return self._player.audio

    def _release_player(self) -> None:
        player, self._player = self._player, None
        if player is None:
            return
        for track in (player.audio, player.video):
            if track is not None:
                track.stop()

    async def connect(self, ephemeral_key: str) -> None:
        """
        Establish the peer connection and data channel.

        Raises:
            AcquisitionError: If the audio track cannot be acquired.
            UpstreamError: If the offer/answer exchange fails.
        """
        self._pc = RTCPeerConnection()
        self._pc.addTrack(self._acquire_audio_track())

        channel = self._pc.createDataChannel(self._channel_label)
        channel.on("open", self._handle_open)
        channel.on("message", self._on_message)
        self._channel = channel

        offer = await self._pc.createOffer()
        await self._pc.setLocalDescription(offer)

        answer_sdp = await asyncio.to_thread(
            self._exchange_sdp, self._pc.localDescription.sdp, ephemeral_key
        )
        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        logger.info("Peer connection negotiated with %s (model=%s)", self._realtime_url, self._model)

    def _handle_open(self) -> None:
        logger.info("Data channel '%s' opened", self._channel_label)
        self._on_open()

    def _exchange_sdp(self, offer_sdp: str, ephemeral_key: str) -> str:
        try:
            response = requests.post(
                self._realtime_url,
                params={"model": self._model},
                data=offer_sdp,
                headers={
                    "Authorization": f"Bearer {ephemeral_key}",
                    "Content-Type": "application/sdp",
                },
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"SDP exchange failed: {exc}") from exc

        if not response.ok:
            raise UpstreamError(
                f"SDP exchange failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        return response.text

    def send(self, event: Dict[str, Any]) -> None:
        """JSON-encode an event and send it on the data channel."""
        if not self.is_open:
            raise RuntimeError("Data channel is not open")
        self._channel.send(json.dumps(event))

    async def close(self) -> None:
        """Close the data channel and peer connection. Safe to call twice."""
        self._release_player()

        if self._pc is not None:
            pc, self._pc = self._pc, None
            self._channel = None
            await pc.close()
            logger.info("Peer connection closed.")
