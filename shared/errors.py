# =============================================================================
# Realtime Screen Share - Error Taxonomy
# =============================================================================
# Exceptions raised by the broker and the session client. Acquisition and
# upstream failures abort session startup; malformed events are logged and
# dropped. Errors reported by the remote API arrive as events, not exceptions.
# =============================================================================

from typing import Optional


class ScreenShareError(Exception):
    """Base class for all Realtime Screen Share errors."""


class AcquisitionError(ScreenShareError):
    """A local media source (display or microphone) could not be acquired."""


class UpstreamError(ScreenShareError):
    """
    A call to a remote service failed.

    Covers the broker's session-mint call, the client's credential fetch
    and the transport's offer/answer exchange.

    Attributes:
        status_code: HTTP status returned by the remote side, if any.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedEventError(ScreenShareError):
    """A data-channel payload could not be parsed into a known event shape."""
