# =============================================================================
# Realtime Screen Share - Centralized Configuration
# =============================================================================
# Provides a single Config dataclass containing all tunable parameters for
# both the session client and the credential broker. Parameters are
# overridable via environment variables with the SCREENSHARE_ prefix
# (e.g., SCREENSHARE_CAPTURE_FPS=2.0). The API secret and the listen port are
# read from OPENAI_API_KEY and PORT respectively.
# =============================================================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Project root directory (where this file lives)
_PROJECT_ROOT = str(Path(__file__).parent.resolve())

_BROKER_INSTRUCTIONS = (
    "You are a helpful AI assistant that can analyze screen content in "
    "real-time. When you receive images, describe what you see in detail, "
    "identify any text or UI elements, and provide insights about what the "
    "user might be working on or viewing. Be concise but informative."
)

_SESSION_INSTRUCTIONS = (
    "You are a helpful AI assistant that can see and analyze what's on the "
    "user's screen. Describe what you see and provide insights about the "
    "content displayed."
)


def _parse_bool(value: str) -> bool:
    """Interpret common truthy strings from the environment."""
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """
    Centralized configuration for the Realtime Screen Share system.

    All fields can be overridden via environment variables prefixed with
    SCREENSHARE_.
    """

    # -- Remote realtime API --
    openai_api_key: str = field(default_factory=lambda: os.environ.get("OPENAI_API_KEY", ""))
    api_base_url: str = "https://api.openai.com/v1"
    realtime_model: str = "gpt-realtime"
    voice: str = "sage"
    broker_instructions: str = _BROKER_INSTRUCTIONS
    session_instructions: str = _SESSION_INSTRUCTIONS
    http_timeout_seconds: float = 30.0

    # -- Broker (HTTP server) --
    server_host: str = "127.0.0.1"
    server_port: int = field(default_factory=lambda: int(os.environ.get("PORT", "3000")))
    static_dir: str = field(default_factory=lambda: os.path.join(_PROJECT_ROOT, "static"))

    # -- Screen Capture --
    capture_fps: float = 1.0
    capture_monitor: int = 1
    capture_width: int = 1920
    capture_height: int = 1080
    jpeg_quality: int = 70
    image_detail: str = "low"

    # -- Transport --
    data_channel_label: str = "oai-events"
    audio_device: str = ""  # empty = silent track
    audio_format: str = ""
    single_flight: bool = False

    # -- Derived (computed post-init) --
    broker_url: str = field(init=False)

    def __post_init__(self):
        """Apply environment variable overrides and compute derived fields."""
        self._apply_env_overrides()
        self.broker_url = f"http://{self.server_host}:{self.server_port}"

    def _apply_env_overrides(self):
        """
        Override config fields from environment variables.

        Looks for SCREENSHARE_<FIELD_NAME_UPPERCASE> environment variables and
        applies them with appropriate type conversion.
        """
        field_types = {
            "api_base_url": str,
            "realtime_model": str,
            "voice": str,
            "broker_instructions": str,
            "session_instructions": str,
            "http_timeout_seconds": float,
            "server_host": str,
            "server_port": int,
            "static_dir": str,
            "capture_fps": float,
            "capture_monitor": int,
            "capture_width": int,
            "capture_height": int,
            "jpeg_quality": int,
            "image_detail": str,
            "data_channel_label": str,
            "audio_device": str,
            "audio_format": str,
            "single_flight": _parse_bool,
        }
        for field_name, field_type in field_types.items():
            env_key = f"SCREENSHARE_{field_name.upper()}"
            env_value = os.environ.get(env_key)
            if env_value is not None:
                setattr(self, field_name, field_type(env_value))


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Return the singleton Config instance, creating it on first call.

    Returns:
        Config: The global configuration object.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance
