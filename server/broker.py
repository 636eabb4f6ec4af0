# =============================================================================
# Realtime Screen Share - Session Broker
# =============================================================================
# Provides the SessionBroker class that mints short-lived realtime session
# credentials from the remote API using the persistent API secret. Each call
# is independent: no retry, no caching, no rate limiting.
# =============================================================================

import logging
from typing import Any, Dict

import requests

from shared.errors import UpstreamError
from shared.schemas import SessionMintRequest

logger = logging.getLogger(__name__)


class SessionBroker:
    """
    HTTP client for the remote API's realtime session-mint endpoint.

    Args:
        api_key:      Persistent secret used as the bearer token.
        api_base_url: Base URL of the remote API (e.g., "https://api.openai.com/v1").
        model:        Realtime model identifier for the minted session.
        voice:        Voice tag for the minted session.
        instructions: System instruction for the minted session.
        timeout:      Seconds to wait for the remote API.
    """

    def __init__(
        self,
        api_key: str,
        api_base_url: str,
        model: str,
        voice: str,
        instructions: str,
        timeout: float = 30.0,
    ):
        self._url = f"{api_base_url.rstrip('/')}/realtime/sessions"
        self._request = SessionMintRequest(model=model, voice=voice, instructions=instructions)
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def mint_session(self) -> Dict[str, Any]:
        """
        Create a new realtime session upstream.

        Returns:
            dict: The remote API's JSON response, unmodified. Its
            ``client_secret.value`` is the short-lived credential.

        Raises:
            UpstreamError: If the remote call fails or returns a non-2xx status.
        """
        logger.info("Creating new realtime session (model=%s)...", self._request.model)
        try:
            response = self._session.post(
                self._url,
                json=self._request.model_dump(),
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"OpenAI API error: {exc}") from exc

        if not response.ok:
            raise UpstreamError(
                f"OpenAI API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"OpenAI API error: invalid JSON response ({response.status_code})",
                status_code=response.status_code,
            ) from exc
        logger.info("Session created successfully")
        return data

    def close(self) -> None:
        self._session.close()
