# =============================================================================
# Realtime Screen Share - Broker HTTP Client
# =============================================================================
# Provides the BrokerClient class that asks the credential broker for a
# short-lived realtime session credential. Nothing is retried: a failed
# fetch aborts session startup and the user retries manually.
# =============================================================================

import logging

import requests
from pydantic import ValidationError

from shared.errors import UpstreamError
from shared.schemas import SessionCredential

logger = logging.getLogger(__name__)


class BrokerClient:
    """
    HTTP client for the credential broker.

    Args:
        broker_url: Base URL of the broker (e.g., "http://127.0.0.1:3000").
        timeout:    Seconds to wait for each request.
    """

    def __init__(self, broker_url: str, timeout: float = 30.0):
        self._broker_url = broker_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def create_session(self) -> str:
        """
        Request a new realtime session credential from the broker.

        Returns:
            str: The ephemeral key (``client_secret.value``).

        Raises:
            UpstreamError: If the broker is unreachable, returns a non-2xx
                status, or its body carries no client secret.
        """
        url = f"{self._broker_url}/session"
        try:
            response = self._session.post(url, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            raise UpstreamError(f"Broker unreachable: {exc}") from exc

        if not response.ok:
            raise UpstreamError(
                f"Broker error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            credential = SessionCredential.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UpstreamError(f"Broker returned no client secret: {exc}") from exc

        logger.info("Received ephemeral session credential from %s", url)
        return credential.client_secret.value

    def is_healthy(self) -> bool:
        """Return True if the broker's /health endpoint answers with status ok."""
        url = f"{self._broker_url}/health"
        try:
            response = self._session.get(url, timeout=5)
            return response.status_code == 200 and response.json().get("status") == "ok"
        except requests.exceptions.RequestException:
            logger.debug("Broker health check failed", exc_info=True)
            return False
        except ValueError:
            logger.debug("Broker health check returned non-JSON body", exc_info=True)
            return False

    def close(self) -> None:
        self._session.close()
