# =============================================================================
# Realtime Screen Share - FastAPI Server Application
# =============================================================================
# Defines the credential broker's HTTP API: minting short-lived realtime
# session credentials, a liveness check, and the static landing page.
# =============================================================================

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import get_config
from server.broker import SessionBroker
from shared.errors import UpstreamError
from shared.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Global references populated during lifespan startup
# ---------------------------------------------------------------------------
_broker: SessionBroker = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler — creates and tears down the session broker.
    """
    global _broker

    config = get_config()
    if not config.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; session requests will be rejected upstream.")

    _broker = SessionBroker(
        api_key=config.openai_api_key,
        api_base_url=config.api_base_url,
        model=config.realtime_model,
        voice=config.voice,
        instructions=config.broker_instructions,
        timeout=config.http_timeout_seconds,
    )
    logger.info("Broker ready — accepting requests.")
    yield

    logger.info("Shutting down broker...")
    _broker.close()
    _broker = None


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Realtime Screen Share Broker",
    description=(
        "Mints short-lived realtime session credentials for the screen-share "
        "client and serves its static assets."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    """Surface upstream failures as a server error with the remote status embedded."""
    logger.error("Error creating session: %s", exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=str(exc)).model_dump(),
    )


@app.post("/session")
def create_session():
    """
    Mint a realtime session credential.

    Returns the remote API's session object verbatim; the caller uses
    ``client_secret.value`` as a bearer token for the transport handshake.
    """
    return _broker.mint_session()


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Liveness check returning a fixed status and the current time."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# Static assets (index.html for "/"); mounted last so API routes take precedence.
app.mount(
    "/",
    StaticFiles(directory=get_config().static_dir, html=True),
    name="static",
)
