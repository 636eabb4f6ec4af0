# =============================================================================
# Realtime Screen Share - Shared API Schemas
# =============================================================================
# Pydantic models defining the data contracts between the session client,
# the credential broker and the remote realtime API.
#
# Only the fields this project consumes are modelled. Upstream payloads are
# otherwise passed through untouched: the broker returns the minted session
# verbatim, and inbound channel events keep unknown keys out of the way.
# =============================================================================

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


# ---------------------------------------------------------------------------
# Credential broker
# ---------------------------------------------------------------------------


class SessionMintRequest(BaseModel):
    """
    Body of the broker's session-mint call to the remote API.

    Attributes:
        model:        Realtime model identifier (e.g., "gpt-realtime").
        voice:        Voice tag required by the session endpoint.
        instructions: System instruction for the realtime session.
    """

    model: str
    voice: str
    instructions: str


class ClientSecret(BaseModel):
    """Short-lived credential usable as a bearer token for one session."""

    model_config = ConfigDict(extra="allow")

    value: str
    expires_at: Optional[int] = None


class SessionCredential(BaseModel):
    """
    Session object returned by the remote API and relayed by the broker.

    Only ``client_secret`` is required; every other upstream field is kept.
    """

    model_config = ConfigDict(extra="allow")

    client_secret: ClientSecret


class HealthResponse(BaseModel):
    """Liveness payload: a fixed status and the current UTC time."""

    status: str = "ok"
    timestamp: str


class ErrorResponse(BaseModel):
    """Error body returned by the broker when the upstream call fails."""

    error: str


# ---------------------------------------------------------------------------
# Token usage
# ---------------------------------------------------------------------------


class _TokenCounts(BaseModel):
    """Base for usage blocks; a field reported as null takes its default."""

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class CachedTokenDetails(_TokenCounts):
    """Portion of the input tokens served from the prompt cache."""

    text_tokens: int = 0
    image_tokens: int = 0
    audio_tokens: int = 0


class InputTokenDetails(_TokenCounts):
    """Input token counts per modality, including the cached subset."""

    text_tokens: int = 0
    image_tokens: int = 0
    audio_tokens: int = 0
    cached_tokens: int = 0
    cached_tokens_details: CachedTokenDetails = Field(default_factory=CachedTokenDetails)


class OutputTokenDetails(_TokenCounts):
    """Output token counts per modality."""

    text_tokens: int = 0
    audio_tokens: int = 0


class Usage(_TokenCounts):
    """
    Usage block attached to a completed response.

    Attributes:
        total_tokens:         Reported grand total (informational only).
        input_tokens:         Reported input total (informational only).
        output_tokens:        Reported output total (informational only).
        input_token_details:  Per-modality input counts and cached subset.
        output_token_details: Per-modality output counts.
    """

    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    input_token_details: InputTokenDetails = Field(default_factory=InputTokenDetails)
    output_token_details: OutputTokenDetails = Field(default_factory=OutputTokenDetails)


# ---------------------------------------------------------------------------
# Inbound data-channel events
# ---------------------------------------------------------------------------


class TextDeltaEvent(BaseModel):
    """Incremental text for the response currently being generated."""

    type: Literal["response.text.delta"] = "response.text.delta"
    delta: str = ""


class TextDoneEvent(BaseModel):
    """Final text of one response output part."""

    type: Literal["response.text.done"] = "response.text.done"
    text: str = ""


class ResponseBody(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    usage: Optional[Usage] = None


class ResponseDoneEvent(BaseModel):
    """A response finished; carries usage when the remote side billed it."""

    type: Literal["response.done"] = "response.done"
    response: Optional[ResponseBody] = None

    @property
    def usage(self) -> Optional[Usage]:
        return self.response.usage if self.response is not None else None


class ErrorDetail(BaseModel):
    message: str = ""
    type: Optional[str] = None
    code: Optional[str] = None


class ErrorEvent(BaseModel):
    """An error reported by the remote API over the data channel."""

    type: Literal["error"] = "error"
    error: ErrorDetail = Field(default_factory=ErrorDetail)


class UnknownEvent(BaseModel):
    """Any event tag this client does not act on; the raw payload is kept."""

    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
