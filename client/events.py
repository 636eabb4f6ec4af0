# =============================================================================
# Realtime Screen Share - Data-Channel Event Codec
# =============================================================================
# Parses inbound JSON events into a closed set of typed variants with an
# explicit fallback for tags this client does not act on, and builds the
# outbound events the client sends (session configuration, image turns and
# completion requests).
# =============================================================================

import json
from typing import Any, Dict, Type, Union

from pydantic import BaseModel, ValidationError

from shared.errors import MalformedEventError
from shared.schemas import (
    ErrorEvent,
    ResponseDoneEvent,
    TextDeltaEvent,
    TextDoneEvent,
    UnknownEvent,
)

InboundEvent = Union[TextDeltaEvent, TextDoneEvent, ResponseDoneEvent, ErrorEvent, UnknownEvent]

_EVENT_TYPES: Dict[str, Type[BaseModel]] = {
    "response.text.delta": TextDeltaEvent,
    "response.text.done": TextDoneEvent,
    "response.done": ResponseDoneEvent,
    "error": ErrorEvent,
}


def parse_event(raw: Union[str, bytes]) -> InboundEvent:
    """
    Decode one data-channel message.

    Args:
        raw: The message as received (JSON text).

    Returns:
        The typed event for known tags, otherwise an UnknownEvent holding
        the raw payload.

    Raises:
        MalformedEventError: If the message is not a JSON object with a
            string ``type``, or a known event fails validation.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(f"Invalid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedEventError(f"Expected a JSON object, got {type(payload).__name__}")

    event_type = payload.get("type")
    if not isinstance(event_type, str):
        raise MalformedEventError("Event has no string 'type' field")

    model = _EVENT_TYPES.get(event_type)
    if model is None:
        return UnknownEvent(type=event_type, payload=payload)

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedEventError(f"Invalid {event_type} event: {exc}") from exc


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


def session_update_event(instructions: str) -> Dict[str, Any]:
    """Restrict the session to text output and set its system instruction."""
    return {
        "type": "session.update",
        "session": {
            "modalities": ["text"],
            "instructions": instructions,
        },
    }


def image_item_event(jpeg_base64: str, detail: str = "low") -> Dict[str, Any]:
    """Add one screenshot to the conversation as a user turn."""
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": "user",
            "content": [
                {
                    "type": "input_image",
                    "image_url": f"data:image/jpeg;base64,{jpeg_base64}",
                    "detail": detail,
                }
            ],
        },
    }


def response_create_event() -> Dict[str, Any]:
    """Ask for a text-only response to the conversation so far."""
    return {
        "type": "response.create",
        "response": {
            "modalities": ["text"],
        },
    }
