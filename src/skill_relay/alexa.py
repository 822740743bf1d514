"""Alexa skill protocol: request envelope parsing and response builders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import InvalidInput

PROTOCOL_VERSION = "1.0"

LAUNCH_REQUEST = "LaunchRequest"
INTENT_REQUEST = "IntentRequest"
SESSION_ENDED_REQUEST = "SessionEndedRequest"

LAUNCH_SPEECH = (
    "Welcome to Surveillance Camera. You can say things like, "
    "display camera 1, or hide all cameras."
)
LAUNCH_REPROMPT = "You can say things like, display camera 1, or hide all cameras."
UNHANDLED_SPEECH = "I'm not sure how to help with that."
FORWARD_FAILED_SPEECH = (
    "Sorry, there was a problem connecting to the surveillance system."
)
INTERNAL_ERROR_SPEECH = "Sorry, there was a problem processing your request."
INVALID_FORMAT_SPEECH = "Invalid request format."
MISSING_INTENT_SPEECH = "I couldn't understand your request."


class AlexaSlot(BaseModel):
    name: str = ""
    value: Any = None


class AlexaIntent(BaseModel):
    name: str = ""
    slots: dict[str, AlexaSlot] | None = None


class AlexaRequestBody(BaseModel):
    type: str = ""
    intent: AlexaIntent | None = None


class AlexaEnvelope(BaseModel):
    version: Any = PROTOCOL_VERSION
    request: AlexaRequestBody | None = None


class InvalidEnvelope(InvalidInput):
    """Malformed assistant request; carries the fallback speech to return."""

    def __init__(self, message: str, speech: str, end_session: bool):
        super().__init__(message)
        self.speech = speech
        self.end_session = end_session


@dataclass(frozen=True)
class AlexaRequest:
    """Validated view of an inbound assistant request."""

    request_type: str
    intent_name: str = ""
    slots: dict[str, Any] = field(default_factory=dict)


def parse_envelope(data: Any) -> AlexaRequest:
    """Validate a raw JSON body into an AlexaRequest.

    Raises:
        InvalidEnvelope: request type missing, or an IntentRequest
            without an intent name.
    """
    if not isinstance(data, dict):
        raise InvalidEnvelope(
            "Request body must be a JSON object",
            INVALID_FORMAT_SPEECH,
            end_session=True,
        )
    try:
        envelope = AlexaEnvelope.model_validate(data)
    except ValidationError as e:
        raise InvalidEnvelope(
            f"Invalid Alexa request format: {e.error_count()} error(s)",
            INVALID_FORMAT_SPEECH,
            end_session=True,
        ) from e

    request = envelope.request
    if request is None or not request.type:
        raise InvalidEnvelope(
            "Invalid Alexa request format - missing request type",
            INVALID_FORMAT_SPEECH,
            end_session=True,
        )

    if request.type != INTENT_REQUEST:
        return AlexaRequest(request_type=request.type)

    intent = request.intent
    if intent is None or not intent.name:
        raise InvalidEnvelope(
            "Missing intent name in Alexa request",
            MISSING_INTENT_SPEECH,
            end_session=False,
        )

    slots = {
        name: slot.value
        for name, slot in (intent.slots or {}).items()
        if slot.value not in (None, "")
    }
    return AlexaRequest(
        request_type=request.type, intent_name=intent.name, slots=slots
    )


def speech_response(
    text: str, end_session: bool = False, reprompt: str | None = None
) -> dict[str, Any]:
    """Build a PlainText speech response envelope."""
    response: dict[str, Any] = {
        "outputSpeech": {"type": "PlainText", "text": text},
    }
    if reprompt:
        response["reprompt"] = {
            "outputSpeech": {"type": "PlainText", "text": reprompt}
        }
    response["shouldEndSession"] = end_session
    return {"version": PROTOCOL_VERSION, "response": response}


def empty_response() -> dict[str, Any]:
    """Acknowledgment for SessionEndedRequest (no speech allowed)."""
    return {"version": PROTOCOL_VERSION, "response": {}}


def launch_response() -> dict[str, Any]:
    return speech_response(LAUNCH_SPEECH, end_session=False, reprompt=LAUNCH_REPROMPT)
