"""Typed event model for VoiceRelay.

Two vocabularies flow through the relay:

* Telephony events, discriminated by the Twilio ``event`` field
  (``start``, ``media`` and anything else).
* Realtime AI events, discriminated by the OpenAI ``type`` field. The
  vocabulary is open: kinds the relay does not act on are kept as a
  generic :class:`RealtimeEvent` carrying the raw fields.

Serializers decode raw frames into these models once; the bridge loops
only ever see typed events.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field


class TelephonyEventKind:
    START = "start"
    MEDIA = "media"


class RealtimeEventKind:
    ERROR = "error"
    AUDIO_DELTA = "response.audio.delta"
    SESSION_CREATED = "session.created"
    SESSION_UPDATE = "session.update"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"
    RESPONSE_CREATE = "response.create"
    INPUT_AUDIO_APPEND = "input_audio_buffer.append"


# Kinds that are only logged when received from the AI side.
DIAGNOSTIC_EVENT_KINDS: frozenset[str] = frozenset({
    "response.content.done",
    "rate_limits.updated",
    "response.done",
    "input_audio_buffer.committed",
    "input_audio_buffer.speech_stopped",
    "input_audio_buffer.speech_started",
    RealtimeEventKind.SESSION_CREATED,
})


class FunctionArgumentsError(ValueError):
    """Raised when a function call's arguments are not a JSON object."""


# ---------------------------------------------------------------------------
# Telephony side
# ---------------------------------------------------------------------------


class TelephonyEvent(BaseModel):
    """Base for every event decoded from the telephony socket."""

    kind: str


class TelephonyStart(TelephonyEvent):
    """The media stream has started and has been assigned an identifier."""

    kind: str = TelephonyEventKind.START
    stream_sid: str = ""
    call_sid: str = ""
    custom_parameters: dict[str, Any] = Field(default_factory=dict)


class TelephonyMedia(TelephonyEvent):
    """A chunk of caller audio, still base64 encoded."""

    kind: str = TelephonyEventKind.MEDIA
    payload: str = ""


class TelephonyUnknown(TelephonyEvent):
    """Any telephony event the relay does not act on."""

    raw: dict[str, Any] = Field(default_factory=dict)


AnyTelephonyEvent = TelephonyStart | TelephonyMedia | TelephonyUnknown


# ---------------------------------------------------------------------------
# Realtime AI side
# ---------------------------------------------------------------------------


class FunctionCallRequest(BaseModel):
    """A function call issued by the AI in a response's output list."""

    name: str
    arguments: str
    call_id: str

    def parse_arguments(self) -> dict[str, str]:
        """Decode the JSON-encoded arguments into a flat string mapping.

        Raises:
            FunctionArgumentsError: If the arguments are not valid JSON or
                do not decode to an object.
        """
        try:
            data = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            raise FunctionArgumentsError(
                f"Invalid arguments for {self.name}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise FunctionArgumentsError(
                f"Arguments for {self.name} must be a JSON object, "
                f"got {type(data).__name__}"
            )

        arguments: dict[str, str] = {}
        for key, value in data.items():
            if value is None:
                arguments[key] = ""
            elif isinstance(value, str):
                arguments[key] = value
            else:
                raise FunctionArgumentsError(
                    f"Argument '{key}' for {self.name} must be a string, "
                    f"got {type(value).__name__}"
                )
        return arguments


class RealtimeEvent(BaseModel):
    """Base for every event decoded from the AI socket.

    Events that carry a nested ``response.output`` whose first element is a
    well-formed function call expose it through ``function_call``.
    """

    kind: str
    function_call: FunctionCallRequest | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class RealtimeAudioDelta(RealtimeEvent):
    """A chunk of synthesized audio (base64 g711 u-law)."""

    kind: str = RealtimeEventKind.AUDIO_DELTA
    delta: str = ""


class RealtimeError(RealtimeEvent):
    """An application-level error reported by the AI service."""

    kind: str = RealtimeEventKind.ERROR
    error: dict[str, Any] = Field(default_factory=dict)


AnyRealtimeEvent = RealtimeAudioDelta | RealtimeError | RealtimeEvent
