"""OpenAI Realtime API WebSocket serializer.

Decodes server events from the realtime API into VoiceRelay's typed AI
events, and builds the client events the relay sends: the session
handshake, caller audio, and function call completions.

Protocol reference:
    https://platform.openai.com/docs/api-reference/realtime
"""

from __future__ import annotations

import json
from typing import Any

from voicerelay.core.events import (
    AnyRealtimeEvent,
    FunctionCallRequest,
    RealtimeAudioDelta,
    RealtimeError,
    RealtimeEvent,
    RealtimeEventKind,
)
from voicerelay.serializers.base import BaseSerializer

AUDIO_FORMAT = "g711_ulaw"
GREETING_ITEM_ID = "greeting_01"


class RealtimeSerializer(BaseSerializer):
    """Serializer for the OpenAI Realtime WebSocket protocol."""

    # ------------------------------------------------------------------
    # Deserialization (realtime API -> VoiceRelay events)
    # ------------------------------------------------------------------

    async def deserialize(self, raw: bytes | str | dict) -> AnyRealtimeEvent:
        """Parse a realtime server event.

        ``response.audio.delta`` becomes :class:`RealtimeAudioDelta` when it
        carries a string ``delta``; ``error`` becomes :class:`RealtimeError`;
        every other kind is kept as a generic :class:`RealtimeEvent`.
        Any event with a nested function call in ``response.output[0]``
        exposes it via ``function_call``.
        """
        msg = self._parse_message(raw)
        kind = msg.get("type", "")
        if not isinstance(kind, str):
            kind = ""

        function_call = self._extract_function_call(msg.get("response"))

        if kind == RealtimeEventKind.AUDIO_DELTA and isinstance(msg.get("delta"), str):
            return RealtimeAudioDelta(
                delta=msg["delta"], function_call=function_call, raw=msg
            )

        if kind == RealtimeEventKind.ERROR:
            error = msg.get("error")
            return RealtimeError(
                error=error if isinstance(error, dict) else {},
                function_call=function_call,
                raw=msg,
            )

        return RealtimeEvent(kind=kind, function_call=function_call, raw=msg)

    # ------------------------------------------------------------------
    # Serialization (VoiceRelay -> realtime client events)
    # ------------------------------------------------------------------

    def build_session_update(
        self,
        instructions: str,
        voice: str,
        temperature: float,
        tools: list[dict[str, Any]],
    ) -> str:
        """Build the ``session.update`` configuration event."""
        return json.dumps(
            {
                "type": RealtimeEventKind.SESSION_UPDATE,
                "session": {
                    "turn_detection": {"type": "server_vad"},
                    "input_audio_format": AUDIO_FORMAT,
                    "output_audio_format": AUDIO_FORMAT,
                    "voice": voice,
                    "instructions": instructions,
                    "modalities": ["text", "audio"],
                    "temperature": temperature,
                    "tools": tools,
                },
            }
        )

    def build_greeting(self, text: str) -> str:
        """Build the assistant greeting that seeds the first spoken turn."""
        return json.dumps(
            {
                "type": RealtimeEventKind.CONVERSATION_ITEM_CREATE,
                "item": {
                    "id": GREETING_ITEM_ID,
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "text", "text": text}],
                },
            }
        )

    def build_response_create(self) -> str:
        """Build a ``response.create`` trigger."""
        return json.dumps({"type": RealtimeEventKind.RESPONSE_CREATE})

    def build_audio_append(self, payload: str) -> str:
        """Build an ``input_audio_buffer.append`` event for caller audio."""
        return json.dumps(
            {
                "type": RealtimeEventKind.INPUT_AUDIO_APPEND,
                "audio": payload,
            }
        )

    def build_function_call_output(self, call_id: str, output: str) -> str:
        """Build the completion item for a finished function call."""
        return json.dumps(
            {
                "type": RealtimeEventKind.CONVERSATION_ITEM_CREATE,
                "item": {
                    "call_id": call_id,
                    "type": "function_call_output",
                    "output": output,
                },
            }
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_function_call(response: Any) -> FunctionCallRequest | None:
        """Pull a function call out of ``response.output[0]``, if well formed."""
        if not isinstance(response, dict):
            return None

        output = response.get("output")
        if not isinstance(output, list) or not output:
            return None

        first = output[0]
        if not isinstance(first, dict) or first.get("type") != "function_call":
            return None

        name = first.get("name")
        arguments = first.get("arguments")
        call_id = first.get("call_id")
        if not all(isinstance(v, str) for v in (name, arguments, call_id)):
            return None

        return FunctionCallRequest(name=name, arguments=arguments, call_id=call_id)
