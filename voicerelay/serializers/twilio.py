"""Twilio Media Streams WebSocket serializer.

Translates between Twilio's Media Streams WebSocket protocol and the
VoiceRelay telephony events. Twilio streams audio as base64-encoded mu-law
at 8kHz; the relay forwards the base64 payload untouched because the
realtime AI session is configured for the same ``g711_ulaw`` format.

Protocol reference:
    https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

from __future__ import annotations

import json

from voicerelay.core.events import (
    AnyTelephonyEvent,
    TelephonyEventKind,
    TelephonyMedia,
    TelephonyStart,
    TelephonyUnknown,
)
from voicerelay.serializers.base import BaseSerializer


class TwilioSerializer(BaseSerializer):
    """Serializer for the Twilio Media Streams WebSocket protocol.

    Twilio sends JSON messages with an ``event`` field that indicates the
    message type. Only ``start`` and ``media`` are acted on; everything
    else (``connected``, ``mark``, ``dtmf``, ``stop``, ...) decodes to
    :class:`TelephonyUnknown`.
    """

    # ------------------------------------------------------------------
    # Deserialization (Twilio -> VoiceRelay events)
    # ------------------------------------------------------------------

    async def deserialize(self, raw: bytes | str | dict) -> AnyTelephonyEvent:
        """Parse a Twilio Media Streams message into a telephony event."""
        msg = self._parse_message(raw)
        event_type = msg.get("event", "")
        if not isinstance(event_type, str):
            event_type = ""

        if event_type == TelephonyEventKind.START:
            return self._handle_start(msg)

        if event_type == TelephonyEventKind.MEDIA:
            return self._handle_media(msg)

        return TelephonyUnknown(kind=event_type, raw=msg)

    # ------------------------------------------------------------------
    # Serialization (VoiceRelay -> Twilio wire format)
    # ------------------------------------------------------------------

    def build_media_message(self, stream_sid: str, payload: str) -> str:
        """Build an outbound ``media`` message carrying base64 audio."""
        return json.dumps(
            {
                "event": "media",
                "streamSid": stream_sid,
                "media": {
                    "payload": payload,
                },
            }
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _handle_start(msg: dict) -> TelephonyStart:
        start_data = msg.get("start")
        if not isinstance(start_data, dict):
            start_data = {}

        stream_sid = start_data.get("streamSid", "")
        call_sid = start_data.get("callSid", "")
        custom_params = start_data.get("customParameters")

        return TelephonyStart(
            stream_sid=stream_sid if isinstance(stream_sid, str) else "",
            call_sid=call_sid if isinstance(call_sid, str) else "",
            custom_parameters=custom_params if isinstance(custom_params, dict) else {},
        )

    @staticmethod
    def _handle_media(msg: dict) -> TelephonyMedia:
        media_data = msg.get("media")
        payload = media_data.get("payload", "") if isinstance(media_data, dict) else ""
        return TelephonyMedia(payload=payload if isinstance(payload, str) else "")
