"""Base serializer interface for VoiceRelay.

Each side of the relay has one serializer. Serializers are pure message
translators with no I/O - they decode raw WebSocket frames into the typed
event model and build the outbound frames for their side.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class BaseSerializer(ABC):
    """Abstract base class for wire serializers.

    Key principles:
    - Serializers do NO I/O (no network calls, no file access)
    - They hold no per-call state (call state lives in CallSession)
    - Decoding a malformed frame raises ``ValueError``; the caller decides
      whether that is fatal
    """

    @abstractmethod
    async def deserialize(self, raw: bytes | str | dict) -> BaseModel:
        """Parse one raw frame into a typed event.

        Args:
            raw: The raw WebSocket message. Could be:
                - bytes: UTF-8 encoded JSON text
                - str: JSON text message
                - dict: already-parsed JSON

        Raises:
            ValueError: If the frame is not a JSON object.
        """
        ...

    @staticmethod
    def _parse_message(raw: bytes | str | dict) -> dict[str, Any]:
        """Normalise the raw WebSocket frame into a dict."""
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        msg = json.loads(raw)
        if not isinstance(msg, dict):
            raise ValueError(f"Expected a JSON object, got {type(msg).__name__}")
        return msg
