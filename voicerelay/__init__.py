"""VoiceRelay - Twilio media streams bridged to the OpenAI realtime API.

Forwards a live phone call's audio to a realtime AI session and streams
the AI's synthesized speech back to the caller. The AI can schedule a
meeting during the call; the details are posted to a business webhook.

Quick start:
    $ pip install voicerelay
    $ export OPENAI_API_KEY=... SYSTEM_MESSAGE=... GREETINGS_RESPONSE=... WEBHOOK_URL=...
    $ voicerelay run --port 1313

Programmatic:
    from voicerelay import BridgeConfig, VoiceRelay

    relay = VoiceRelay(BridgeConfig.from_env())

    @relay.on_call_end
    async def handle_end(session):
        print(f"Call from {session.phone_number} lasted {session.duration_ms}ms")

    relay.run()
"""

__version__ = "0.1.0"

# Core
from voicerelay.bridge import VoiceRelay
from voicerelay.config import BridgeConfig, ConfigError, load_config
from voicerelay.session import CallSession, SessionState, SessionStore, StreamSid

# Events
from voicerelay.core.events import (
    FunctionArgumentsError,
    FunctionCallRequest,
    RealtimeAudioDelta,
    RealtimeError,
    RealtimeEvent,
    TelephonyMedia,
    TelephonyStart,
    TelephonyUnknown,
)

# Serializers
from voicerelay.serializers.openai_realtime import RealtimeSerializer
from voicerelay.serializers.twilio import TwilioSerializer

# Functions
from voicerelay.functions import FunctionDispatcher, create_dispatcher
from voicerelay.webhook import ScheduleRequest, WebhookClient, WebhookError

# Transports
from voicerelay.transports.base import BaseTransport
from voicerelay.transports.websocket import (
    WebSocketClientTransport,
    WebSocketServerTransport,
)

__all__ = [
    # Core
    "VoiceRelay",
    "BridgeConfig",
    "ConfigError",
    "load_config",
    "CallSession",
    "SessionState",
    "SessionStore",
    "StreamSid",
    # Events
    "FunctionArgumentsError",
    "FunctionCallRequest",
    "RealtimeAudioDelta",
    "RealtimeError",
    "RealtimeEvent",
    "TelephonyMedia",
    "TelephonyStart",
    "TelephonyUnknown",
    # Serializers
    "RealtimeSerializer",
    "TwilioSerializer",
    # Functions
    "FunctionDispatcher",
    "create_dispatcher",
    "ScheduleRequest",
    "WebhookClient",
    "WebhookError",
    # Transports
    "BaseTransport",
    "WebSocketClientTransport",
    "WebSocketServerTransport",
]
