"""VoiceRelay - Central session bridge.

The VoiceRelay class is the heart of the package. For every call it:
- Dials the realtime AI WebSocket with the configured credentials
- Sends the handshake (session configuration, greeting, response trigger)
- Runs two reader loops until either socket closes
- Releases both sockets, whatever the reason the call ended

The two loops per call:
1. telephony_to_ai: Twilio media stream -> input_audio_buffer.append
2. ai_to_telephony: realtime events -> Twilio media frames / function calls
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger

from voicerelay.config import BridgeConfig, load_config
from voicerelay.core.events import (
    DIAGNOSTIC_EVENT_KINDS,
    RealtimeAudioDelta,
    RealtimeError,
    TelephonyMedia,
    TelephonyStart,
)
from voicerelay.functions import FunctionDispatcher, create_dispatcher
from voicerelay.serializers.openai_realtime import RealtimeSerializer
from voicerelay.serializers.twilio import TwilioSerializer
from voicerelay.session import CallSession, SessionState, SessionStore
from voicerelay.transports.base import BaseTransport
from voicerelay.transports.websocket import WebSocketClientTransport
from voicerelay.webhook import WebhookClient

# Type for event handler callbacks
EventHandler = Callable[..., Awaitable[Any]]


class VoiceRelay:
    """Bridges Twilio media streams to the OpenAI realtime API.

    Usage:
        relay = VoiceRelay(BridgeConfig.from_env())

        @relay.on_call_start
        async def handle_call(session):
            print(f"Call from {session.phone_number}")

        relay.run()
    """

    def __init__(
        self,
        config: BridgeConfig | dict | str | Path | None = None,
        dispatcher: FunctionDispatcher | None = None,
        webhook: WebhookClient | None = None,
    ) -> None:
        self.config = load_config(config)
        self.sessions = SessionStore()

        self.telephony_serializer = TwilioSerializer()
        self.ai_serializer = RealtimeSerializer()

        self.webhook = webhook or WebhookClient(self.config.webhook_url)
        self.dispatcher = dispatcher or create_dispatcher(self.webhook, self.ai_serializer)

        self._handlers: dict[str, list[EventHandler]] = {
            "on_call_start": [],
            "on_call_end": [],
        }

    # ------------------------------------------------------------------
    # Decorator API for event handlers
    # ------------------------------------------------------------------

    def on_call_start(self, fn: EventHandler) -> EventHandler:
        """Register a handler run once the session is active.

        The handler receives (session: CallSession).
        """
        self._handlers["on_call_start"].append(fn)
        return fn

    def on_call_end(self, fn: EventHandler) -> EventHandler:
        """Register a handler run after both sockets are released.

        The handler receives (session: CallSession).
        """
        self._handlers["on_call_end"].append(fn)
        return fn

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Serve the HTTP routes and media stream endpoint (blocking)."""
        from voicerelay.server import run_server

        run_server(self)

    async def close(self) -> None:
        """Release resources shared across sessions."""
        await self.webhook.close()

    # ------------------------------------------------------------------
    # Session bridge
    # ------------------------------------------------------------------

    def create_ai_transport(self) -> BaseTransport:
        """Build the (not yet connected) realtime AI transport."""
        return WebSocketClientTransport(
            url=self.config.realtime.endpoint,
            additional_headers={
                "Authorization": f"Bearer {self.config.openai_api_key}",
                "OpenAI-Beta": self.config.realtime.beta,
            },
        )

    async def handle_call(
        self,
        telephony_transport: BaseTransport,
        phone_number: str = "",
    ) -> CallSession:
        """Bridge one call from start to finish.

        Returns once both reader loops have terminated and both sockets
        have been closed.
        """
        session = self.sessions.create(
            phone_number=phone_number,
            telephony_transport=telephony_transport,
        )
        ai_transport = self.create_ai_transport()

        try:
            try:
                await ai_transport.connect()
            except Exception as e:
                logger.error(f"Error connecting to OpenAI WebSocket: {e}")
                return session
            session.ai_transport = ai_transport

            session.transition(SessionState.HANDSHAKING)
            try:
                await self._send_handshake(session)
            except Exception as e:
                logger.error(f"Error sending initial messages: {e}")
                return session

            session.transition(SessionState.ACTIVE)
            await self._dispatch("on_call_start", session)

            telephony_to_ai = asyncio.create_task(self._telephony_to_ai_loop(session))
            ai_to_telephony = asyncio.create_task(self._ai_to_telephony_loop(session))
            session._tasks = [telephony_to_ai, ai_to_telephony]

            # Either socket closing ends the call
            await asyncio.wait(
                [telephony_to_ai, ai_to_telephony],
                return_when=asyncio.FIRST_COMPLETED,
            )

            # Closing both sockets makes the surviving reader fail its next
            # recv(). It is awaited, not cancelled, so an in-flight function
            # call still completes.
            session.transition(SessionState.CLOSING)
            await ai_transport.disconnect()
            await telephony_transport.disconnect()
            await asyncio.wait([telephony_to_ai, ai_to_telephony])

        finally:
            session.end()
            await ai_transport.disconnect()
            await telephony_transport.disconnect()
            await self._dispatch("on_call_end", session)
            self.sessions.remove(session.session_id)
            logger.info(
                f"Session ended: {session.session_id} "
                f"(duration: {session.duration_ms}ms, media in/out: "
                f"{session.media_in}/{session.media_out}, "
                f"function calls: {session.function_calls})"
            )

        return session

    async def _send_handshake(self, session: CallSession) -> None:
        """Send session configuration, greeting and the first response trigger."""
        realtime = self.config.realtime
        messages = [
            self.ai_serializer.build_session_update(
                instructions=self.config.system_message,
                voice=realtime.voice,
                temperature=realtime.temperature,
                tools=self.dispatcher.tool_definitions,
            ),
            self.ai_serializer.build_greeting(self.config.greeting),
            self.ai_serializer.build_response_create(),
        ]
        for message in messages:
            await session.ai_transport.send(message)

    # ------------------------------------------------------------------
    # Reader loops
    # ------------------------------------------------------------------

    async def _telephony_to_ai_loop(self, session: CallSession) -> None:
        """Twilio media stream -> realtime AI input audio."""
        telephony = session.telephony_transport
        ai = session.ai_transport

        while True:
            try:
                raw = await telephony.recv()
            except Exception as e:
                if session.state is SessionState.ACTIVE:
                    logger.error(f"Error reading from Twilio WebSocket: {e}")
                return

            try:
                event = await self.telephony_serializer.deserialize(raw)
            except ValueError as e:
                logger.warning(f"Invalid message from Twilio: {e}")
                continue

            if isinstance(event, TelephonyMedia):
                session.media_in += 1
                try:
                    await ai.send(self.ai_serializer.build_audio_append(event.payload))
                except Exception as e:
                    logger.error(f"Error sending audio append to OpenAI: {e}")

            elif isinstance(event, TelephonyStart):
                session.stream_sid.set(event.stream_sid)
                logger.info(f"Incoming stream has started {event.stream_sid}")

            else:
                logger.info(f"Received non-media event: {event.kind}")

    async def _ai_to_telephony_loop(self, session: CallSession) -> None:
        """Realtime AI events -> Twilio media frames and function calls."""
        telephony = session.telephony_transport
        ai = session.ai_transport

        while True:
            try:
                raw = await ai.recv()
            except Exception as e:
                if session.state is SessionState.ACTIVE:
                    logger.error(f"Error reading from OpenAI WebSocket: {e}")
                return

            try:
                event = await self.ai_serializer.deserialize(raw)
            except ValueError as e:
                logger.warning(f"Invalid message from OpenAI: {e}")
                continue

            if event.kind in DIAGNOSTIC_EVENT_KINDS:
                logger.info(f"Received OpenAI message: {event.kind}")

            if isinstance(event, RealtimeError):
                logger.error(f"OpenAI error: {event.raw}")
                continue

            if isinstance(event, RealtimeAudioDelta):
                media = self.telephony_serializer.build_media_message(
                    session.stream_sid.get(), event.delta
                )
                try:
                    await telephony.send(media)
                    session.media_out += 1
                except Exception as e:
                    logger.error(f"Error sending audio delta to Twilio: {e}")

            call = event.function_call
            if call is not None and self.dispatcher.handles(call.name):
                await self.dispatcher.dispatch(session, call)

    # ------------------------------------------------------------------
    # Event dispatching
    # ------------------------------------------------------------------

    async def _dispatch(self, name: str, session: CallSession) -> None:
        """Run the handlers registered under ``name``."""
        for handler in self._handlers[name]:
            try:
                await handler(session)
            except Exception as e:
                logger.error(f"{name} handler error: {e}")
