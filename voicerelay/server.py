"""HTTP/WebSocket server for VoiceRelay.

Provides a FastAPI application that:
- answers Twilio's incoming-call webhook with TwiML pointing the call's
  media stream back at this server
- accepts the media-stream WebSocket and hands it to the session bridge
- exposes root, health and status endpoints
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from urllib.parse import quote
from xml.sax.saxutils import quoteattr

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from loguru import logger

from voicerelay.bridge import VoiceRelay
from voicerelay.config import BridgeConfig
from voicerelay.transports.websocket import WebSocketServerTransport

MEDIA_STREAM_PATH = "/media-stream"


def build_twiml(host: str, phone_number: str) -> str:
    """TwiML instructing Twilio to open a media stream to this server."""
    url = f"wss://{host}{MEDIA_STREAM_PATH}/{quote(phone_number, safe='+')}"
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Connect>
        <Stream url={quoteattr(url)} />
    </Connect>
</Response>"""


def create_app(relay: VoiceRelay | BridgeConfig | dict | str | Path | None = None) -> FastAPI:
    """Create a FastAPI application serving one VoiceRelay.

    Args:
        relay: A VoiceRelay, or anything :func:`load_config` accepts.
    """
    if not isinstance(relay, VoiceRelay):
        relay = VoiceRelay(relay)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await relay.close()

    app = FastAPI(
        title="VoiceRelay",
        description="Twilio media streams bridged to the OpenAI realtime API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.relay = relay

    @app.get("/")
    async def root():
        return JSONResponse({"message": "Twilio Media Stream Server is running!"})

    @app.get("/health")
    async def health():
        return JSONResponse({"status": "ok", "active_calls": relay.sessions.active_count})

    @app.get("/status")
    async def status():
        sessions = []
        for s in relay.sessions.all_sessions:
            sessions.append({
                "session_id": s.session_id,
                "phone_number": s.phone_number,
                "stream_sid": s.stream_sid.get(),
                "state": s.state.value,
                "duration_ms": s.duration_ms,
                "media_in": s.media_in,
                "media_out": s.media_out,
                "function_calls": s.function_calls,
            })
        return JSONResponse({
            "model": relay.config.realtime.model,
            "active_calls": relay.sessions.active_count,
            "sessions": sessions,
        })

    @app.api_route("/incoming-call", methods=["GET", "POST"])
    async def incoming_call(request: Request):
        # The form body takes precedence over the query string
        phone_number = ""
        if request.method == "POST":
            form = await request.form()
            phone_number = str(form.get("From", ""))
        if not phone_number:
            phone_number = request.query_params.get("From", "")

        host = request.headers.get("host", request.url.netloc)
        logger.info(f"Incoming call from {phone_number or 'unknown'}")
        return Response(content=build_twiml(host, phone_number), media_type="text/xml")

    async def media_stream(websocket: WebSocket, number: str = "") -> None:
        await websocket.accept()
        logger.info(f"Telephony WebSocket connected: {websocket.client}")

        transport = WebSocketServerTransport(websocket)
        try:
            await relay.handle_call(transport, phone_number=number)
        except WebSocketDisconnect:
            logger.info(f"Telephony WebSocket disconnected: {websocket.client}")
        except Exception as e:
            logger.error(f"WebSocket handler error: {e}")

    app.add_api_websocket_route(f"{MEDIA_STREAM_PATH}/{{number}}", media_stream)
    app.add_api_websocket_route(MEDIA_STREAM_PATH, media_stream)

    return app


def run_server(
    relay: VoiceRelay | BridgeConfig | dict | str | Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the VoiceRelay server with uvicorn.

    Args:
        relay: A VoiceRelay, or anything :func:`load_config` accepts.
        host: Override the listen host.
        port: Override the listen port.
    """
    if not isinstance(relay, VoiceRelay):
        relay = VoiceRelay(relay)

    app = create_app(relay)

    logger.info(f"Server is listening on port {port or relay.config.port}")
    uvicorn.run(
        app,
        host=host or relay.config.host,
        port=port or relay.config.port,
    )
