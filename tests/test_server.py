"""Tests for the FastAPI routes and the media-stream WebSocket endpoint."""

import json
import time

import pytest
from fastapi.testclient import TestClient

from conftest import FakeTransport
from voicerelay.bridge import VoiceRelay
from voicerelay.server import build_twiml, create_app
from voicerelay.session import SessionState
from voicerelay.transports.websocket import WebSocketServerTransport


def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll a predicate while the app runs on the test client's thread."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.01)


@pytest.fixture
def relay(config, webhook):
    return VoiceRelay(config, webhook=webhook)


@pytest.fixture
def client(relay):
    with TestClient(create_app(relay)) as client:
        yield client


class TestBuildTwiml:

    def test_stream_url(self):
        twiml = build_twiml("relay.example.com", "+15550001111")
        assert twiml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<Stream url="wss://relay.example.com/media-stream/+15550001111" />' in twiml
        assert "<Connect>" in twiml

    def test_unknown_caller(self):
        twiml = build_twiml("relay.example.com", "")
        assert 'url="wss://relay.example.com/media-stream/"' in twiml

    def test_number_is_escaped(self):
        twiml = build_twiml("relay.example.com", 'a b"&<')
        assert "a%20b%22%26%3C" in twiml
        assert '"&<' not in twiml


class TestRoutes:

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Twilio Media Stream Server is running!"}

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.json() == {"status": "ok", "active_calls": 0}

    def test_status(self, client, relay):
        relay.sessions.create(phone_number="+15550001111")
        data = client.get("/status").json()
        assert data["model"] == relay.config.realtime.model
        assert data["active_calls"] == 1
        assert data["sessions"][0]["phone_number"] == "+15550001111"
        assert data["sessions"][0]["state"] == "connecting"

    def test_incoming_call_post(self, client):
        resp = client.post(
            "/incoming-call",
            data={"From": "+15550001111", "CallSid": "CA123"},
            headers={"host": "relay.example.com"},
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/xml")
        assert "wss://relay.example.com/media-stream/+15550001111" in resp.text

    def test_incoming_call_get(self, client):
        resp = client.get(
            "/incoming-call",
            params={"From": "+15550002222"},
            headers={"host": "relay.example.com"},
        )
        assert resp.status_code == 200
        assert "wss://relay.example.com/media-stream/+15550002222" in resp.text

    def test_incoming_call_form_beats_query(self, client):
        resp = client.post(
            "/incoming-call",
            params={"From": "+15550002222"},
            data={"From": "+15550001111"},
            headers={"host": "relay.example.com"},
        )
        assert "wss://relay.example.com/media-stream/+15550001111" in resp.text
        assert "+15550002222" not in resp.text

    def test_incoming_call_post_query_fallback(self, client):
        resp = client.post(
            "/incoming-call",
            params={"From": "+15550002222"},
            headers={"host": "relay.example.com"},
        )
        assert "wss://relay.example.com/media-stream/+15550002222" in resp.text

    def test_incoming_call_without_caller(self, client):
        resp = client.post("/incoming-call", headers={"host": "relay.example.com"})
        assert 'url="wss://relay.example.com/media-stream/"' in resp.text

    def test_lifespan_closes_webhook(self, relay, webhook):
        with TestClient(create_app(relay)):
            assert webhook.closed is False
        assert webhook.closed is True


class TestMediaStream:

    def test_phone_number_from_path(self, client, relay):
        seen = []

        async def fake_handle_call(transport, phone_number=""):
            seen.append((type(transport), phone_number))
            await transport.send(await transport.recv())

        relay.handle_call = fake_handle_call

        with client.websocket_connect("/media-stream/+15550001111") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "ping"

        assert seen == [(WebSocketServerTransport, "+15550001111")]

    def test_without_phone_number(self, client, relay):
        seen = []

        async def fake_handle_call(transport, phone_number=""):
            seen.append(phone_number)

        relay.handle_call = fake_handle_call

        with client.websocket_connect("/media-stream"):
            wait_for(lambda: seen == [""])

    def test_bridges_call(self, client, relay):
        ai = FakeTransport()
        relay.create_ai_transport = lambda: ai
        ended = []

        @relay.on_call_end
        async def on_end(session):
            ended.append(session)

        with client.websocket_connect("/media-stream/+15550001111") as ws:
            ws.send_text(json.dumps({"event": "start", "start": {"streamSid": "MZ1"}}))
            ws.send_text(json.dumps({"event": "media", "media": {"payload": "AAAA"}}))
            wait_for(lambda: len(ai.sent) == 4)
            ws.close()
            wait_for(lambda: len(ended) == 1)

        session = ended[0]
        assert json.loads(ai.sent[3]) == {"type": "input_audio_buffer.append", "audio": "AAAA"}
        assert session.phone_number == "+15550001111"
        assert session.stream_sid.get() == "MZ1"
        assert session.state is SessionState.CLOSED
        assert ai.closed
