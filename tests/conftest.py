"""Shared fixtures: in-memory transports, a recording webhook, and config."""

import asyncio
import time

import pytest
from loguru import logger

from voicerelay.bridge import VoiceRelay
from voicerelay.config import BridgeConfig
from voicerelay.transports.base import BaseTransport
from voicerelay.webhook import ScheduleRequest, WebhookError

_CLOSED = object()


class FakeTransport(BaseTransport):
    """In-memory transport. Frames fed with :meth:`feed` are returned by
    :meth:`recv`; everything sent is recorded in :attr:`sent`."""

    def __init__(self, fail_connect: bool = False, fail_send: bool = False) -> None:
        self.sent: list[str] = []
        self.fail_connect = fail_connect
        self.fail_send = fail_send
        self.connected = False
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def connect(self, **kwargs) -> None:
        if self.fail_connect:
            raise ConnectionRefusedError("connection refused")
        self.connected = True

    async def send(self, data: bytes | str) -> None:
        if self.fail_send:
            raise ConnectionError("send failed")
        self.sent.append(data)

    async def recv(self) -> bytes | str:
        item = await self._incoming.get()
        if item is _CLOSED:
            self.connected = False
            raise ConnectionError("connection closed")
        return item

    async def disconnect(self) -> None:
        self.closed = True
        self.connected = False
        self._incoming.put_nowait(_CLOSED)

    def is_connected(self) -> bool:
        return self.connected

    def feed(self, *frames: str) -> None:
        for frame in frames:
            self._incoming.put_nowait(frame)

    def close_remote(self) -> None:
        self._incoming.put_nowait(_CLOSED)


class FakeWebhook:
    """Records scheduling requests instead of posting them.

    ``delay`` keeps each request in flight for that many seconds;
    ``completed`` counts requests that ran to the end.
    """

    def __init__(self, fail_status: int | None = None, delay: float = 0.0) -> None:
        self.requests: list[ScheduleRequest] = []
        self.fail_status = fail_status
        self.delay = delay
        self.completed = 0
        self.closed = False

    async def post_schedule(self, request: ScheduleRequest) -> None:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_status is not None:
            raise WebhookError(
                f"unexpected status code: {self.fail_status}",
                status_code=self.fail_status,
            )
        self.completed += 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def config():
    return BridgeConfig(
        openai_api_key="sk-test",
        system_message="You schedule meetings.",
        port=1313,
        greeting="Hello! How can I help?",
        webhook_url="http://hooks.test/schedule",
    )


@pytest.fixture
def telephony():
    return FakeTransport()


@pytest.fixture
def ai():
    return FakeTransport()


@pytest.fixture
def webhook():
    return FakeWebhook()


@pytest.fixture
def make_relay(config, ai, webhook):
    """Build a relay whose AI dial returns the ``ai`` fake."""

    def _make(ai_transport=None, webhook_client=None):
        relay = VoiceRelay(config, webhook=webhook_client or webhook)
        relay.create_ai_transport = lambda: ai_transport or ai
        return relay

    return _make


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def eventually():
    """Poll a predicate until it holds, yielding to the event loop."""

    async def _eventually(predicate, timeout: float = 1.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.001)

    return _eventually
