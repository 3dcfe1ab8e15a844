"""Webhook client for scheduling requests.

When the AI asks to schedule a meeting, the relay posts the collected
details to a business webhook configured at startup. The webhook is
expected to answer with HTTP 200; anything else is a failure.

Usage:
    client = WebhookClient("https://hooks.example.com/schedule")
    await client.post_schedule(ScheduleRequest(name="Alice", ...))
    await client.close()
"""

from __future__ import annotations

import aiohttp
from loguru import logger
from pydantic import BaseModel


class ScheduleRequest(BaseModel):
    """Body of the scheduling webhook POST.

    Values are passed through exactly as the AI supplied them.
    """

    name: str = ""
    email: str = ""
    datetime: str = ""
    description: str = ""
    phone_number: str = ""


class WebhookError(Exception):
    """The webhook POST failed.

    ``status_code`` is set when the webhook answered with a non-200 status;
    transport failures leave it as ``None`` and chain the original error.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WebhookClient:
    """Posts scheduling requests to the configured webhook URL.

    A single :class:`aiohttp.ClientSession` is created lazily and shared
    by every call; requests use aiohttp's default timeout and are never
    retried.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create an aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def post_schedule(self, request: ScheduleRequest) -> None:
        """POST one scheduling request.

        Raises:
            WebhookError: On a non-200 response or any transport error.
        """
        session = await self._get_session()
        body = request.model_dump_json()

        try:
            async with session.post(
                self.url,
                data=body,
                headers={"Content-Type": "application/json"},
            ) as resp:
                if resp.status != 200:
                    raise WebhookError(
                        f"unexpected status code: {resp.status}",
                        status_code=resp.status,
                    )
        except (aiohttp.ClientError, OSError) as e:
            raise WebhookError(f"error sending request: {e}") from e

        logger.info(
            f"Schedule webhook accepted request for {request.email or 'unknown email'}"
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
