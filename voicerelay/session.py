"""Call session management for VoiceRelay.

Each bridged call gets a CallSession that owns its two transports, the
stream identifier reported by the telephony side, and a few counters.
The SessionStore tracks the sessions that are currently live so the
server can report on them.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from voicerelay.transports.base import BaseTransport


class SessionState(str, Enum):
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class StreamSid:
    """Once-set holder for the telephony stream identifier.

    The telephony reader is the only writer; the AI reader reads it for
    every outbound media frame, and may do so before the identifier is
    known (in which case it sees an empty string).
    """

    def __init__(self) -> None:
        self._value = ""

    def set(self, value: str) -> bool:
        """Store the identifier. Returns False if one was already set."""
        if self._value:
            if value != self._value:
                logger.warning(
                    f"Ignoring stream identifier {value!r}; "
                    f"already bound to {self._value!r}"
                )
            return False
        if not value:
            return False
        self._value = value
        return True

    def get(self) -> str:
        return self._value

    @property
    def is_set(self) -> bool:
        return bool(self._value)


@dataclass
class CallSession:
    """Represents a single call flowing through the relay.

    Each call has:
    - A telephony-side transport (accepted from the provider)
    - An AI-side transport (dialed by the relay)
    - The caller's phone number, taken from the media-stream URL
    - The stream identifier, known once the telephony side sends ``start``
    """

    # Unique session identifier
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # Caller number, may be empty
    phone_number: str = ""

    # Transports
    telephony_transport: BaseTransport | None = None
    ai_transport: BaseTransport | None = None

    stream_sid: StreamSid = field(default_factory=StreamSid)

    # State
    state: SessionState = SessionState.CONNECTING
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None

    # Traffic counters
    media_in: int = 0
    media_out: int = 0
    function_calls: int = 0

    # Asyncio tasks for the two reader loops
    _tasks: list[asyncio.Task] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state is not SessionState.CLOSED

    def transition(self, state: SessionState) -> None:
        """Move to a new state. CLOSED is terminal."""
        if self.state is SessionState.CLOSED:
            return
        logger.debug(f"Session {self.session_id}: {self.state.value} -> {state.value}")
        self.state = state

    def end(self) -> None:
        """Mark the session as closed and cancel any running reader."""
        if self.state is not SessionState.CLOSED:
            self.state = SessionState.CLOSED
            self.ended_at = time.time()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks.clear()

    @property
    def duration_ms(self) -> int:
        """Call duration in milliseconds."""
        end = self.ended_at or time.time()
        return int((end - self.started_at) * 1000)


class SessionStore:
    """Store for live call sessions, keyed by session_id."""

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}

    def create(self, **kwargs) -> CallSession:
        """Create and store a new session."""
        session = CallSession(**kwargs)
        self._sessions[session.session_id] = session
        logger.info(
            f"Session created: {session.session_id} "
            f"(phone: {session.phone_number or 'unknown'})"
        )
        return session

    def get(self, session_id: str) -> CallSession | None:
        """Get a session by session_id."""
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        """Remove a session from the store."""
        session = self._sessions.pop(session_id, None)
        if session:
            session.end()
            logger.info(
                f"Session removed: {session.session_id} "
                f"(duration: {session.duration_ms}ms)"
            )

    @property
    def active_count(self) -> int:
        """Number of active sessions."""
        return sum(1 for s in self._sessions.values() if s.is_active)

    @property
    def all_sessions(self) -> list[CallSession]:
        return list(self._sessions.values())
