"""Base transport interface for VoiceRelay.

Transports handle the raw WebSocket connection lifecycle for one side of a
call. They are responsible for connecting, sending, receiving, and
disconnecting; they know nothing about the messages they carry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """Abstract base class for transport connections.

    A session owns exactly two transports: the accepted telephony socket
    and the dialed realtime AI socket.
    """

    @abstractmethod
    async def connect(self, **kwargs) -> None:
        """Establish the transport connection.

        Args:
            **kwargs: Transport-specific connection parameters.
        """
        ...

    @abstractmethod
    async def send(self, data: bytes | str) -> None:
        """Send one frame over the transport."""
        ...

    @abstractmethod
    async def recv(self) -> bytes | str:
        """Receive the next frame from the transport.

        Raises:
            Exception: Any transport-level failure, including the peer
                closing the connection. Readers treat this as terminal.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the transport connection. Safe to call more than once."""
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the transport is currently connected."""
        ...
