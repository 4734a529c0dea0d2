"""WebSocket client wrapper for the OBS control connection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from .errors import ObsConnectionError
from .protocol import Envelope, encode
from .ws import DEFAULT_URL, connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class ObsWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class ObsWsMessage:
    """Normalized WebSocket message payload."""

    type: ObsWsMessageType
    data: str | None = None


class ObsWsClient:
    """Wrapper around the websockets library for the broadcast tool connection."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str = DEFAULT_URL,
        *,
        ping_interval: float | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the broadcast tool websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_text(self, text: str) -> None:
        """Send a text frame.

        Raises:
            ObsConnectionError: If not connected or the connection is closed
        """
        if self._ws is None:
            raise ObsConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(text)
        except ConnectionClosed as err:
            raise ObsConnectionError("WebSocket connection is closed") from err

    async def send_envelope(self, envelope: Envelope) -> None:
        """Encode and send a protocol envelope."""
        await self.send_text(encode(envelope))

    def __aiter__(self) -> AsyncIterator[ObsWsMessage]:
        if self._ws is None:
            raise ObsConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[ObsWsMessage]:
        if self._ws is None:
            raise ObsConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield ObsWsMessage(type=ObsWsMessageType.CLOSED)
        except Exception:
            yield ObsWsMessage(type=ObsWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield ObsWsMessage(type=ObsWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> ObsWsMessage | None:
        """Normalize frames into ObsWsMessage; binary frames are not part of the protocol."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return None
        if isinstance(msg, str):
            return ObsWsMessage(ObsWsMessageType.TEXT, msg)
        return ObsWsMessage(ObsWsMessageType.TEXT, str(msg))
