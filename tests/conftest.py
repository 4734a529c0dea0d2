"""Pytest configuration and fixtures for obs_taso tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from obs_taso.mock_server import MockObsServer
from obs_taso.protocol import Envelope, OpCode, build_identified, encode
from obs_taso.ws_client import ObsWsMessage, ObsWsMessageType


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    reason: str = "OK",
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        reason: HTTP reason phrase

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.reason = reason

    if json_data is not None:
        response.json.return_value = json_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


class FakeWsClient:
    """In-memory stand-in for ObsWsClient driven by the test.

    Frames queued with feed() are yielded by async iteration; close() ends
    the iteration with a CLOSED message. When ``auto_identify`` is set, an
    Identify frame is answered with Identified straight away.
    """

    def __init__(
        self,
        *,
        auto_identify: bool = True,
        connect_error: Exception | None = None,
    ) -> None:
        self.sent: list[Envelope] = []
        self.closed = False
        self.connect_calls: list[str] = []
        self._auto_identify = auto_identify
        self._connect_error = connect_error
        self._queue: asyncio.Queue[ObsWsMessage] = asyncio.Queue()

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_calls.append(url)
        if self._connect_error is not None:
            raise self._connect_error

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(ObsWsMessage(ObsWsMessageType.CLOSED))

    async def send_envelope(self, envelope: Envelope) -> None:
        self.sent.append(envelope)
        if self._auto_identify and envelope.op == OpCode.IDENTIFY:
            self.feed(build_identified())

    def feed(self, envelope: Envelope) -> None:
        self._queue.put_nowait(ObsWsMessage(ObsWsMessageType.TEXT, encode(envelope)))

    def feed_raw(self, text: str) -> None:
        self._queue.put_nowait(ObsWsMessage(ObsWsMessageType.TEXT, text))

    def drop(self, *, error: bool = False) -> None:
        """Simulate the peer going away."""
        kind = ObsWsMessageType.ERROR if error else ObsWsMessageType.CLOSED
        self._queue.put_nowait(ObsWsMessage(kind))

    def sent_ops(self, op: int) -> list[Envelope]:
        return [env for env in self.sent if env.op == op]

    def __aiter__(self) -> AsyncIterator[ObsWsMessage]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[ObsWsMessage]:
        while True:
            msg = await self._queue.get()
            yield msg
            if msg.type is not ObsWsMessageType.TEXT:
                return


@pytest.fixture
async def mock_server() -> AsyncIterator[MockObsServer]:
    """Mock broadcast-tool server on an ephemeral port, accepting any password."""
    async with MockObsServer("127.0.0.1", 0) as server:
        yield server


@pytest.fixture
async def open_server() -> AsyncIterator[MockObsServer]:
    """Mock server that does not ask for authentication."""
    async with MockObsServer("127.0.0.1", 0, authentication=False) as server:
        yield server
