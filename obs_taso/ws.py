"""Opening the WebSocket to the broadcast tool.

Persistent-data slots hold whole match documents and GetPersistentData
echoes them back, so frames are not size capped. The closing handshake is
bounded by ``CLOSE_TIMEOUT``: the session gives disconnect() two seconds and
the reconnect loop must not stall behind a peer that never answers a close.
"""

from __future__ import annotations

import asyncio

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from .errors import (
    ObsConnectionError,
    ObsHandshakeError,
    ObsTimeout,
)

DEFAULT_URL = "ws://localhost:4455"
CLOSE_TIMEOUT = 2.0


async def connect_websocket(
    url: str = DEFAULT_URL,
    *,
    ping_interval: float | None = 20,
    timeout: float = 15.0,
    close_timeout: float = CLOSE_TIMEOUT,
) -> ClientConnection:
    """Open the control connection to an OBS WebSocket v5 server.

    Args:
        url: ws:// URL of the broadcast tool
        ping_interval: Seconds between keepalive pings, None to disable
        timeout: Seconds allowed for TCP connect plus the HTTP upgrade
        close_timeout: Seconds to wait for the peer to answer our close frame

    Raises:
        ObsTimeout: The connection did not open in time.
        ObsHandshakeError: The URL or the HTTP upgrade was rejected.
        ObsConnectionError: Any other network failure.
    """
    try:
        return await asyncio.wait_for(
            connect(
                url,
                ping_interval=ping_interval,
                close_timeout=close_timeout,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise ObsTimeout(f"Opening {url} timed out after {timeout}s") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise ObsHandshakeError(f"{url} rejected the WebSocket upgrade") from err
    except (OSError, WebSocketException) as err:
        raise ObsConnectionError(f"Could not reach {url}: {err}") from err
