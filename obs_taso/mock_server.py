"""In-memory stand-in for the broadcast tool's WebSocket server.

Speaks the same protocol as the real tool for the requests the control panel
uses, so the client can be developed and tested without OBS running:
- Hello with an optional authentication challenge
- Identify/Identified, verifying the password only when one is configured
- SetPersistentData / GetPersistentData backed by a dict
- BroadcastCustomEvent fanned out to every identified peer, sender included
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .auth import generate_challenge, verify_auth_response
from .errors import MalformedFrame
from .protocol import (
    CUSTOM_EVENT,
    CloseCode,
    Envelope,
    EventSubscription,
    OpCode,
    RequestStatus,
    build_event,
    build_hello,
    build_identified,
    build_request_response,
    decode,
    encode,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 4455

# Fixed challenge the development server has always advertised.
DEV_CHALLENGE = "devchallengestring"
DEV_SALT = "devsaltstring"


class PersistentDataStore:
    """Persistent data slots keyed by (realm, slot name), kept in memory."""

    def __init__(self) -> None:
        self._slots: dict[tuple[str, str], Any] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def get(self, realm: str, slot_name: str) -> Any:
        return self._slots.get((realm, slot_name))

    def set(self, realm: str, slot_name: str, value: Any) -> None:
        self._slots[(realm, slot_name)] = value

    def clear(self) -> None:
        self._slots.clear()


class RequestFailed(Exception):
    """Raised by a request handler to answer with result=false."""

    def __init__(self, code: int, comment: str) -> None:
        super().__init__(comment)
        self.code = code
        self.comment = comment


@dataclass
class _Peer:
    ws: ServerConnection
    challenge: str | None
    salt: str | None
    identified: bool = False
    event_subscriptions: int = 0

    @property
    def label(self) -> str:
        return str(self.ws.remote_address)


RequestHandler = Callable[[_Peer, dict[str, Any]], Awaitable[dict[str, Any] | None]]


def _require_str(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str):
        raise RequestFailed(
            RequestStatus.MISSING_REQUEST_FIELD,
            f"Your request is missing the `{name}` field.",
        )
    return value


class MockObsServer:
    """Development WebSocket server mimicking OBS WebSocket v5.

    Usage:
        async with MockObsServer(port=0) as server:
            session = ObsSession()
            await session.connect(server.url, password="")
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        password: str | None = None,
        authentication: bool = True,
    ) -> None:
        """Initialize server.

        Args:
            host: Interface to bind
            port: Port to bind, 0 for an ephemeral port
            password: When set, Identify must carry a matching digest
            authentication: Advertise a challenge in Hello
        """
        self.host = host
        self._port = port
        self._password = password
        self._authentication = authentication or password is not None
        self._server: Server | None = None
        self._peers: dict[ServerConnection, _Peer] = {}
        self.store = PersistentDataStore()
        self._handlers: dict[str, RequestHandler] = {
            "SetPersistentData": self._set_persistent_data,
            "GetPersistentData": self._get_persistent_data,
            "BroadcastCustomEvent": self._broadcast_custom_event,
        }

    async def __aenter__(self) -> MockObsServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    @property
    def port(self) -> int:
        """Bound port (the real one when started with port 0)."""
        if self._server is not None and self._server.sockets:
            return int(self._server.sockets[0].getsockname()[1])
        return self._port

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def peer_count(self) -> int:
        return len(self._peers)

    async def start(self) -> None:
        self._server = await serve(self._handle_connection, self.host, self._port)
        _LOGGER.info("Mock OBS WebSocket server running on %s", self.url)

    async def stop(self) -> None:
        if self._server is None:
            return
        _LOGGER.info("Shutting down mock OBS WebSocket server")
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:
            raise RuntimeError("Mock server failed to start")
        await server.serve_forever()

    async def broadcast(
        self,
        envelope: Envelope,
        *,
        subscription: int = EventSubscription.GENERAL,
    ) -> int:
        """Send a frame to every identified peer subscribed to ``subscription``.

        Returns:
            Number of peers the frame was sent to.
        """
        text = encode(envelope)
        sent = 0
        for peer in list(self._peers.values()):
            if not peer.identified or not peer.event_subscriptions & subscription:
                continue
            try:
                await peer.ws.send(text)
                sent += 1
            except ConnectionClosed:
                _LOGGER.debug("Skipping closed peer %s", peer.label)
        return sent

    # -------------------------------------------------------------------------
    # Internal: Connection Handling
    # -------------------------------------------------------------------------

    async def _handle_connection(self, ws: ServerConnection) -> None:
        if self._password is not None:
            challenge, salt = generate_challenge()
        elif self._authentication:
            challenge, salt = DEV_CHALLENGE, DEV_SALT
        else:
            challenge = salt = None

        peer = _Peer(ws=ws, challenge=challenge, salt=salt)
        self._peers[ws] = peer
        _LOGGER.info("Client connected: %s", peer.label)

        try:
            await ws.send(encode(build_hello(challenge=challenge, salt=salt)))
            _LOGGER.debug("Sent Hello to %s", peer.label)
            async for message in ws:
                await self._handle_message(peer, message)
        except ConnectionClosed as err:
            _LOGGER.debug("Connection to %s closed: %s", peer.label, err)
        finally:
            self._peers.pop(ws, None)
            _LOGGER.info("Client disconnected: %s", peer.label)

    async def _handle_message(self, peer: _Peer, message: str | bytes) -> None:
        try:
            envelope = decode(message)
        except MalformedFrame as err:
            _LOGGER.warning("Dropping malformed frame from %s: %s", peer.label, err)
            return

        payload = envelope.d
        if not isinstance(payload, dict):
            _LOGGER.warning("Dropping op %d frame without object payload", envelope.op)
            return

        opcode = envelope.opcode
        if opcode is OpCode.IDENTIFY:
            await self._handle_identify(peer, payload)
        elif opcode is OpCode.REQUEST:
            if not peer.identified:
                await peer.ws.close(CloseCode.NOT_IDENTIFIED, "Not identified")
                return
            await self._handle_request(peer, payload)
        else:
            _LOGGER.info("Unknown op code: %d", envelope.op)

    async def _handle_identify(self, peer: _Peer, payload: dict[str, Any]) -> None:
        _LOGGER.debug("Client %s identifying", peer.label)
        if self._password is not None and not verify_auth_response(
            payload.get("authentication"),
            self._password,
            peer.challenge or "",
            peer.salt or "",
        ):
            _LOGGER.warning("Authentication failed for %s", peer.label)
            await peer.ws.close(CloseCode.AUTHENTICATION_FAILED, "Authentication failed.")
            return

        subscriptions = payload.get("eventSubscriptions", EventSubscription.ALL)
        peer.event_subscriptions = (
            subscriptions if isinstance(subscriptions, int) else int(EventSubscription.ALL)
        )
        peer.identified = True
        await peer.ws.send(encode(build_identified()))
        _LOGGER.info("Client %s identified", peer.label)

    async def _handle_request(self, peer: _Peer, payload: dict[str, Any]) -> None:
        request_type = payload.get("requestType")
        request_id = payload.get("requestId")
        if not isinstance(request_type, str) or not isinstance(request_id, str):
            _LOGGER.warning("Dropping request without requestType/requestId")
            return

        request_data = payload.get("requestData")
        if not isinstance(request_data, dict):
            request_data = {}

        _LOGGER.debug("Handling request: %s", request_type)
        handler = self._handlers.get(request_type)
        if handler is None:
            _LOGGER.info("Unknown request type: %s", request_type)
            response = build_request_response(
                request_type,
                request_id,
                result=False,
                code=RequestStatus.UNKNOWN_REQUEST_TYPE,
                comment=f"Unknown request type: {request_type}",
            )
        else:
            try:
                response_data = await handler(peer, request_data)
            except RequestFailed as err:
                response = build_request_response(
                    request_type,
                    request_id,
                    result=False,
                    code=err.code,
                    comment=err.comment,
                )
            else:
                response = build_request_response(
                    request_type, request_id, response_data=response_data
                )

        await peer.ws.send(encode(response))

    # -------------------------------------------------------------------------
    # Internal: Request Handlers
    # -------------------------------------------------------------------------

    async def _set_persistent_data(
        self, peer: _Peer, data: dict[str, Any]
    ) -> dict[str, Any]:
        realm = _require_str(data, "realm")
        slot_name = _require_str(data, "slotName")
        if "slotValue" not in data:
            raise RequestFailed(
                RequestStatus.MISSING_REQUEST_FIELD,
                "Your request is missing the `slotValue` field.",
            )
        self.store.set(realm, slot_name, data["slotValue"])
        _LOGGER.debug("Stored data in %s:%s", realm, slot_name)
        return {}

    async def _get_persistent_data(
        self, peer: _Peer, data: dict[str, Any]
    ) -> dict[str, Any]:
        realm = _require_str(data, "realm")
        slot_name = _require_str(data, "slotName")
        _LOGGER.debug("Retrieved data from %s:%s", realm, slot_name)
        return {"slotValue": self.store.get(realm, slot_name)}

    async def _broadcast_custom_event(
        self, peer: _Peer, data: dict[str, Any]
    ) -> dict[str, Any]:
        event_data = data.get("eventData")
        if not isinstance(event_data, dict):
            raise RequestFailed(
                RequestStatus.MISSING_REQUEST_FIELD,
                "Your request is missing the `eventData` field.",
            )
        sent = await self.broadcast(build_event(CUSTOM_EVENT, event_data))
        _LOGGER.info(
            "Broadcasted custom event %s to %d client(s)",
            event_data.get("eventName"),
            sent,
        )
        return {}
