"""Session manager for the OBS WebSocket v5 control connection.

This module provides the API the control panel uses to talk to the
broadcast tool. It handles:
- Connection lifecycle and the Hello/Identify handshake
- Challenge-response authentication
- Request/response correlation
- Event fan-out to registered listeners
- Fixed-interval reconnection after unplanned disconnects

All session state is owned by one event loop. A single listener task reads
frames and processes them strictly in arrival order.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from .auth import compute_auth_response
from .correlator import RequestCorrelator
from .errors import (
    AuthComputationError,
    AuthenticationRequired,
    ConnectionLost,
    MalformedFrame,
    NotConnected,
    ObsConnectionError,
    ObsTasoError,
    ObsTimeout,
    SessionBusy,
    TransportClosed,
)
from .events import EventBus, EventCallback, ObsEvent, Subscription
from .protocol import (
    DEFAULT_EVENT_SUBSCRIPTIONS,
    Envelope,
    OpCode,
    build_identify,
    build_request,
    decode,
)
from .reconnect import DEFAULT_RECONNECT_INTERVAL, ReconnectSupervisor
from .ws import DEFAULT_URL
from .ws_client import ObsWsClient, ObsWsMessageType

if TYPE_CHECKING:
    from .config import ObsConfig

_LOGGER = logging.getLogger(__name__)

_UNSET: Any = object()


class SessionState(Enum):
    """Protocol state of the session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_IDENTIFY = "awaiting_identify"
    IDENTIFIED = "identified"


class ConnectionStatus(Enum):
    """Coarse connection signal for user interfaces."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ObsSession:
    """Client session for the broadcast tool.

    Usage:
        session = ObsSession()
        await session.connect("ws://localhost:4455", password="secret")
        session.add_event_listener("CustomEvent", my_handler)
        data = await session.send_request("GetPersistentData", {...})
        await session.disconnect()
    """

    def __init__(
        self,
        *,
        name: str = "obs",
        reconnect: bool = True,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
        identify_timeout: float | None = 10.0,
        request_timeout: float | None = None,
        connect_timeout: float = 15.0,
        ping_interval: float | None = 20,
        event_subscriptions: int = DEFAULT_EVENT_SUBSCRIPTIONS,
    ) -> None:
        """Initialize session.

        Args:
            name: Label used in log messages
            reconnect: Retry automatically after unplanned disconnects
            reconnect_interval: Seconds between reconnection attempts
            identify_timeout: Seconds to wait for the handshake to finish
            request_timeout: Default seconds to wait for a response, None to wait forever
            connect_timeout: Seconds to wait for the WebSocket to open
            ping_interval: Keepalive ping interval, None to disable
            event_subscriptions: Identify.eventSubscriptions bitmask
        """
        self.name = name
        self.event_subscriptions = int(event_subscriptions)

        self._reconnect_enabled = reconnect
        self._identify_timeout = identify_timeout
        self._request_timeout = request_timeout
        self._connect_timeout = connect_timeout
        self._ping_interval = ping_interval

        # Connection state
        self._ws: ObsWsClient | None = None
        self._state = SessionState.DISCONNECTED
        self._status = ConnectionStatus.DISCONNECTED
        self._listen_task: asyncio.Task[None] | None = None
        self._connect_future: asyncio.Future[None] | None = None
        self._url: str | None = None
        self._password: str | None = None
        self._planned_close = False
        self._close_status = ConnectionStatus.DISCONNECTED

        # Protocol state
        self._negotiated_rpc_version: int | None = None
        self._request_ids = itertools.count(1)
        self._correlator = RequestCorrelator()
        self._events = EventBus()

        self._supervisor = ReconnectSupervisor(
            self._reconnect_once, interval=reconnect_interval, name=name
        )

        # Callbacks
        self._status_callback: Callable[[ConnectionStatus], None] | None = None

    @classmethod
    def from_config(cls, config: ObsConfig, *, name: str = "obs") -> ObsSession:
        """Build a session from the ``obs`` section of the configuration."""
        return cls(
            name=name,
            reconnect=config.reconnect,
            reconnect_interval=config.reconnect_interval,
            identify_timeout=config.identify_timeout,
            request_timeout=config.request_timeout,
            event_subscriptions=config.event_subscriptions,
        )

    async def __aenter__(self) -> ObsSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_identified(self) -> bool:
        return self._state is SessionState.IDENTIFIED

    @property
    def negotiated_rpc_version(self) -> int | None:
        return self._negotiated_rpc_version

    @property
    def url(self) -> str | None:
        """URL of the last connection attempt."""
        return self._url

    @property
    def reconnecting(self) -> bool:
        return self._supervisor.running

    @property
    def pending_requests(self) -> int:
        return len(self._correlator)

    async def connect(self, url: str = DEFAULT_URL, password: str | None = None) -> None:
        """Connect and identify with the broadcast tool.

        Returns once the server has answered Identify with Identified.

        Args:
            url: WebSocket URL of the broadcast tool
            password: Shared secret; None when the server needs no authentication

        Raises:
            SessionBusy: The session is not disconnected.
            AuthenticationRequired: The server wants a password and none was given.
            AuthComputationError: The authentication digest could not be computed.
            TransportClosed: The transport failed or closed before identification.
        """
        if self._state is not SessionState.DISCONNECTED:
            raise SessionBusy(f"Cannot connect while {self._state.value}")

        await self._supervisor.cancel()
        self._url = url
        self._password = password
        await self._open(url, password)

    async def disconnect(self) -> None:
        """Close the session without scheduling a reconnect."""
        await self._supervisor.cancel()

        ws = self._ws
        if ws is None:
            self._set_state(SessionState.DISCONNECTED)
            self._set_status(ConnectionStatus.DISCONNECTED)
            return

        _LOGGER.info("[%s] Disconnecting", self.name)
        self._planned_close = True
        self._close_status = ConnectionStatus.DISCONNECTED
        try:
            await asyncio.wait_for(ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] WebSocket close timed out", self.name)

        task = self._listen_task
        if task is not None and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(task, timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] Listener did not stop in time", self.name)

        # Listener never ran its close handling (e.g. it was still starting)
        if self._ws is ws:
            self._handle_transport_closed(ws, error=False)

    def on_connection_status_changed(
        self, callback: Callable[[ConnectionStatus], None]
    ) -> None:
        """Register callback for connection status changes.

        Callback receives ConnectionStatus: DISCONNECTED, CONNECTING, CONNECTED, ERROR
        """
        self._status_callback = callback

    # -------------------------------------------------------------------------
    # Public API: Requests and Events
    # -------------------------------------------------------------------------

    async def send_request(
        self,
        request_type: str,
        request_data: dict[str, Any] | None = None,
        *,
        timeout: float | None = _UNSET,
    ) -> dict[str, Any]:
        """Send a request and wait for its response data.

        Args:
            request_type: Request type, e.g. "SetPersistentData"
            request_data: Request fields
            timeout: Seconds to wait; defaults to the session's request_timeout

        Raises:
            NotConnected: The session is not identified. Nothing is sent.
            RequestRejected: The server answered with result=false.
            ConnectionLost: The connection dropped before the response arrived.
            ObsTimeout: No response within the timeout.
        """
        ws = self._ws
        if self._state is not SessionState.IDENTIFIED or ws is None:
            raise NotConnected(
                f"Cannot send {request_type} while {self._state.value}"
            )

        request_id = str(next(self._request_ids))
        future = self._correlator.register(request_id)

        try:
            await ws.send_envelope(build_request(request_type, request_id, request_data))
        except ObsConnectionError as err:
            self._correlator.discard(request_id)
            if future.done() and not future.cancelled():
                future.exception()
            raise ConnectionLost(f"Failed to send {request_type}") from err

        _LOGGER.debug("[%s] Request %s sent: %s", self.name, request_id, request_type)

        if timeout is _UNSET:
            timeout = self._request_timeout

        try:
            if timeout is None:
                return await future
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except TimeoutError as err:
            self._correlator.discard(request_id)
            raise ObsTimeout(
                f"{request_type} (request {request_id}) timed out after {timeout}s"
            ) from err
        except asyncio.CancelledError:
            self._correlator.discard(request_id)
            raise

    def add_event_listener(self, event_type: str, callback: EventCallback) -> None:
        self._events.add_listener(event_type, callback)

    def remove_event_listener(self, event_type: str, callback: EventCallback) -> bool:
        return self._events.remove_listener(event_type, callback)

    def subscribe(self, event_type: str, callback: EventCallback) -> Subscription:
        """Register a listener and return a handle whose cancel() removes it."""
        return self._events.subscribe(event_type, callback)

    async def wait_for_listeners(self) -> None:
        """Wait until coroutine event listeners started so far have finished."""
        await self._events.drain()

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        if self._state is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.name, self._state.value, state.value
            )
            self._state = state

    def _set_status(self, status: ConnectionStatus) -> None:
        """Update connection status and notify callback."""
        if self._status is status:
            return
        self._status = status
        if self._status_callback:
            try:
                self._status_callback(status)
            except Exception as err:
                _LOGGER.exception("[%s] Status callback error: %s", self.name, err)

    async def _reconnect_once(self) -> bool:
        """Single reconnection attempt driven by the supervisor.

        Returns whether the session is still identified once the handshake
        settles; a peer that closes straight after Identified yields False.
        """
        if self._state is SessionState.IDENTIFIED:
            return True
        if self._state is not SessionState.DISCONNECTED:
            raise SessionBusy(f"Connection attempt already {self._state.value}")
        await self._open(self._url or DEFAULT_URL, self._password)
        return self.is_identified

    async def _open(self, url: str, password: str | None) -> None:
        self._set_state(SessionState.CONNECTING)
        self._set_status(ConnectionStatus.CONNECTING)
        self._planned_close = False
        self._close_status = ConnectionStatus.DISCONNECTED

        _LOGGER.info("[%s] Connecting to %s", self.name, url)
        ws = ObsWsClient()
        try:
            await ws.connect(
                url, ping_interval=self._ping_interval, timeout=self._connect_timeout
            )
        except TransportClosed as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.name, err)
            self._set_state(SessionState.DISCONNECTED)
            self._set_status(ConnectionStatus.ERROR)
            self._schedule_reconnect()
            raise

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        self._connect_future = future
        self._ws = ws

        _LOGGER.info("[%s] WebSocket opened, waiting for Hello", self.name)
        self._listen_task = asyncio.create_task(self._listen(ws))

        try:
            if self._identify_timeout is None:
                await future
            else:
                await asyncio.wait_for(asyncio.shield(future), self._identify_timeout)
        except TimeoutError:
            if future.done():
                future.result()
                return
            _LOGGER.warning("[%s] Handshake timed out", self.name)
            timeout_error = ObsTimeout(
                f"No Identified from {url} within {self._identify_timeout}s"
            )
            future.set_exception(timeout_error)
            future.exception()
            self._close_status = ConnectionStatus.ERROR
            await ws.close()
            raise timeout_error from None
        except asyncio.CancelledError:
            self._planned_close = True
            await ws.close()
            raise

    def _schedule_reconnect(self) -> None:
        if self._reconnect_enabled:
            self._supervisor.start()

    def _handle_transport_closed(self, ws: ObsWsClient, *, error: bool) -> None:
        """Tear down after the transport closed, whoever closed it."""
        if self._ws is not ws:
            return
        self._ws = None
        self._listen_task = None
        self._negotiated_rpc_version = None
        planned = self._planned_close
        self._planned_close = False
        self._set_state(SessionState.DISCONNECTED)

        future = self._connect_future
        self._connect_future = None
        if future is not None and not future.done():
            future.set_exception(
                TransportClosed("Connection closed before identification")
            )

        failed = self._correlator.fail_all("Connection lost")
        if failed:
            _LOGGER.warning("[%s] %d request(s) lost with the connection", self.name, failed)

        if error:
            self._set_status(ConnectionStatus.ERROR)
        else:
            self._set_status(self._close_status)

        if not planned:
            self._schedule_reconnect()

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws: ObsWsClient) -> None:
        """Read frames until the transport closes."""
        message_count = 0
        error = False

        try:
            async for msg in ws:
                if msg.type is ObsWsMessageType.TEXT:
                    message_count += 1
                    try:
                        envelope = decode(msg.data or "")
                    except MalformedFrame as err:
                        _LOGGER.warning("[%s] Dropping malformed frame: %s", self.name, err)
                        continue
                    try:
                        await self._handle_envelope(ws, envelope)
                    except ObsTasoError as err:
                        _LOGGER.warning("[%s] Failed to handle frame: %s", self.name, err)
                    except Exception:
                        _LOGGER.exception(
                            "[%s] Unexpected error handling op %s frame",
                            self.name,
                            envelope.op,
                        )

                elif msg.type is ObsWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed", self.name)
                    break

                elif msg.type is ObsWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error", self.name)
                    error = True
                    break

        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self.name, message_count
            )
            raise
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected error: %s", self.name, err)
            error = True
        finally:
            self._handle_transport_closed(ws, error=error)

    async def _handle_envelope(self, ws: ObsWsClient, envelope: Envelope) -> None:
        opcode = envelope.opcode
        payload = envelope.d
        if not isinstance(payload, dict):
            _LOGGER.warning(
                "[%s] Dropping op %d frame with non-object payload", self.name, envelope.op
            )
            return

        if opcode is OpCode.HELLO:
            await self._handle_hello(ws, payload)
        elif opcode is OpCode.IDENTIFIED:
            self._handle_identified(payload)
        elif opcode is OpCode.EVENT:
            self._handle_event(payload)
        elif opcode is OpCode.REQUEST_RESPONSE:
            self._correlator.resolve(payload)
        else:
            _LOGGER.debug("[%s] Ignoring op %d frame", self.name, envelope.op)

    # -------------------------------------------------------------------------
    # Internal: Protocol Handlers
    # -------------------------------------------------------------------------

    async def _handle_hello(self, ws: ObsWsClient, payload: dict[str, Any]) -> None:
        """Answer Hello with Identify, computing the auth digest when asked to."""
        self._set_state(SessionState.AWAITING_IDENTIFY)
        _LOGGER.debug(
            "[%s] Hello from server %s (rpc v%s)",
            self.name,
            payload.get("obsWebSocketVersion"),
            payload.get("rpcVersion"),
        )

        if payload.get("authentication") is None:
            _LOGGER.debug("[%s] No authentication required", self.name)
            await ws.send_envelope(
                build_identify(event_subscriptions=self.event_subscriptions)
            )
            return

        if self._password is None:
            _LOGGER.error(
                "[%s] Authentication required but no password provided", self.name
            )
            await self._abort_handshake(
                ws,
                AuthenticationRequired(
                    "Authentication required but no password provided"
                ),
            )
            return

        authentication = payload["authentication"]
        challenge = salt = None
        if isinstance(authentication, dict):
            challenge = authentication.get("challenge")
            salt = authentication.get("salt")
        if not isinstance(challenge, str) or not isinstance(salt, str):
            err = AuthComputationError("Hello authentication block is malformed")
            _LOGGER.error("[%s] Authentication failed: %s", self.name, err)
            await self._abort_handshake(ws, err)
            return
        try:
            digest = compute_auth_response(self._password, challenge, salt)
        except AuthComputationError as err:
            _LOGGER.error("[%s] Authentication failed: %s", self.name, err)
            await self._abort_handshake(ws, err)
            return

        await ws.send_envelope(
            build_identify(
                event_subscriptions=self.event_subscriptions, authentication=digest
            )
        )

    async def _abort_handshake(self, ws: ObsWsClient, err: ObsTasoError) -> None:
        future = self._connect_future
        if future is not None and not future.done():
            future.set_exception(err)
        # Retrying with the same credentials cannot succeed
        self._planned_close = True
        self._close_status = ConnectionStatus.ERROR
        self._set_status(ConnectionStatus.ERROR)
        await ws.close()

    def _handle_identified(self, payload: dict[str, Any]) -> None:
        version = payload.get("negotiatedRpcVersion")
        self._negotiated_rpc_version = version if isinstance(version, int) else None
        self._set_state(SessionState.IDENTIFIED)
        self._set_status(ConnectionStatus.CONNECTED)
        _LOGGER.info(
            "[%s] Identified (rpc v%s)", self.name, self._negotiated_rpc_version
        )

        future = self._connect_future
        self._connect_future = None
        if future is not None and not future.done():
            future.set_result(None)

    def _handle_event(self, payload: dict[str, Any]) -> None:
        try:
            event = ObsEvent.from_payload(payload)
        except ValueError as err:
            _LOGGER.warning("[%s] Invalid event: %s", self.name, err)
            return
        self._events.dispatch(event)
