"""Floorball overlay bridge for OBS WebSocket v5."""

__version__ = "0.1.0"

from .auth import compute_auth_response, generate_challenge, verify_auth_response
from .correlator import RequestCorrelator
from .errors import (
    AuthComputationError,
    AuthenticationRequired,
    ConfigError,
    ConnectionLost,
    DuplicateRequestId,
    MalformedFrame,
    NotConnected,
    ObsConnectionError,
    ObsHandshakeError,
    ObsTasoError,
    ObsTimeout,
    RequestRejected,
    SessionBusy,
    TorneopalApiError,
    TorneopalAuthError,
    TorneopalConnectionError,
    TorneopalError,
    TorneopalResponseError,
    TorneopalTimeout,
    TransportClosed,
)
from .events import EventBus, ObsEvent, Subscription
from .match import MatchBroadcaster, default_match_data
from .mock_server import MockObsServer, PersistentDataStore
from .protocol import (
    CUSTOM_EVENT,
    GLOBAL_REALM,
    RPC_VERSION,
    Envelope,
    EventSubscription,
    OpCode,
    decode,
    encode,
)
from .reconnect import ReconnectSupervisor
from .session import ConnectionStatus, ObsSession, SessionState
from .storage import MatchCache
from .torneopal import TorneopalClient
from .ws import connect_websocket
from .ws_client import ObsWsClient, ObsWsMessage, ObsWsMessageType

__all__ = [
    "CUSTOM_EVENT",
    "GLOBAL_REALM",
    "RPC_VERSION",
    "AuthComputationError",
    "AuthenticationRequired",
    "ConfigError",
    "ConnectionLost",
    "ConnectionStatus",
    "DuplicateRequestId",
    "Envelope",
    "EventBus",
    "EventSubscription",
    "MalformedFrame",
    "MatchBroadcaster",
    "MatchCache",
    "MockObsServer",
    "NotConnected",
    "ObsConnectionError",
    "ObsEvent",
    "ObsHandshakeError",
    "ObsSession",
    "ObsTasoError",
    "ObsTimeout",
    "ObsWsClient",
    "ObsWsMessage",
    "ObsWsMessageType",
    "OpCode",
    "PersistentDataStore",
    "ReconnectSupervisor",
    "RequestCorrelator",
    "RequestRejected",
    "SessionBusy",
    "SessionState",
    "Subscription",
    "TorneopalApiError",
    "TorneopalAuthError",
    "TorneopalClient",
    "TorneopalConnectionError",
    "TorneopalError",
    "TorneopalResponseError",
    "TorneopalTimeout",
    "TransportClosed",
    "__version__",
    "compute_auth_response",
    "connect_websocket",
    "decode",
    "default_match_data",
    "encode",
    "generate_challenge",
    "verify_auth_response",
]
