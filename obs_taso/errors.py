"""Error types for the OBS control session and its collaborators."""

from __future__ import annotations


class ObsTasoError(Exception):
    """Base error for obs_taso failures."""


class MalformedFrame(ObsTasoError):
    """Inbound frame is not a well-formed op-coded envelope."""


class AuthenticationRequired(ObsTasoError):
    """Server demands challenge-response authentication but no password was given."""


class AuthComputationError(ObsTasoError):
    """The authentication digest could not be computed."""


class NotConnected(ObsTasoError):
    """Session operation invoked before the session is identified."""


class SessionBusy(ObsTasoError):
    """connect() called while the session is not disconnected."""


class ConnectionLost(ObsTasoError):
    """Connection dropped while a request was outstanding."""


class DuplicateRequestId(ObsTasoError):
    """A request id is already outstanding."""


class RequestRejected(ObsTasoError):
    """Server answered a request with requestStatus.result == false."""

    def __init__(
        self, code: int, comment: str, *, request_type: str | None = None
    ) -> None:
        message = f"Request rejected ({code})"
        if request_type:
            message = f"{request_type} rejected ({code})"
        if comment:
            message = f"{message}: {comment}"
        super().__init__(message)
        self.code = code
        self.comment = comment
        self.request_type = request_type


class TransportClosed(ObsTasoError):
    """Transport closed before the handshake completed."""


class ObsConnectionError(TransportClosed):
    """Network connection to the broadcast tool failed."""


class ObsTimeout(ObsConnectionError):
    """Timeout while communicating with the broadcast tool."""


class ObsHandshakeError(ObsConnectionError):
    """WebSocket handshake failed."""


class ConfigError(ObsTasoError):
    """Configuration file could not be interpreted."""


class TorneopalError(ObsTasoError):
    """Base error for Torneopal REST API failures."""


class TorneopalAuthError(TorneopalError):
    """No API key is configured."""


class TorneopalTimeout(TorneopalError):
    """Timeout while talking to the Torneopal API."""


class TorneopalConnectionError(TorneopalError):
    """Network connection to the Torneopal API failed."""


class TorneopalApiError(TorneopalError):
    """The API answered with an error payload."""


class TorneopalResponseError(TorneopalError):
    """HTTP response error from the Torneopal API."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
