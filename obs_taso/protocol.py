"""Wire codec and frame builders for the OBS WebSocket v5 protocol.

Every frame is a JSON object with exactly two top-level fields: ``op``
(the op code) and ``d`` (the payload, whose shape is determined by ``op``).
The codec only checks the envelope; payload validation belongs to whoever
consumes the frame.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Any

from .errors import MalformedFrame

RPC_VERSION = 1
OBS_WEBSOCKET_VERSION = "5.0.0"

GLOBAL_REALM = "OBS_WEBSOCKET_DATA_REALM_GLOBAL"
PROFILE_REALM = "OBS_WEBSOCKET_DATA_REALM_PROFILE"

CUSTOM_EVENT = "CustomEvent"


class OpCode(IntEnum):
    """Envelope op codes."""

    HELLO = 0
    IDENTIFY = 1
    IDENTIFIED = 2
    REIDENTIFY = 3
    EVENT = 5
    REQUEST = 6
    REQUEST_RESPONSE = 7
    REQUEST_BATCH = 8
    REQUEST_BATCH_RESPONSE = 9


class EventSubscription(IntFlag):
    """Event category bits declared in Identify.eventSubscriptions."""

    NONE = 0
    GENERAL = 1 << 0
    CONFIG = 1 << 1
    SCENES = 1 << 2
    INPUTS = 1 << 3
    TRANSITIONS = 1 << 4
    FILTERS = 1 << 5
    OUTPUTS = 1 << 6
    SCENE_ITEMS = 1 << 7
    MEDIA_INPUTS = 1 << 8
    VENDORS = 1 << 9
    UI = 1 << 10
    ALL = (
        GENERAL
        | CONFIG
        | SCENES
        | INPUTS
        | TRANSITIONS
        | FILTERS
        | OUTPUTS
        | SCENE_ITEMS
        | MEDIA_INPUTS
        | VENDORS
        | UI
    )


# Value sent by the control panel since its first release.
DEFAULT_EVENT_SUBSCRIPTIONS = int(EventSubscription.GENERAL | EventSubscription.FILTERS)


class RequestStatus(IntEnum):
    """requestStatus.code values produced by the mock server.

    Unknown request types are answered with 203, as the control panel's
    development server always has.
    """

    SUCCESS = 100
    UNKNOWN_REQUEST_TYPE = 203
    MISSING_REQUEST_FIELD = 300


class CloseCode(IntEnum):
    """WebSocket close codes the broadcast tool uses."""

    UNKNOWN_REASON = 4000
    MESSAGE_DECODE_ERROR = 4002
    UNKNOWN_OP_CODE = 4006
    NOT_IDENTIFIED = 4007
    AUTHENTICATION_FAILED = 4009
    UNSUPPORTED_RPC_VERSION = 4010


@dataclass(frozen=True, slots=True)
class Envelope:
    """A decoded protocol frame."""

    op: int
    d: Any = field(default_factory=dict)

    @property
    def opcode(self) -> OpCode | None:
        """Return the known op code, or None for codes this client does not know."""
        try:
            return OpCode(self.op)
        except ValueError:
            return None


def encode(envelope: Envelope) -> str:
    """Serialize an envelope to its JSON text form."""
    return json.dumps({"op": int(envelope.op), "d": envelope.d})


def decode(text: str | bytes) -> Envelope:
    """Parse JSON text into an envelope.

    Raises:
        MalformedFrame: If the text is not JSON, not an object, or has no
            integer ``op``.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as err:
            raise MalformedFrame("Frame is not valid UTF-8") from err

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as err:
        raise MalformedFrame(f"Frame is not valid JSON: {err.msg}") from err

    if not isinstance(raw, dict):
        raise MalformedFrame(f"Frame must be a JSON object, got {type(raw).__name__}")

    op = raw.get("op")
    # bool is a subclass of int but never a valid op code
    if isinstance(op, bool) or not isinstance(op, int):
        raise MalformedFrame("Frame has no integer 'op' field")

    return Envelope(op=op, d=raw.get("d", {}))


def build_hello(
    *,
    challenge: str | None = None,
    salt: str | None = None,
    rpc_version: int = RPC_VERSION,
    obs_websocket_version: str = OBS_WEBSOCKET_VERSION,
) -> Envelope:
    """Construct a Hello frame, with an authentication block when challenge/salt are given."""
    payload: dict[str, Any] = {
        "obsWebSocketVersion": obs_websocket_version,
        "rpcVersion": rpc_version,
    }
    if challenge is not None and salt is not None:
        payload["authentication"] = {"challenge": challenge, "salt": salt}
    return Envelope(OpCode.HELLO, payload)


def build_identify(
    *,
    event_subscriptions: int = DEFAULT_EVENT_SUBSCRIPTIONS,
    authentication: str | None = None,
    rpc_version: int = RPC_VERSION,
) -> Envelope:
    """Construct an Identify frame.

    The ``authentication`` field is omitted entirely when no digest is given.
    """
    payload: dict[str, Any] = {
        "rpcVersion": rpc_version,
        "eventSubscriptions": int(event_subscriptions),
    }
    if authentication is not None:
        payload["authentication"] = authentication
    return Envelope(OpCode.IDENTIFY, payload)


def build_identified(*, negotiated_rpc_version: int = RPC_VERSION) -> Envelope:
    return Envelope(OpCode.IDENTIFIED, {"negotiatedRpcVersion": negotiated_rpc_version})


def build_event(
    event_type: str, event_data: Any, *, event_intent: int = 0
) -> Envelope:
    return Envelope(
        OpCode.EVENT,
        {"eventType": event_type, "eventIntent": event_intent, "eventData": event_data},
    )


def build_request(
    request_type: str, request_id: str, request_data: dict[str, Any] | None = None
) -> Envelope:
    return Envelope(
        OpCode.REQUEST,
        {
            "requestType": request_type,
            "requestId": request_id,
            "requestData": request_data if request_data is not None else {},
        },
    )


def build_request_response(
    request_type: str,
    request_id: str,
    *,
    result: bool = True,
    code: int = RequestStatus.SUCCESS,
    comment: str = "Success",
    response_data: dict[str, Any] | None = None,
) -> Envelope:
    """Construct a RequestResponse frame."""
    return Envelope(
        OpCode.REQUEST_RESPONSE,
        {
            "requestType": request_type,
            "requestId": request_id,
            "requestStatus": {"result": result, "code": int(code), "comment": comment},
            "responseData": response_data if response_data is not None else {},
        },
    )
