"""Match state publishing for the floorball overlay.

The control panel stores the current match in a persistent data slot on the
broadcast tool and announces every change as a CustomEvent, which the overlay
listens for. Each helper here returns False instead of raising when the
broadcast tool cannot be reached, so a dropped connection never takes the
control panel down with it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .errors import ObsTasoError
from .events import ObsEvent, Subscription
from .protocol import CUSTOM_EVENT, GLOBAL_REALM

if TYPE_CHECKING:
    from .session import ObsSession

_LOGGER = logging.getLogger(__name__)

MATCH_SLOT_NAME = "floorball-match"

MATCH_UPDATE = "MatchUpdate"
CLOCK_CONTROL = "ClockControl"
SCORE_UPDATE = "ScoreUpdate"
PENALTY_UPDATE = "PenaltyUpdate"
SHOOTOUT_UPDATE = "ShootoutUpdate"
MATCH_INFO = "MatchInfo"


def default_match_data() -> dict[str, Any]:
    """Empty overlay state shown before any match is loaded."""
    return {
        "homeTeam": {"name": "", "score": 0},
        "awayTeam": {"name": "", "score": 0},
        "period": 1,
        "time": "00:00",
        "lastUpdated": None,
    }


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class MatchBroadcaster:
    """Publish match state to the broadcast tool and follow updates from other panels."""

    def __init__(
        self,
        session: ObsSession,
        *,
        realm: str = GLOBAL_REALM,
        slot_name: str = MATCH_SLOT_NAME,
    ) -> None:
        self._session = session
        self._realm = realm
        self._slot_name = slot_name
        self.match_data: dict[str, Any] = default_match_data()
        self._match_update_callbacks: list[Callable[[dict[str, Any]], None]] = []
        self._custom_callbacks: dict[str, list[Callable[[Any], None]]] = {}
        self._subscription: Subscription = session.subscribe(
            CUSTOM_EVENT, self._handle_custom_event
        )

    def close(self) -> None:
        """Stop following CustomEvents on the session."""
        self._subscription.cancel()

    def on_match_update(self, callback: Callable[[dict[str, Any]], None]) -> None:
        """Register callback for MatchUpdate events; receives the new match data."""
        self._match_update_callbacks.append(callback)

    def on_custom_event(self, event_name: str, callback: Callable[[Any], None]) -> None:
        """Register callback for a named CustomEvent; receives its eventData."""
        self._custom_callbacks.setdefault(event_name, []).append(callback)

    # -------------------------------------------------------------------------
    # Public API: Match Data
    # -------------------------------------------------------------------------

    async def set_match_data(self, data: dict[str, Any]) -> bool:
        """Store match data in the persistent slot and broadcast a MatchUpdate."""
        try:
            await self._session.send_request(
                "SetPersistentData",
                {
                    "realm": self._realm,
                    "slotName": self._slot_name,
                    "slotValue": data,
                },
            )
            await self._broadcast(MATCH_UPDATE, data)
        except ObsTasoError as err:
            _LOGGER.error("Failed to set match data: %s", err)
            return False

        self.match_data = data
        return True

    async def get_match_data(self) -> dict[str, Any] | None:
        """Fetch the stored match data, or None when nothing is stored."""
        try:
            response = await self._session.send_request(
                "GetPersistentData",
                {"realm": self._realm, "slotName": self._slot_name},
            )
        except ObsTasoError as err:
            _LOGGER.error("Failed to get match data: %s", err)
            return None

        value = response.get("slotValue")
        if not value:
            return None
        self.match_data = value
        return value

    # -------------------------------------------------------------------------
    # Public API: Live Updates
    # -------------------------------------------------------------------------

    async def send_clock_control(self, action: str, **data: Any) -> bool:
        """Broadcast a clock action such as "start", "stop" or "set"."""
        return await self._send_update(
            CLOCK_CONTROL, {"action": action, **data}, "clock control"
        )

    async def send_score_update(self, home_score: int, away_score: int) -> bool:
        return await self._send_update(
            SCORE_UPDATE,
            {"homeScore": home_score, "awayScore": away_score},
            "score update",
        )

    async def send_penalty_update(
        self, home_penalties: list[Any], away_penalties: list[Any]
    ) -> bool:
        return await self._send_update(
            PENALTY_UPDATE,
            {"homePenalties": home_penalties, "awayPenalties": away_penalties},
            "penalty update",
        )

    async def send_shootout_update(
        self, home_attempts: list[Any], away_attempts: list[Any]
    ) -> bool:
        return await self._send_update(
            SHOOTOUT_UPDATE,
            {"homeAttempts": home_attempts, "awayAttempts": away_attempts},
            "shootout update",
        )

    async def send_match_info(self, match_info: dict[str, Any]) -> bool:
        return await self._send_update(MATCH_INFO, dict(match_info), "match info")

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    async def _send_update(self, event_name: str, data: dict[str, Any], what: str) -> bool:
        data["timestamp"] = _timestamp_ms()
        try:
            await self._broadcast(event_name, data)
        except ObsTasoError as err:
            _LOGGER.error("Failed to send %s: %s", what, err)
            return False
        return True

    async def _broadcast(self, event_name: str, data: Any) -> None:
        await self._session.send_request(
            "BroadcastCustomEvent",
            {"eventData": {"eventName": event_name, "eventData": data}},
        )

    def _handle_custom_event(self, event: ObsEvent) -> None:
        custom = event.event_data
        if not isinstance(custom, dict):
            return
        event_name = custom.get("eventName")
        data = custom.get("eventData")

        if event_name == MATCH_UPDATE and isinstance(data, dict):
            self.match_data = data
            for callback in list(self._match_update_callbacks):
                try:
                    callback(data)
                except Exception as err:
                    _LOGGER.exception("Match update callback error: %s", err)

        for callback in list(self._custom_callbacks.get(event_name, ())):
            try:
                callback(data)
            except Exception as err:
                _LOGGER.exception("%s callback error: %s", event_name, err)
