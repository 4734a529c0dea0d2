"""Tests for MatchBroadcaster."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from obs_taso.errors import ConnectionLost, NotConnected
from obs_taso.events import ObsEvent
from obs_taso.match import MATCH_SLOT_NAME, MatchBroadcaster, default_match_data
from obs_taso.protocol import CUSTOM_EVENT, GLOBAL_REALM
from obs_taso.session import ObsSession

from .conftest import wait_until


@pytest.fixture
def session() -> MagicMock:
    """Create a mock ObsSession."""
    session = MagicMock(spec=ObsSession)
    session.send_request = AsyncMock(return_value={})
    return session


def _custom_event(event_name, data):
    return ObsEvent(CUSTOM_EVENT, 0, {"eventName": event_name, "eventData": data})


class TestMatchData:
    """Tests for storing and fetching match data."""

    async def test_set_match_data(self, session):
        broadcaster = MatchBroadcaster(session)
        data = {"homeTeam": {"name": "SPV", "score": 1}}

        assert await broadcaster.set_match_data(data)

        assert session.send_request.await_args_list[0].args == (
            "SetPersistentData",
            {"realm": GLOBAL_REALM, "slotName": MATCH_SLOT_NAME, "slotValue": data},
        )
        assert session.send_request.await_args_list[1].args == (
            "BroadcastCustomEvent",
            {"eventData": {"eventName": "MatchUpdate", "eventData": data}},
        )
        assert broadcaster.match_data == data

    async def test_set_match_data_failure(self, session):
        session.send_request.side_effect = NotConnected("not identified")
        broadcaster = MatchBroadcaster(session)

        assert not await broadcaster.set_match_data({"period": 2})
        assert broadcaster.match_data == default_match_data()

    async def test_get_match_data(self, session):
        stored = {"period": 3}
        session.send_request.return_value = {"slotValue": stored}
        broadcaster = MatchBroadcaster(session)

        assert await broadcaster.get_match_data() == stored
        session.send_request.assert_awaited_once_with(
            "GetPersistentData", {"realm": GLOBAL_REALM, "slotName": MATCH_SLOT_NAME}
        )
        assert broadcaster.match_data == stored

    async def test_get_match_data_empty_slot(self, session):
        session.send_request.return_value = {"slotValue": None}
        assert await MatchBroadcaster(session).get_match_data() is None

    async def test_get_match_data_failure(self, session):
        session.send_request.side_effect = ConnectionLost("gone")
        assert await MatchBroadcaster(session).get_match_data() is None


class TestLiveUpdates:
    """Tests for the CustomEvent helpers."""

    async def test_clock_control(self, session):
        assert await MatchBroadcaster(session).send_clock_control("start", time="12:00")

        request_type, request_data = session.send_request.await_args.args
        assert request_type == "BroadcastCustomEvent"
        event = request_data["eventData"]
        assert event["eventName"] == "ClockControl"
        assert event["eventData"]["action"] == "start"
        assert event["eventData"]["time"] == "12:00"
        assert isinstance(event["eventData"]["timestamp"], int)

    async def test_score_update(self, session):
        await MatchBroadcaster(session).send_score_update(2, 1)

        event = session.send_request.await_args.args[1]["eventData"]
        assert event["eventName"] == "ScoreUpdate"
        assert event["eventData"]["homeScore"] == 2
        assert event["eventData"]["awayScore"] == 1

    async def test_penalty_and_shootout(self, session):
        broadcaster = MatchBroadcaster(session)
        await broadcaster.send_penalty_update([{"player": 7}], [])
        await broadcaster.send_shootout_update([True], [False])

        names = [
            call.args[1]["eventData"]["eventName"]
            for call in session.send_request.await_args_list
        ]
        assert names == ["PenaltyUpdate", "ShootoutUpdate"]

    async def test_match_info_does_not_mutate_input(self, session):
        info = {"venue": "Energia Areena"}
        await MatchBroadcaster(session).send_match_info(info)
        assert info == {"venue": "Energia Areena"}

    async def test_failure_returns_false(self, session):
        session.send_request.side_effect = NotConnected("not identified")
        assert not await MatchBroadcaster(session).send_score_update(0, 0)


class TestInboundEvents:
    """Tests for following updates from other panels."""

    def test_subscribes_to_custom_events(self, session):
        broadcaster = MatchBroadcaster(session)
        session.subscribe.assert_called_once_with(
            CUSTOM_EVENT, broadcaster._handle_custom_event
        )

        broadcaster.close()
        session.subscribe.return_value.cancel.assert_called_once()

    def test_match_update_replaces_state(self, session):
        broadcaster = MatchBroadcaster(session)
        callback = MagicMock()
        broadcaster.on_match_update(callback)

        broadcaster._handle_custom_event(_custom_event("MatchUpdate", {"period": 2}))

        assert broadcaster.match_data == {"period": 2}
        callback.assert_called_once_with({"period": 2})

    def test_named_callbacks(self, session):
        broadcaster = MatchBroadcaster(session)
        clock = MagicMock()
        broadcaster.on_custom_event("ClockControl", clock)

        broadcaster._handle_custom_event(_custom_event("ClockControl", {"action": "stop"}))
        broadcaster._handle_custom_event(_custom_event("ScoreUpdate", {"homeScore": 1}))

        clock.assert_called_once_with({"action": "stop"})

    def test_ignores_non_object_payload(self, session):
        broadcaster = MatchBroadcaster(session)
        broadcaster._handle_custom_event(ObsEvent(CUSTOM_EVENT, 0, "text"))
        assert broadcaster.match_data == default_match_data()


class TestAgainstMockServer:
    """MatchBroadcaster over a real session."""

    async def test_two_panels_share_match_state(self, mock_server):
        async with (
            ObsSession(name="panel", reconnect=False) as panel,
            ObsSession(name="overlay", reconnect=False) as overlay,
        ):
            await panel.connect(mock_server.url, password="")
            await overlay.connect(mock_server.url, password="")
            publisher = MatchBroadcaster(panel)
            follower = MatchBroadcaster(overlay)
            updates = []
            follower.on_match_update(updates.append)

            assert await follower.get_match_data() is None

            data = {"homeTeam": {"name": "SPV", "score": 4}, "period": 2}
            assert await publisher.set_match_data(data)

            await wait_until(lambda: updates)
            assert follower.match_data == data
            assert await follower.get_match_data() == data
