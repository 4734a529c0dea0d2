"""Tests for TorneopalClient."""

from __future__ import annotations

import json

import aiohttp
import pytest

from obs_taso.errors import (
    TorneopalApiError,
    TorneopalAuthError,
    TorneopalConnectionError,
    TorneopalError,
    TorneopalResponseError,
    TorneopalTimeout,
)
from obs_taso.storage import MatchCache
from obs_taso.torneopal import DEFAULT_BASE_URL, TorneopalClient

from .conftest import create_mock_response


def _query(mock_session) -> dict:
    return mock_session.get.call_args.kwargs["params"]


class TestRequest:
    """Tests for TorneopalClient.request()."""

    @pytest.mark.asyncio
    async def test_success(self, mock_session):
        """Test a successful GET returns the decoded body."""
        mock_session.get.return_value = create_mock_response(
            status=200, json_data={"districts": [{"id": "1"}]}
        )
        client = TorneopalClient(mock_session, "key123")

        result = await client.request("getDistricts")

        assert result == {"districts": [{"id": "1"}]}
        assert mock_session.get.call_args.args[0] == DEFAULT_BASE_URL + "getDistricts"
        assert _query(mock_session) == {"api_key": "key123"}

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self, mock_session):
        mock_session.get.return_value = create_mock_response(json_data={})
        client = TorneopalClient(mock_session, "key123")

        await client.request("getClubs", {"district": None, "page": 2})

        assert _query(mock_session) == {"api_key": "key123", "page": "2"}

    @pytest.mark.asyncio
    async def test_missing_api_key(self, mock_session):
        """Test nothing is sent without an API key."""
        client = TorneopalClient(mock_session, None)

        with pytest.raises(TorneopalAuthError, match="API key is required"):
            await client.request("getDistricts")
        mock_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error(self, mock_session):
        mock_session.get.return_value = create_mock_response(
            status=401, reason="Unauthorized"
        )
        client = TorneopalClient(mock_session, "bad")

        with pytest.raises(TorneopalResponseError) as exc_info:
            await client.request("getDistricts")

        assert exc_info.value.status == 401
        assert str(exc_info.value) == "API request failed: 401 Unauthorized"

    @pytest.mark.asyncio
    async def test_api_error_payload(self, mock_session):
        mock_session.get.return_value = create_mock_response(
            json_data={"error": "Invalid match_id"}
        )
        client = TorneopalClient(mock_session, "key123")

        with pytest.raises(TorneopalApiError, match="Invalid match_id"):
            await client.request("getMatch", {"match_id": "x"})

    @pytest.mark.asyncio
    async def test_timeout(self, mock_session):
        mock_session.get.side_effect = TimeoutError()
        client = TorneopalClient(mock_session, "key123")

        with pytest.raises(TorneopalTimeout):
            await client.request("getDistricts")

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_session):
        mock_session.get.side_effect = aiohttp.ClientConnectionError("refused")
        client = TorneopalClient(mock_session, "key123")

        with pytest.raises(TorneopalConnectionError):
            await client.request("getDistricts")


    @pytest.mark.asyncio
    async def test_invalid_json_body(self, mock_session):
        response = create_mock_response()
        response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
        mock_session.get.return_value = response
        client = TorneopalClient(mock_session, "key123")

        with pytest.raises(TorneopalApiError, match="returned invalid JSON"):
            await client.request("getDistricts")

class TestEndpoints:
    """Tests for the endpoint helpers."""

    @pytest.mark.asyncio
    async def test_get_matches_defaults(self, mock_session):
        mock_session.get.return_value = create_mock_response(json_data={"matches": []})
        client = TorneopalClient(mock_session, "key123")

        await client.get_matches()

        assert mock_session.get.call_args.args[0].endswith("/getMatches")
        assert _query(mock_session) == {
            "api_key": "key123",
            "competition_id": "sb2025",
            "category_id": "444",
        }

    @pytest.mark.asyncio
    async def test_get_matches_filters(self, mock_session):
        mock_session.get.return_value = create_mock_response(json_data={"matches": []})
        client = TorneopalClient(mock_session, "key123", competition_id="sb2026")

        await client.get_matches(
            venue_id=12, date_from="2025-09-01", limit=500, official_only=True
        )

        query = _query(mock_session)
        assert query["competition_id"] == "sb2026"
        assert query["venue_id"] == "12"
        assert query["date_from"] == "2025-09-01"
        assert query["per_page"] == "100"
        assert query["official_only"] == "1"
        assert "team_id" not in query

    @pytest.mark.asyncio
    async def test_get_match(self, mock_session):
        mock_session.get.return_value = create_mock_response(
            json_data={"match": {"match_id": "123"}}
        )
        client = TorneopalClient(mock_session, "key123")

        assert await client.get_match("123") == {"match": {"match_id": "123"}}
        assert _query(mock_session)["match_id"] == "123"

    @pytest.mark.asyncio
    async def test_get_teams_skips_empty_filters(self, mock_session):
        mock_session.get.return_value = create_mock_response(json_data={"teams": []})
        client = TorneopalClient(mock_session, "key123")

        await client.get_teams(club_id=5, district="")

        assert _query(mock_session) == {"api_key": "key123", "club_id": "5"}


class TestConnectionCheck:
    """Tests for test_connection()."""

    @pytest.mark.asyncio
    async def test_ok(self, mock_session):
        mock_session.get.return_value = create_mock_response(json_data={"districts": []})
        client = TorneopalClient(mock_session, "key123")

        assert await client.test_connection() == (True, "API connection successful")

    @pytest.mark.asyncio
    async def test_failure(self, mock_session):
        client = TorneopalClient(mock_session, "")

        ok, message = await client.test_connection()

        assert not ok
        assert message == "API key is required"

    @pytest.mark.asyncio
    async def test_invalid_json_reported_as_failure(self, mock_session):
        response = create_mock_response()
        response.json.side_effect = json.JSONDecodeError("Expecting value", "", 0)
        mock_session.get.return_value = response
        client = TorneopalClient(mock_session, "key123")

        ok, message = await client.test_connection()

        assert not ok
        assert "invalid JSON" in message


class TestEnhancedMatch:
    """Tests for get_match_enhanced()."""

    @pytest.mark.asyncio
    async def test_local_match_served_from_cache(self, mock_session, tmp_path):
        cache = MatchCache(tmp_path / "cache.json")
        local = cache.create_local_match(
            date="2025-10-01",
            time="18:30",
            home_team_id=1,
            home_team_data={"team_name": "SPV"},
            away_team_name="Guests",
        )
        client = TorneopalClient(mock_session, "key123")

        assert await client.get_match_enhanced("local-match", cache) == {"match": local}
        mock_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_local_match(self, mock_session, tmp_path):
        client = TorneopalClient(mock_session, "key123")

        with pytest.raises(TorneopalError, match="Local match not found"):
            await client.get_match_enhanced("local-match", MatchCache(tmp_path / "c.json"))

    @pytest.mark.asyncio
    async def test_remote_match(self, mock_session, tmp_path):
        mock_session.get.return_value = create_mock_response(
            json_data={"match": {"match_id": "77"}}
        )
        client = TorneopalClient(mock_session, "key123")

        result = await client.get_match_enhanced("77", MatchCache(tmp_path / "c.json"))

        assert result == {"match": {"match_id": "77"}}
