"""HTTP client for the Torneopal (Taso) floorball results API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import aiohttp

from .errors import (
    TorneopalApiError,
    TorneopalAuthError,
    TorneopalConnectionError,
    TorneopalError,
    TorneopalResponseError,
    TorneopalTimeout,
)

if TYPE_CHECKING:
    from .storage import MatchCache

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://salibandy.api.torneopal.com/taso/rest/"
DEFAULT_COMPETITION_ID = "sb2025"
DEFAULT_CATEGORY_ID = 444
MAX_PAGE_SIZE = 100


class TorneopalClient:
    """HTTP client wrapper for the Torneopal REST endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        competition_id: str = DEFAULT_COMPETITION_ID,
        category_id: int = DEFAULT_CATEGORY_ID,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self.api_key = api_key or ""
        self._base_url = base_url
        self._competition_id = competition_id
        self._category_id = category_id
        self._timeout = timeout

    def _url(self, endpoint: str) -> str:
        return urljoin(self._base_url, endpoint)

    async def request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET an endpoint with the API key and any non-None parameters.

        Raises:
            TorneopalAuthError: No API key is set. Nothing is sent.
            TorneopalResponseError: Non-200 HTTP status.
            TorneopalApiError: The response body is not JSON or carries an
                ``error`` field.
            TorneopalTimeout: The request timed out.
            TorneopalConnectionError: Any other network failure.
        """
        if not self.api_key:
            raise TorneopalAuthError("API key is required")

        query: dict[str, str] = {"api_key": self.api_key}
        for key, value in (params or {}).items():
            if value is None:
                continue
            query[key] = str(value)

        url = self._url(endpoint)
        try:
            async with self._session.get(
                url,
                params=query,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    raise TorneopalResponseError(
                        resp.status,
                        f"API request failed: {resp.status} {resp.reason or ''}".rstrip(),
                    )
                data = await resp.json()
        except TimeoutError as err:
            raise TorneopalTimeout(f"{endpoint} request timed out") from err
        except aiohttp.ClientError as err:
            raise TorneopalConnectionError(f"{endpoint} request failed") from err
        except ValueError as err:
            raise TorneopalApiError(f"{endpoint} returned invalid JSON") from err

        if isinstance(data, dict) and data.get("error"):
            raise TorneopalApiError(f"API error: {data['error']}")
        return data

    async def get_districts(self) -> Any:
        return await self.request("getDistricts")

    async def get_clubs(self, district: str | None = None) -> Any:
        return await self.request("getClubs", {"district": district})

    async def get_venues(
        self, district: str | None = None, club_id: str | int | None = None
    ) -> Any:
        return await self.request("getVenues", {"district": district, "club_id": club_id})

    async def get_matches(
        self,
        *,
        venue_id: str | int | None = None,
        team_id: str | int | None = None,
        club_id: str | int | None = None,
        category: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int | None = None,
        page: int | None = None,
        official_only: bool = False,
    ) -> Any:
        """Search matches in the configured competition and category.

        Args:
            venue_id: Only matches at this venue
            team_id: Only matches of this team
            club_id: Only matches of this club's teams
            category: Category code filter
            date_from: First date, YYYY-MM-DD
            date_to: Last date, YYYY-MM-DD
            limit: Page size, capped at 100
            page: Page number
            official_only: Only officially sanctioned matches
        """
        params: dict[str, Any] = {
            "competition_id": self._competition_id,
            "category_id": self._category_id,
            "venue_id": venue_id or None,
            "team_id": team_id or None,
            "club_id": club_id or None,
            "category": category or None,
            "date_from": date_from or None,
            "date_to": date_to or None,
            "per_page": min(limit, MAX_PAGE_SIZE) if limit else None,
            "page": page or None,
            "official_only": 1 if official_only else None,
        }
        return await self.request("getMatches", params)

    async def get_match(self, match_id: str | int) -> Any:
        return await self.request("getMatch", {"match_id": match_id})

    async def get_score(self, match_id: str | int) -> Any:
        """Live score of a match; the API allows polling at most once per second."""
        return await self.request("getScore", {"match_id": match_id})

    async def get_teams(
        self,
        *,
        club_id: str | int | None = None,
        district: str | None = None,
        category: str | None = None,
    ) -> Any:
        params = {
            "club_id": club_id or None,
            "district": district or None,
            "category": category or None,
        }
        return await self.request("getTeams", params)

    async def get_team(self, team_id: str | int) -> Any:
        return await self.request("getTeam", {"team_id": team_id})

    async def get_club(self, club_id: str | int) -> Any:
        return await self.request("getClub", {"club_id": club_id})

    async def test_connection(self) -> tuple[bool, str]:
        """Check the API with the current key.

        Returns:
            (ok, message) tuple suitable for showing to the operator.
        """
        try:
            await self.get_districts()
        except TorneopalError as err:
            _LOGGER.warning("Torneopal connection test failed: %s", err)
            return False, str(err)
        return True, "API connection successful"

    async def get_match_enhanced(self, match_id: str, cache: MatchCache) -> Any:
        """Fetch a match, serving locally created matches from the cache.

        Raises:
            TorneopalError: A local match id is not in the cache.
        """
        if cache.is_local_match(match_id):
            local_match = cache.get_local_match(match_id)
            if local_match is None:
                raise TorneopalError("Local match not found")
            return {"match": local_match}
        return await self.get_match(match_id)
