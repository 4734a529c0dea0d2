"""Local key/value cache for the control panel.

Keeps the operator's API key, the last selected match and locally created
matches in a small JSON file so they survive restarts.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_LOGGER = logging.getLogger(__name__)

API_KEY = "torneopal-api-key"
SELECTED_MATCH_ID = "selected-match-id"
SELECTED_MATCH_DATA = "selected-match-data"
LOCAL_MATCHES = "local-matches"

LOCAL_MATCH_ID = "local-match"


class MatchCache:
    """JSON-file backed string store with match helpers on top.

    Values are stored as strings, structured values as JSON text, mirroring
    the browser storage the panel originally used.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._items: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            _LOGGER.warning("Ignoring unreadable cache %s: %s", self._path, err)
            return {}
        if not isinstance(data, dict):
            _LOGGER.warning("Ignoring cache %s: not a JSON object", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._items, f, indent=2, sort_keys=True)
        tmp.replace(self._path)

    # -------------------------------------------------------------------------
    # Key/value access
    # -------------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._save()

    def _get_json(self, key: str) -> Any:
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as err:
            _LOGGER.error("Failed to parse stored %s: %s", key, err)
            return None

    # -------------------------------------------------------------------------
    # API key
    # -------------------------------------------------------------------------

    def get_api_key(self) -> str:
        return self.get(API_KEY) or ""

    def set_api_key(self, key: str) -> None:
        self.set(API_KEY, key)

    # -------------------------------------------------------------------------
    # Selected match
    # -------------------------------------------------------------------------

    def store_selected_match(self, match_id: str, match_data: dict[str, Any]) -> None:
        self._items[SELECTED_MATCH_ID] = str(match_id)
        self._items[SELECTED_MATCH_DATA] = json.dumps(match_data)
        self._save()

    def get_selected_match(self) -> tuple[str, dict[str, Any]] | None:
        """Return ``(match_id, match_data)`` or None when nothing usable is stored."""
        match_id = self.get(SELECTED_MATCH_ID)
        if not match_id or SELECTED_MATCH_DATA not in self._items:
            return None
        match_data = self._get_json(SELECTED_MATCH_DATA)
        if match_data is None:
            return None
        return match_id, match_data

    def clear_selected_match(self) -> None:
        self._items.pop(SELECTED_MATCH_ID, None)
        self._items.pop(SELECTED_MATCH_DATA, None)
        self._save()

    # -------------------------------------------------------------------------
    # Local matches
    # -------------------------------------------------------------------------

    @staticmethod
    def is_local_match(match_id: str) -> bool:
        return match_id == LOCAL_MATCH_ID

    def get_local_matches(self) -> dict[str, dict[str, Any]]:
        matches = self._get_json(LOCAL_MATCHES)
        return matches if isinstance(matches, dict) else {}

    def get_local_match(self, match_id: str) -> dict[str, Any] | None:
        return self.get_local_matches().get(match_id)

    def create_local_match(
        self,
        *,
        date: str,
        time: str,
        home_team_id: str | int,
        home_team_data: dict[str, Any],
        away_team_name: str,
        away_team_logo: str = "",
        venue: str = "Local Venue",
        category: str = "Local Match",
    ) -> dict[str, Any]:
        """Create (or replace) the local match and return it.

        The record uses the same field names as Torneopal match objects so the
        overlay can show either.
        """
        local_match = {
            "match_id": LOCAL_MATCH_ID,
            "date": date,
            "time": time,
            "team_A_name": home_team_data.get("team_name") or "Home Team",
            "team_B_name": away_team_name,
            "club_A_crest": home_team_data.get("club_crest") or "",
            "club_B_crest": away_team_logo or "",
            "venue_name": venue,
            "category_name": category,
            "is_local": True,
            "created_at": datetime.now(tz=UTC).isoformat(),
            "home_team_id": home_team_id,
            "home_team_data": home_team_data,
        }

        matches = self.get_local_matches()
        matches[LOCAL_MATCH_ID] = local_match
        self.set(LOCAL_MATCHES, json.dumps(matches))
        return local_match

    def delete_local_match(self, match_id: str) -> bool:
        matches = self.get_local_matches()
        if match_id not in matches:
            return False
        del matches[match_id]
        self.set(LOCAL_MATCHES, json.dumps(matches))
        return True
