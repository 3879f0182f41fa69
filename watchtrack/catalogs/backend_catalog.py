"""Catalog backed by the tracking backend's media endpoints."""

from typing import Any, List, Optional

from watchtrack.catalogs.base import HttpCatalog
from watchtrack.core.auth import SessionCredentials, get_credentials
from watchtrack.models.media import Episode, Season


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _episodes_block(data: Any) -> dict:
    """Return ``title.episodes`` of an IMDb-shaped payload, or {}."""
    if not isinstance(data, dict):
        return {}
    title = data.get("title") or {}
    return title.get("episodes") or {}


def parse_seasons(data: Any) -> List[Season]:
    """Parse ``getTitleSeasons`` into seasons, skipping unnumbered ones."""
    edges = (_episodes_block(data).get("displayableSeasons") or {}).get("edges") or []
    seasons = []
    for edge in edges:
        node = (edge or {}).get("node") or {}
        number = _parse_int(node.get("season"))
        if number is None:
            continue
        seasons.append(Season(season_number=number, name=node.get("text")))
    return seasons


def parse_episodes(data: Any) -> List[Episode]:
    """Parse ``getTitleEpisodes`` into episodes using each edge's position."""
    edges = (_episodes_block(data).get("episodes") or {}).get("edges") or []
    episodes = []
    for edge in edges:
        if not edge:
            continue
        number = _parse_int(edge.get("position"))
        if number is None:
            continue
        node = edge.get("node") or {}
        name = (node.get("titleText") or {}).get("text")
        episodes.append(Episode(episode_number=number, name=name))
    return episodes


class BackendCatalog(HttpCatalog):
    """Lists seasons and episodes through ``/api/v1/media``."""

    def __init__(self, credentials: SessionCredentials | None = None):
        super().__init__()
        self._credentials = credentials or get_credentials()

    @property
    def name(self) -> str:
        return "backend"

    def _headers(self) -> dict[str, str]:
        return self._credentials.headers()

    async def list_seasons(self, imdb_id: str) -> List[Season]:
        cache_key = f"seasons-{imdb_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        data = await self._get("/api/v1/media/getTitleSeasons", {"tt": imdb_id})
        seasons = parse_seasons(data)
        if seasons:
            self.cache[cache_key] = seasons
        return seasons

    async def list_episodes(self, imdb_id: str, season_number: int) -> List[Episode]:
        cache_key = f"episodes-{imdb_id}-s{season_number}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        data = await self._get(
            "/api/v1/media/getTitleEpisodes",
            {"tt": imdb_id, "seasonNumber": season_number},
        )
        episodes = parse_episodes(data)
        if episodes:
            self.cache[cache_key] = episodes
        return episodes
