"""Catalog backed by TMDB, addressed by IMDb id."""

import logging
from typing import List

from watchtrack.catalogs.base import HttpCatalog
from watchtrack.core.errors import CatalogError
from watchtrack.models.media import Episode, Season

logger = logging.getLogger(__name__)

TMDB_API_URL = "https://api.themoviedb.org/3"


class TMDBCatalog(HttpCatalog):
    """Lists seasons and episodes from TMDB.

    TMDB keys shows by its own id, so the IMDb id is resolved once through
    the find endpoint and cached with the listings.
    """

    def __init__(self, api_key: str | None = None):
        super().__init__(TMDB_API_URL)
        self.api_key = api_key or self._settings.tmdb_api_key

    @property
    def name(self) -> str:
        return "tmdb"

    async def _tmdb_get(self, path: str, **params) -> dict:
        if not self.api_key:
            raise CatalogError("TMDB catalog needs WATCHTRACK_TMDB_API_KEY")
        data = await self._get(path, {"api_key": self.api_key, **params})
        return data if isinstance(data, dict) else {}

    async def resolve_tv_id(self, imdb_id: str) -> int:
        """Map an IMDb id to a TMDB TV id."""
        cache_key = f"tv-id-{imdb_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        found = await self._tmdb_get(f"/find/{imdb_id}", external_source="imdb_id")
        tv_results = found.get("tv_results") or []
        if not tv_results:
            raise CatalogError(f"{imdb_id} is not a TV title on TMDB")
        tv_id = (tv_results[0] or {}).get("id")
        if tv_id is None:
            raise CatalogError(f"TMDB returned no id for {imdb_id}")
        self.cache[cache_key] = tv_id
        return tv_id

    async def list_seasons(self, imdb_id: str) -> List[Season]:
        cache_key = f"seasons-{imdb_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        tv_id = await self.resolve_tv_id(imdb_id)
        info = await self._tmdb_get(f"/tv/{tv_id}")
        seasons = [
            Season(season_number=s["season_number"], name=s.get("name"))
            for s in info.get("seasons", [])
            if "season_number" in s
        ]
        if seasons:
            self.cache[cache_key] = seasons
        return seasons

    async def list_episodes(self, imdb_id: str, season_number: int) -> List[Episode]:
        cache_key = f"episodes-{imdb_id}-s{season_number}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        tv_id = await self.resolve_tv_id(imdb_id)
        info = await self._tmdb_get(f"/tv/{tv_id}/season/{season_number}")
        episodes = [
            Episode(episode_number=ep["episode_number"], name=ep.get("name"))
            for ep in info.get("episodes", [])
            if "episode_number" in ep
        ]
        if episodes:
            self.cache[cache_key] = episodes
        else:
            logger.debug("TMDB lists no episodes for %s S%s", imdb_id, season_number)
        return episodes
