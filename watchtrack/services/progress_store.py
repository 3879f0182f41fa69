"""Client for the progress store (the server of record for watched state)."""

import logging
from typing import Any, Iterable

import httpx
from cachetools import TTLCache
from pydantic import ValidationError

from watchtrack.core.auth import SessionCredentials, get_credentials
from watchtrack.core.config import get_settings
from watchtrack.core.errors import AuthenticationError, ProgressStoreError
from watchtrack.core.http import build_client, retrying
from watchtrack.models.progress import AllProgress, EpisodeRef, TvProgress

logger = logging.getLogger(__name__)

ALL_PROGRESS_KEY = "all"


class ProgressStore:
    """Reads and writes the signed-in user's progress.

    The user is whoever owns the session cookie; the server resolves it, so
    no user id travels in the requests. Writes refuse to run without a
    session. ``read_all`` is cached until ``invalidate_all`` is called.
    """

    def __init__(
        self,
        credentials: SessionCredentials | None = None,
        client: httpx.AsyncClient | None = None,
        retries: int | None = None,
    ):
        settings = get_settings()
        self._settings = settings
        self.credentials = credentials or get_credentials()
        self.client = client if client is not None else build_client(settings)
        self.retries = settings.write_retries if retries is None else retries
        self.retry_wait = None
        self._all_cache = TTLCache(maxsize=1, ttl=60)

    async def aclose(self) -> None:
        """Properly close the internal HTTP client."""
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
        require_auth: bool = False,
    ) -> Any:
        if require_auth:
            headers = self.credentials.require_headers()
        else:
            headers = self.credentials.headers()

        url = f"/api/v1/progress/{path}"
        try:
            async for attempt in retrying(self.retries, self.retry_wait):
                with attempt:
                    response = await self.client.request(
                        method, url, params=params, json=json, headers=headers
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("%s %s rejected (%s): %s", method, path, status, exc)
            if status in (401, 403):
                raise AuthenticationError(
                    "Session rejected by the progress store", exc, status_code=status
                )
            raise ProgressStoreError(
                f"Progress store rejected {method} {path}", exc, status_code=status
            )
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ProgressStoreError(f"Progress store unreachable for {path}", exc)

        if method == "GET":
            try:
                return response.json()
            except ValueError as exc:
                raise ProgressStoreError(f"Malformed response for {path}", exc)
        return None

    async def read_all(self) -> AllProgress:
        """Fetch every movie, show and episode record of the user."""
        if ALL_PROGRESS_KEY in self._all_cache:
            return self._all_cache[ALL_PROGRESS_KEY]

        data = await self._request("GET", "all")
        try:
            progress = AllProgress.model_validate(data or {})
        except ValidationError as exc:
            raise ProgressStoreError("Malformed response for all", exc)
        self._all_cache[ALL_PROGRESS_KEY] = progress
        return progress

    def invalidate_all(self) -> None:
        """Drop the cached ``read_all`` aggregate so lists see new counts."""
        self._all_cache.clear()

    async def read_tv(self, imdb_id: str) -> TvProgress:
        """Fetch the episode records and season counts of one show."""
        data = await self._request("GET", "tv", params={"imdbId": imdb_id})
        try:
            return TvProgress.model_validate(data or {})
        except ValidationError as exc:
            raise ProgressStoreError(f"Malformed response for tv {imdb_id}", exc)

    async def write_episode(
        self, imdb_id: str, season_number: int, episode_number: int, is_watched: bool
    ) -> None:
        await self._request(
            "PUT",
            "episode",
            json={
                "imdbId": imdb_id,
                "seasonNumber": season_number,
                "episodeNumber": episode_number,
                "isWatched": is_watched,
            },
            require_auth=True,
        )

    async def write_episodes_batch(
        self, imdb_id: str, episodes: Iterable[EpisodeRef], is_watched: bool
    ) -> None:
        """Set many episodes in one request; the server applies it as one unit."""
        await self._request(
            "POST",
            "mark-all-tv",
            json={
                "imdbId": imdb_id,
                "episodes": [ep.model_dump(by_alias=True) for ep in episodes],
                "isWatched": is_watched,
            },
            require_auth=True,
        )

    async def write_movie(self, imdb_id: str, is_watched: bool) -> None:
        await self._request(
            "PUT",
            "movie",
            json={"imdbId": imdb_id, "isWatched": is_watched},
            require_auth=True,
        )
