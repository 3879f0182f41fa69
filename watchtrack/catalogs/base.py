"""Catalog base classes and interface."""

import logging
from abc import ABC, abstractmethod
from typing import Any, List

import httpx
from aiolimiter import AsyncLimiter
from cachetools import TTLCache

from watchtrack.core.config import get_settings
from watchtrack.core.errors import CatalogError
from watchtrack.core.http import build_client, retrying
from watchtrack.models.media import Episode, Season

logger = logging.getLogger(__name__)


class CatalogInterface(ABC):
    """Abstract base class for read-only catalog backends.

    A catalog only answers "which seasons does this show have" and "which
    episodes does this season have". It never reads or writes progress.
    """

    async def aclose(self) -> None:
        """Release network resources held by the catalog."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique name of this catalog."""
        pass

    @abstractmethod
    async def list_seasons(self, imdb_id: str) -> List[Season]:
        """List the seasons of a show.

        Args:
            imdb_id: IMDb id of a TV title.

        Returns:
            Seasons in catalog order (specials included if the source has them).

        Raises:
            CatalogError: the listing could not be fetched.
        """
        pass

    @abstractmethod
    async def list_episodes(self, imdb_id: str, season_number: int) -> List[Episode]:
        """List the episodes of one season.

        Raises:
            CatalogError: the listing could not be fetched.
        """
        pass


class HttpCatalog(CatalogInterface):
    """Catalog reached over HTTP: rate limited, retried and TTL cached."""

    retries = 2

    def __init__(self, base_url: str | None = None):
        settings = get_settings()
        self._settings = settings
        self.client = build_client(settings, base_url)
        self.rate_limiter = AsyncLimiter(settings.catalog_rate_limit, 1.0)
        self.cache = TTLCache(maxsize=512, ttl=settings.catalog_cache_ttl)
        self.retry_wait = None

    async def aclose(self) -> None:
        """Properly close the internal HTTP client."""
        await self.client.aclose()

    def _headers(self) -> dict[str, str]:
        return {}

    async def _get(self, path: str, params: dict | None = None) -> Any:
        """GET a JSON document, raising ``CatalogError`` on any failure."""
        try:
            async for attempt in retrying(self.retries, self.retry_wait):
                with attempt:
                    async with self.rate_limiter:
                        response = await self.client.get(
                            path, params=params, headers=self._headers()
                        )
                    response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error requesting %s: %s", path, exc)
            raise CatalogError(f"Catalog request {path} failed", exc)
