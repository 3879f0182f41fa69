"""Title views: the lifetime of one open show or movie detail screen."""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from cachetools import TTLCache

from watchtrack.catalogs import get_catalog
from watchtrack.catalogs.base import CatalogInterface
from watchtrack.core.config import get_settings
from watchtrack.models.media import MediaType, Title
from watchtrack.models.progress import (
    SeasonProgressSummary,
    ShowProgressSummary,
    WireModel,
)
from watchtrack.services.aggregator import summarize_seasons, summarize_show
from watchtrack.services.coordinator import MutationCoordinator, ViewState
from watchtrack.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class TitleSnapshot(WireModel):
    """Everything a detail screen renders, computed from the optimistic cache."""

    view_id: Optional[str] = None
    imdb_id: str
    media_type: MediaType
    state: ViewState
    seasons: List[SeasonProgressSummary] = []
    show: Optional[ShowProgressSummary] = None
    watched_episodes: List[str] = []
    movie_watched: Optional[bool] = None


class TitleView:
    """One screen's cache and coordinator; discarded when the screen closes."""

    def __init__(
        self,
        title: Title,
        catalog: CatalogInterface,
        store: ProgressStore,
        view_id: Optional[str] = None,
    ):
        self.view_id = view_id or str(uuid.uuid4())
        self.title = title
        self.coordinator = MutationCoordinator(title, catalog, store)

    @property
    def cache(self):
        return self.coordinator.cache

    async def open(self) -> None:
        """Seed the view from the store. Raises ``ProgressStoreError``."""
        await self.coordinator.refresh()

    def close(self) -> None:
        self.coordinator.close()
        self.coordinator.cache.clear()

    def snapshot(self) -> TitleSnapshot:
        coordinator = self.coordinator
        snapshot = TitleSnapshot(
            view_id=self.view_id,
            imdb_id=self.title.imdb_id,
            media_type=self.title.media_type,
            state=coordinator.state,
        )
        if self.title.media_type is MediaType.MOVIE:
            snapshot.movie_watched = coordinator.movie_watched
            return snapshot

        episodes = coordinator.cache.to_progress(self.title.imdb_id)
        counts = coordinator.episodes_per_season
        snapshot.seasons = list(summarize_seasons(episodes, counts).values())
        snapshot.show = summarize_show(episodes, counts)
        snapshot.watched_episodes = sorted(
            (key for key, watched in coordinator.cache.snapshot().items() if watched),
            key=lambda key: tuple(int(part) for part in key.split("-")),
        )
        return snapshot


class TitleViewManager:
    """Keeps open title views by id and the store they share.

    Views a client abandons without closing are dropped once they have not
    been looked up for ``view_idle_ttl`` seconds.
    """

    def __init__(
        self,
        store_factory: Callable[[], ProgressStore] = ProgressStore,
        catalog_factory: Callable[[], CatalogInterface] = get_catalog,
        idle_ttl: Optional[float] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self._store_factory = store_factory
        self._catalog_factory = catalog_factory
        self._store: Optional[ProgressStore] = None
        self.views: TTLCache = TTLCache(
            maxsize=settings.max_open_views,
            ttl=idle_ttl if idle_ttl is not None else settings.view_idle_ttl,
            timer=timer,
        )

    @property
    def store(self) -> ProgressStore:
        if self._store is None:
            self._store = self._store_factory()
        return self._store

    async def open_view(self, title: Title) -> TitleView:
        """Create a view, load server state, then register it."""
        view = TitleView(title, self._catalog_factory(), self.store)
        await view.open()
        self.views[view.view_id] = view
        logger.info("Opened view %s for %s", view.view_id, title.imdb_id)
        return view

    def get_view(self, view_id: str) -> Optional[TitleView]:
        view = self.views.get(view_id)
        if view is not None:
            # Re-inserting restarts the idle timer
            self.views[view_id] = view
        return view

    def close_view(self, view_id: str) -> bool:
        view = self.views.pop(view_id, None)
        if view is None:
            return False
        view.close()
        return True

    async def shutdown(self) -> None:
        """Close every view and the shared store session."""
        for view_id in list(self.views):
            self.close_view(view_id)
        if self._store is not None:
            await self._store.aclose()
            self._store = None


# Global manager instance
manager = TitleViewManager()


@asynccontextmanager
async def title_view_lifespan(app):
    """FastAPI lifespan context manager closing views on shutdown."""
    yield
    await manager.shutdown()
