import asyncio
from typing import Dict, List, Optional

import pytest

from watchtrack.catalogs.base import CatalogInterface
from watchtrack.core.errors import CatalogError, ProgressStoreError
from watchtrack.models.media import Episode, MediaType, Season, Title
from watchtrack.models.progress import (
    AllProgress,
    EpisodeProgress,
    EpisodeRef,
    MovieProgress,
    TvProgress,
    TvShowProgress,
)

SHOW_ID = "tt0903747"
MOVIE_ID = "tt0000001"


class FakeCatalog(CatalogInterface):
    """In-memory catalog: ``shows[imdb_id][season] = [episode numbers]``."""

    def __init__(self, shows: Optional[Dict[str, Dict[int, List[int]]]] = None):
        self.shows = shows or {}
        self.fail_seasons = False
        self.failing_seasons: set[int] = set()
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return "fake"

    async def list_seasons(self, imdb_id: str) -> List[Season]:
        self.calls.append(("seasons", imdb_id))
        if self.fail_seasons:
            raise CatalogError("seasons unavailable")
        return [Season(season_number=n) for n in self.shows.get(imdb_id, {})]

    async def list_episodes(self, imdb_id: str, season_number: int) -> List[Episode]:
        self.calls.append(("episodes", imdb_id, season_number))
        if season_number in self.failing_seasons:
            raise CatalogError(f"season {season_number} unavailable")
        numbers = self.shows.get(imdb_id, {}).get(season_number, [])
        return [Episode(episode_number=n) for n in numbers]


class FakeProgressStore:
    """In-memory progress store recording every write it receives."""

    def __init__(self):
        self.episodes: Dict[tuple, bool] = {}
        self.movies: Dict[str, bool] = {}
        self.counts: Dict[str, List[int]] = {}
        self.episode_writes: List[tuple] = []
        self.batch_writes: List[tuple] = []
        self.movie_writes: List[tuple] = []
        self.read_tv_calls = 0
        self.invalidations = 0
        self.fail_writes: Optional[Exception] = None
        self.fail_reads: Optional[Exception] = None
        # When set, writes wait for it; ``write_started`` fires on entry
        self.gate: Optional[asyncio.Event] = None
        self.write_started = asyncio.Event()

    async def _enter_write(self):
        self.write_started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_writes is not None:
            raise self.fail_writes

    @property
    def writes(self) -> int:
        return len(self.episode_writes) + len(self.batch_writes) + len(self.movie_writes)

    def watched(self, imdb_id: str) -> set:
        return {
            (s, e) for (i, s, e), watched in self.episodes.items() if i == imdb_id and watched
        }

    async def read_all(self) -> AllProgress:
        if self.fail_reads is not None:
            raise self.fail_reads
        return AllProgress(
            movies=[
                MovieProgress(imdb_id=i, is_watched=w) for i, w in self.movies.items()
            ],
            tv_shows=[
                TvShowProgress(imdb_id=i, episodes_per_season=c)
                for i, c in self.counts.items()
            ],
        )

    def invalidate_all(self) -> None:
        self.invalidations += 1

    async def read_tv(self, imdb_id: str) -> TvProgress:
        self.read_tv_calls += 1
        if self.fail_reads is not None:
            raise self.fail_reads
        episodes = [
            EpisodeProgress(
                imdb_id=i, season_number=s, episode_number=e, is_watched=w
            )
            for (i, s, e), w in sorted(self.episodes.items())
            if i == imdb_id
        ]
        counts = self.counts.get(imdb_id)
        show = TvShowProgress(imdb_id=imdb_id, episodes_per_season=counts) if counts else None
        return TvProgress(episodes=episodes, tv_show_progress=show)

    async def write_episode(self, imdb_id, season_number, episode_number, is_watched):
        await self._enter_write()
        self.episode_writes.append((imdb_id, season_number, episode_number, is_watched))
        self.episodes[(imdb_id, season_number, episode_number)] = is_watched

    async def write_episodes_batch(self, imdb_id, episodes, is_watched):
        episodes = list(episodes)
        await self._enter_write()
        self.batch_writes.append((imdb_id, episodes, is_watched))
        for ref in episodes:
            self.episodes[(imdb_id, ref.season_number, ref.episode_number)] = is_watched

    async def write_movie(self, imdb_id, is_watched):
        await self._enter_write()
        self.movie_writes.append((imdb_id, is_watched))
        self.movies[imdb_id] = is_watched

    async def aclose(self):
        pass


def ref(season: int, episode: int) -> EpisodeRef:
    return EpisodeRef(season_number=season, episode_number=episode)


@pytest.fixture
def catalog():
    """A show with two seasons of 10 and 8 episodes."""
    return FakeCatalog({SHOW_ID: {1: list(range(1, 11)), 2: list(range(1, 9))}})


@pytest.fixture
def store():
    fake = FakeProgressStore()
    fake.counts[SHOW_ID] = [10, 8]
    return fake


@pytest.fixture
def show_title():
    return Title(imdb_id=SHOW_ID, media_type=MediaType.SERIES)


@pytest.fixture
def movie_title():
    return Title(imdb_id=MOVIE_ID, media_type=MediaType.MOVIE)


@pytest.fixture
def store_error():
    return ProgressStoreError("server said no", status_code=500)
