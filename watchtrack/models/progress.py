"""Watch progress models shared with the progress store."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EpisodeRef(WireModel):
    """A (season, episode) coordinate within one show."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    season_number: int = Field(ge=1)
    episode_number: int = Field(ge=1)

    @property
    def key(self) -> str:
        return f"{self.season_number}-{self.episode_number}"

    def __lt__(self, other: "EpisodeRef") -> bool:
        if not isinstance(other, EpisodeRef):
            return NotImplemented
        return (self.season_number, self.episode_number) < (
            other.season_number,
            other.episode_number,
        )

    def __str__(self) -> str:
        return f"S{self.season_number:02d}E{self.episode_number:02d}"


class EpisodeProgress(WireModel):
    """Server record for one episode. No record means not watched."""

    imdb_id: str
    season_number: int
    episode_number: int
    is_watched: bool

    @property
    def ref(self) -> EpisodeRef:
        return EpisodeRef(
            season_number=self.season_number, episode_number=self.episode_number
        )


class MovieProgress(WireModel):
    """Server record for a movie."""

    imdb_id: str
    is_watched: bool
    updated_at: Optional[datetime] = None


class TvShowProgress(WireModel):
    """Server-side aggregate row for one show."""

    imdb_id: Optional[str] = None
    title: Optional[str] = None
    poster_url: Optional[str] = None
    watched_episodes: int = 0
    total_episodes: int = 0
    total_seasons: Optional[int] = None
    last_watched_season: Optional[int] = None
    last_watched_episode: Optional[int] = None
    is_fully_watched: bool = False
    episodes_per_season: List[int] = []


class AllProgress(WireModel):
    """Everything the store holds for the signed-in user."""

    movies: List[MovieProgress] = []
    tv_shows: List[TvShowProgress] = []
    episodes: List[EpisodeProgress] = []

    def movie(self, imdb_id: str) -> Optional[MovieProgress]:
        for movie in self.movies:
            if movie.imdb_id == imdb_id:
                return movie
        return None


class TvProgress(WireModel):
    """Progress of a single show."""

    episodes: List[EpisodeProgress] = []
    tv_show_progress: Optional[TvShowProgress] = None

    @property
    def episodes_per_season(self) -> List[int]:
        if self.tv_show_progress is None:
            return []
        return list(self.tv_show_progress.episodes_per_season)


class SeasonProgressSummary(WireModel):
    """Derived progress of one season."""

    season_number: int
    total_episodes: int = Field(ge=0)
    watched_episodes: int = Field(ge=0)
    progress: float = Field(ge=0.0, le=1.0)
    is_watched: bool


class ShowProgressSummary(WireModel):
    """Derived progress of a whole show."""

    is_fully_watched: bool
    total_episodes: int = 0
    watched_episodes: int = 0
    total_seasons: int = 0
    progress: float = 0.0
    last_watched_season: Optional[int] = None
    last_watched_episode: Optional[int] = None
