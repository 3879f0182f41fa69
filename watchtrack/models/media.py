"""Catalog models: titles and the season/episode listings of a show."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaType(str, Enum):
    """Kind of title."""

    MOVIE = "movie"
    SERIES = "tv"


class Title(BaseModel):
    """A movie or TV show identified by its IMDb id."""

    model_config = ConfigDict(frozen=True)

    imdb_id: str = Field(min_length=1)
    media_type: MediaType


class Episode(BaseModel):
    """An episode listed by the catalog."""

    episode_number: int
    name: Optional[str] = None


class Season(BaseModel):
    """A season listed by the catalog."""

    season_number: int
    name: Optional[str] = None
