"""Episode enumeration for bulk progress operations."""

import asyncio
import logging
from typing import List, Optional, Sequence

from watchtrack.catalogs.base import CatalogInterface
from watchtrack.models.progress import EpisodeRef

logger = logging.getLogger(__name__)


async def enumerate_episodes(
    catalog: CatalogInterface,
    imdb_id: str,
    up_to_season: Optional[int] = None,
) -> List[EpisodeRef]:
    """List every episode of a show, season-major and ascending.

    Seasons are listed first, then each season's episodes concurrently.
    An empty result means nothing could be enumerated and callers must not
    treat it as a successful "mark zero episodes". A season whose listing
    fails contributes no episodes instead of failing the whole show.

    Args:
        catalog: Catalog to read from.
        imdb_id: IMDb id of the show.
        up_to_season: Only list episodes of seasons up to this number.
    """
    try:
        seasons = await catalog.list_seasons(imdb_id)
    except Exception as exc:
        logger.warning("Could not list seasons of %s: %s", imdb_id, exc)
        return []

    season_numbers = sorted(
        {
            s.season_number
            for s in seasons
            if s.season_number >= 1
            and (up_to_season is None or s.season_number <= up_to_season)
        }
    )
    if not season_numbers:
        logger.info("No catalogued seasons for %s", imdb_id)
        return []

    results = await asyncio.gather(
        *[catalog.list_episodes(imdb_id, n) for n in season_numbers],
        return_exceptions=True,
    )

    refs: List[EpisodeRef] = []
    for season_number, result in zip(season_numbers, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Could not list episodes of %s S%s, skipping season: %s",
                imdb_id,
                season_number,
                result,
            )
            continue
        numbers = sorted({ep.episode_number for ep in result if ep.episode_number >= 1})
        refs.extend(
            EpisodeRef(season_number=season_number, episode_number=n) for n in numbers
        )
    return refs


def episodes_from_counts(
    episodes_per_season: Sequence[Optional[int]], before_season: Optional[int] = None
) -> List[EpisodeRef]:
    """Expand an episodes-per-season array (slot 0 is season 1) into refs."""
    refs: List[EpisodeRef] = []
    for index, count in enumerate(episodes_per_season):
        season_number = index + 1
        if before_season is not None and season_number >= before_season:
            break
        for episode_number in range(1, (count or 0) + 1):
            refs.append(
                EpisodeRef(season_number=season_number, episode_number=episode_number)
            )
    return refs


def counts_from_episodes(refs: Sequence[EpisodeRef]) -> List[int]:
    """Collapse refs into an episodes-per-season array (highest episode number)."""
    highest: dict[int, int] = {}
    for ref in refs:
        highest[ref.season_number] = max(
            highest.get(ref.season_number, 0), ref.episode_number
        )
    if not highest:
        return []
    return [highest.get(n, 0) for n in range(1, max(highest) + 1)]
