"""Pure progress aggregation: season bars, completion badges, show totals.

Season ``n`` lives in slot ``n - 1`` of ``episodes_per_season``. A slot that
is missing, ``None`` or negative means the season's size is unknown and is
treated as zero episodes, which never counts as watched.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from watchtrack.models.progress import (
    EpisodeProgress,
    MovieProgress,
    SeasonProgressSummary,
    ShowProgressSummary,
)


def _season_totals(episodes_per_season: Sequence[Optional[int]]) -> List[int]:
    return [max(count or 0, 0) for count in episodes_per_season]


def _watched_set(episodes: Iterable[EpisodeProgress]) -> Set[Tuple[int, int]]:
    return {
        (ep.season_number, ep.episode_number) for ep in episodes if ep.is_watched
    }


def _season_summary(
    season_number: int, total: int, watched: Set[Tuple[int, int]]
) -> SeasonProgressSummary:
    # Only episodes 1..total count, matching what summarize_show treats as known
    watched_count = sum(
        1 for s, e in watched if s == season_number and 1 <= e <= total
    )
    progress = watched_count / total if total > 0 else 0.0
    return SeasonProgressSummary(
        season_number=season_number,
        total_episodes=total,
        watched_episodes=watched_count,
        progress=progress,
        is_watched=total > 0 and watched_count >= total,
    )


def summarize_seasons(
    episodes: Iterable[EpisodeProgress],
    episodes_per_season: Sequence[Optional[int]],
) -> Dict[int, SeasonProgressSummary]:
    """Summarize every season listed in ``episodes_per_season``."""
    watched = _watched_set(episodes)
    return {
        index + 1: _season_summary(index + 1, total, watched)
        for index, total in enumerate(_season_totals(episodes_per_season))
    }


def summarize_show(
    episodes: Iterable[EpisodeProgress],
    episodes_per_season: Sequence[Optional[int]],
) -> ShowProgressSummary:
    """Reduce a show to its totals and completion flag.

    ``is_fully_watched`` requires at least one known episode and every known
    episode (season ``s``, episodes ``1..total``) to be watched. It is not
    derived from the season flags alone.
    """
    watched = _watched_set(episodes)
    totals = _season_totals(episodes_per_season)

    known = [
        (index + 1, episode_number)
        for index, total in enumerate(totals)
        for episode_number in range(1, total + 1)
    ]
    watched_known = sum(1 for ref in known if ref in watched)
    total_episodes = len(known)

    last: Optional[Tuple[int, int]] = max(watched) if watched else None

    return ShowProgressSummary(
        is_fully_watched=total_episodes > 0 and watched_known == total_episodes,
        total_episodes=total_episodes,
        watched_episodes=watched_known,
        total_seasons=sum(1 for total in totals if total > 0),
        progress=watched_known / total_episodes if total_episodes else 0.0,
        last_watched_season=last[0] if last else None,
        last_watched_episode=last[1] if last else None,
    )


def movie_is_watched(movie: Optional[MovieProgress]) -> bool:
    """Movies have no sub-structure: the record's flag is the whole story."""
    return movie is not None and movie.is_watched
