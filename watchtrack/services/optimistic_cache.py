"""Per-view optimistic map of episode watched flags."""

from typing import Dict, Iterable, List

from watchtrack.models.progress import EpisodeProgress, EpisodeRef


class OptimisticProgressCache:
    """What the view shows while a mutation is in flight.

    ``seed`` replaces everything with server truth, ``set_local`` records a
    value the server has not necessarily confirmed yet. A failed write is
    not rolled back here; the next ``seed`` corrects it.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, bool] = {}

    def seed(self, records: Iterable[EpisodeProgress]) -> None:
        """Overwrite the cache with the server's records."""
        self._entries = {
            f"{r.season_number}-{r.episode_number}": r.is_watched for r in records
        }

    def set_local(self, ref: EpisodeRef, watched: bool) -> None:
        self._entries[ref.key] = watched

    def get(self, ref: EpisodeRef) -> bool:
        return self._entries.get(ref.key, False)

    def snapshot(self) -> Dict[str, bool]:
        """A copy of the current entries keyed by ``"{season}-{episode}"``."""
        return dict(self._entries)

    def to_progress(self, imdb_id: str) -> List[EpisodeProgress]:
        """Current entries as progress records for the aggregator."""
        records = []
        for key, watched in self._entries.items():
            season_number, episode_number = (int(part) for part in key.split("-"))
            records.append(
                EpisodeProgress(
                    imdb_id=imdb_id,
                    season_number=season_number,
                    episode_number=episode_number,
                    is_watched=watched,
                )
            )
        return records

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
