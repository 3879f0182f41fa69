"""Mutation coordinator: serializes progress changes for one title view.

Every operation follows the same cycle: claim the busy flag, write the
optimistic value into the cache, send one request to the progress store,
confirm the value locally, then refetch server truth and ``seed`` the
cache with it. A request that arrives while another one is in flight is
dropped, not queued. Failures never escape as exceptions; they come back
as a ``MutationResult`` the caller can show as a transient notice.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from watchtrack.catalogs.base import CatalogInterface
from watchtrack.core.config import get_settings
from watchtrack.core.errors import AuthenticationError, WatchtrackError
from watchtrack.models.media import MediaType, Title
from watchtrack.models.progress import EpisodeRef, WireModel
from watchtrack.services.aggregator import movie_is_watched
from watchtrack.services.enumerator import (
    counts_from_episodes,
    enumerate_episodes,
    episodes_from_counts,
)
from watchtrack.services.optimistic_cache import OptimisticProgressCache
from watchtrack.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    IDLE = "idle"
    MUTATING = "mutating"


class MutationStatus(str, Enum):
    APPLIED = "applied"  # the store accepted the write
    REJECTED = "rejected"  # another mutation was in flight, nothing sent
    ABORTED = "aborted"  # nothing to mark (episode list unavailable)
    FAILED = "failed"  # the store write failed


class MutationResult(WireModel):
    """Outcome of one coordinator operation."""

    status: MutationStatus
    affected: List[EpisodeRef] = []
    message: Optional[str] = None
    # Write succeeded but the follow-up refetch did not: summaries may lag
    stale: bool = False


class MutationCoordinator:
    """Drives optimistic writes and reconciliation for a single title."""

    def __init__(
        self,
        title: Title,
        catalog: CatalogInterface,
        store: ProgressStore,
        cache: OptimisticProgressCache | None = None,
        reconcile_on_failure: bool | None = None,
    ):
        self.title = title
        self.catalog = catalog
        self.store = store
        self.cache = cache if cache is not None else OptimisticProgressCache()
        if reconcile_on_failure is None:
            reconcile_on_failure = get_settings().reconcile_on_failure
        self.reconcile_on_failure = reconcile_on_failure

        self.state = ViewState.IDLE
        self.closed = False
        self.movie_watched = False
        self._server_counts: List[int] = []
        self._catalog_counts: Dict[int, int] = {}

    @property
    def imdb_id(self) -> str:
        return self.title.imdb_id

    @property
    def busy(self) -> bool:
        return self.state is ViewState.MUTATING

    @property
    def episodes_per_season(self) -> List[int]:
        """Season sizes: the server's counts, filled in from the catalog."""
        counts = list(self._server_counts)
        if self._catalog_counts:
            size = max(len(counts), max(self._catalog_counts))
            counts.extend([0] * (size - len(counts)))
            for season_number, count in self._catalog_counts.items():
                if not counts[season_number - 1]:
                    counts[season_number - 1] = count
        return counts

    def close(self) -> None:
        """Stop applying results; in-flight requests finish and are ignored."""
        self.closed = True

    # -- state machine ---------------------------------------------------

    def _acquire(self, operation: str) -> bool:
        # No await between the check and the set: single event loop
        if self.closed or self.busy:
            logger.debug(
                "Dropping %s for %s: %s",
                operation,
                self.imdb_id,
                "view closed" if self.closed else "mutation in flight",
            )
            return False
        self.state = ViewState.MUTATING
        return True

    def _release(self) -> None:
        self.state = ViewState.IDLE

    def _require(self, media_type: MediaType) -> None:
        if self.title.media_type is not media_type:
            raise ValueError(
                f"{self.imdb_id} is a {self.title.media_type.value}, "
                f"not a {media_type.value}"
            )

    @staticmethod
    def _rejected() -> MutationResult:
        return MutationResult(status=MutationStatus.REJECTED)

    # -- reconciliation --------------------------------------------------

    async def refresh(self) -> None:
        """Fetch server truth and seed the cache with it.

        Raises:
            ProgressStoreError: the store could not be read.
        """
        if self.title.media_type is MediaType.SERIES:
            tv = await self.store.read_tv(self.imdb_id)
            if self.closed:
                return
            self.cache.seed(tv.episodes)
            self._server_counts = tv.episodes_per_season
        else:
            progress = await self.store.read_all()
            if self.closed:
                return
            self.movie_watched = movie_is_watched(progress.movie(self.imdb_id))

    async def _reconcile(self) -> bool:
        try:
            await self.refresh()
            return True
        except WatchtrackError as exc:
            logger.warning("Refetching progress of %s failed: %s", self.imdb_id, exc)
            return False

    async def _confirm(
        self, affected: List[EpisodeRef], watched: bool
    ) -> MutationResult:
        if self.closed:
            logger.debug("View of %s closed, discarding write result", self.imdb_id)
            return MutationResult(status=MutationStatus.APPLIED, affected=affected)

        for ref in affected:
            self.cache.set_local(ref, watched)
        self.store.invalidate_all()
        fresh = await self._reconcile()
        return MutationResult(
            status=MutationStatus.APPLIED, affected=affected, stale=not fresh
        )

    async def _failed(
        self, exc: WatchtrackError, affected: List[EpisodeRef]
    ) -> MutationResult:
        logger.error("Progress write for %s failed: %s", self.imdb_id, exc)
        if isinstance(exc, AuthenticationError):
            message = "Sign in to update your progress."
        else:
            message = "Could not update your progress. Please try again."

        # No rollback: the optimistic value stays until server truth is seeded
        if self.reconcile_on_failure and not self.closed:
            await self._reconcile()
        return MutationResult(
            status=MutationStatus.FAILED, affected=affected, message=message
        )

    # -- enumeration -----------------------------------------------------

    async def _enumerate(self, up_to_season: Optional[int] = None) -> List[EpisodeRef]:
        refs = await enumerate_episodes(
            self.catalog, self.imdb_id, up_to_season=up_to_season
        )
        for index, count in enumerate(counts_from_episodes(refs)):
            if count:
                self._catalog_counts[index + 1] = count
        return refs

    async def _range_targets(self, up_to: EpisodeRef) -> List[EpisodeRef]:
        listed = await self._enumerate(up_to_season=up_to.season_number)
        if not listed:
            return []

        by_season: Dict[int, List[EpisodeRef]] = {}
        for ref in listed:
            by_season.setdefault(ref.season_number, []).append(ref)
        counts = self.episodes_per_season

        targets: List[EpisodeRef] = []
        for season_number in range(1, up_to.season_number):
            if season_number in by_season:
                targets.extend(by_season[season_number])
            else:
                # Catalog degraded on this season: fall back to the known size
                targets.extend(
                    ref
                    for ref in episodes_from_counts(counts, up_to.season_number)
                    if ref.season_number == season_number
                )

        if up_to.season_number in by_season:
            targets.extend(
                ref
                for ref in by_season[up_to.season_number]
                if ref.episode_number <= up_to.episode_number
            )
        elif len(counts) >= up_to.season_number:
            last = min(up_to.episode_number, counts[up_to.season_number - 1] or 0)
            targets.extend(
                EpisodeRef(season_number=up_to.season_number, episode_number=n)
                for n in range(1, last + 1)
            )
        return targets

    # -- operations ------------------------------------------------------

    async def toggle_episode(self, ref: EpisodeRef) -> MutationResult:
        """Flip one episode's watched flag."""
        self._require(MediaType.SERIES)
        if not self._acquire("toggle_episode"):
            return self._rejected()
        try:
            watched = not self.cache.get(ref)
            self.cache.set_local(ref, watched)
            try:
                await self.store.write_episode(
                    self.imdb_id, ref.season_number, ref.episode_number, watched
                )
            except WatchtrackError as exc:
                return await self._failed(exc, [ref])
            return await self._confirm([ref], watched)
        finally:
            self._release()

    async def mark_range(
        self, up_to: EpisodeRef, watched: bool = True
    ) -> MutationResult:
        """Mark every episode up to and including ``up_to`` in one batch."""
        self._require(MediaType.SERIES)
        if not self._acquire("mark_range"):
            return self._rejected()
        try:
            targets = await self._range_targets(up_to)
            if not targets:
                logger.warning(
                    "Nothing to mark for %s up to %s: episode list unavailable",
                    self.imdb_id,
                    up_to,
                )
                return MutationResult(
                    status=MutationStatus.ABORTED,
                    message="Could not load the episode list.",
                )
            return await self._write_batch(targets, watched)
        finally:
            self._release()

    async def toggle_show_fully_watched(self, watched: bool) -> MutationResult:
        """Mark every episode of the show watched or unwatched."""
        self._require(MediaType.SERIES)
        if not self._acquire("toggle_show_fully_watched"):
            return self._rejected()
        try:
            targets = await self._enumerate()
            if not targets:
                logger.warning("Nothing to mark for %s: no episodes", self.imdb_id)
                return MutationResult(
                    status=MutationStatus.ABORTED,
                    message="Could not load the episode list.",
                )
            return await self._write_batch(targets, watched)
        finally:
            self._release()

    async def _write_batch(
        self, targets: List[EpisodeRef], watched: bool
    ) -> MutationResult:
        if self.closed:
            return MutationResult(status=MutationStatus.ABORTED, message="View closed.")
        for ref in targets:
            self.cache.set_local(ref, watched)
        logger.info(
            "Marking %d episodes of %s as %s",
            len(targets),
            self.imdb_id,
            "watched" if watched else "unwatched",
        )
        try:
            await self.store.write_episodes_batch(self.imdb_id, targets, watched)
        except WatchtrackError as exc:
            return await self._failed(exc, targets)
        return await self._confirm(targets, watched)

    async def toggle_movie(self, watched: bool) -> MutationResult:
        """Set a movie's watched flag."""
        self._require(MediaType.MOVIE)
        if not self._acquire("toggle_movie"):
            return self._rejected()
        try:
            self.movie_watched = watched
            try:
                await self.store.write_movie(self.imdb_id, watched)
            except WatchtrackError as exc:
                return await self._failed(exc, [])
            if self.closed:
                return MutationResult(status=MutationStatus.APPLIED)
            self.movie_watched = watched
            self.store.invalidate_all()
            fresh = await self._reconcile()
            return MutationResult(status=MutationStatus.APPLIED, stale=not fresh)
        finally:
            self._release()
