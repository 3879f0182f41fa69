import asyncio

import pytest

from conftest import MOVIE_ID, SHOW_ID, ref
from watchtrack.core.errors import AuthenticationError
from watchtrack.models.media import MediaType, Title
from watchtrack.services.coordinator import (
    MutationCoordinator,
    MutationStatus,
    ViewState,
)
from watchtrack.services.title_view import TitleView


def season(snapshot, number):
    return next(s for s in snapshot.seasons if s.season_number == number)


@pytest.mark.asyncio
async def test_toggle_every_episode_of_a_season(show_title, catalog, store):
    """Watching S1E1..S1E10 one by one completes season 1."""
    view = TitleView(show_title, catalog, store)
    await view.open()

    for episode in range(1, 11):
        result = await view.coordinator.toggle_episode(ref(1, episode))
        assert result.status == MutationStatus.APPLIED

    summary = season(view.snapshot(), 1)
    assert summary.total_episodes == 10
    assert summary.watched_episodes == 10
    assert summary.progress == 1.0
    assert summary.is_watched is True
    assert len(store.episode_writes) == 10
    # toggles never need the episode list
    assert catalog.calls == []


@pytest.mark.asyncio
async def test_toggle_episode_twice_unwatches(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()

    await view.coordinator.toggle_episode(ref(1, 3))
    await view.coordinator.toggle_episode(ref(1, 3))

    assert [w[3] for w in store.episode_writes] == [True, False]
    assert view.cache.get(ref(1, 3)) is False
    assert store.invalidations == 2


@pytest.mark.asyncio
async def test_mark_range_into_second_season(show_title, catalog, store):
    """Marking up to S2E3 sends one batch with all of S1 plus S2E1..E3."""
    view = TitleView(show_title, catalog, store)
    await view.open()

    result = await view.coordinator.mark_range(ref(2, 3))

    assert result.status == MutationStatus.APPLIED
    assert len(store.batch_writes) == 1
    imdb_id, episodes, watched = store.batch_writes[0]
    assert imdb_id == SHOW_ID
    assert watched is True
    assert len(episodes) == 13
    assert episodes == [ref(1, n) for n in range(1, 11)] + [ref(2, n) for n in (1, 2, 3)]
    assert store.episode_writes == []

    summary = season(view.snapshot(), 2)
    assert summary.watched_episodes == 3
    assert summary.progress == pytest.approx(0.375)
    assert summary.is_watched is False
    assert season(view.snapshot(), 1).is_watched is True


@pytest.mark.asyncio
async def test_mark_range_only_lists_needed_seasons(show_title, catalog, store):
    catalog.shows[SHOW_ID][3] = [1, 2]
    view = TitleView(show_title, catalog, store)
    await view.open()

    await view.coordinator.mark_range(ref(2, 1))

    listed = {call[2] for call in catalog.calls if call[0] == "episodes"}
    assert listed == {1, 2}


@pytest.mark.asyncio
async def test_mark_range_is_idempotent(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()

    await view.coordinator.mark_range(ref(2, 3))
    after_once = dict(store.episodes)
    await view.coordinator.mark_range(ref(2, 3))

    assert store.episodes == after_once
    assert store.batch_writes[0][1] == store.batch_writes[1][1]
    assert season(view.snapshot(), 2).watched_episodes == 3


@pytest.mark.asyncio
async def test_mark_range_falls_back_to_counts_for_degraded_season(
    show_title, catalog, store
):
    catalog.failing_seasons.add(1)
    view = TitleView(show_title, catalog, store)
    await view.open()

    result = await view.coordinator.mark_range(ref(2, 3))

    assert result.status == MutationStatus.APPLIED
    assert len(store.batch_writes[0][1]) == 13


@pytest.mark.asyncio
async def test_mark_range_aborts_when_seasons_unavailable(show_title, catalog, store):
    store.episodes[(SHOW_ID, 1, 1)] = True
    view = TitleView(show_title, catalog, store)
    await view.open()
    view.cache.set_local(ref(1, 2), True)
    before = view.cache.snapshot()
    catalog.fail_seasons = True

    result = await view.coordinator.mark_range(ref(2, 3))

    assert result.status == MutationStatus.ABORTED
    assert result.message
    assert store.writes == 0
    assert view.cache.snapshot() == before
    assert view.coordinator.state == ViewState.IDLE


@pytest.mark.asyncio
async def test_busy_guard_drops_toggle_during_mark_range(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()
    store.gate = asyncio.Event()

    task = asyncio.create_task(view.coordinator.mark_range(ref(1, 4)))
    await store.write_started.wait()
    assert view.coordinator.busy
    in_flight = view.cache.snapshot()

    result = await view.coordinator.toggle_episode(ref(2, 5))

    assert result.status == MutationStatus.REJECTED
    assert store.episode_writes == []
    assert view.cache.snapshot() == in_flight
    assert view.cache.get(ref(2, 5)) is False

    store.gate.set()
    assert (await task).status == MutationStatus.APPLIED
    assert not view.coordinator.busy
    assert store.writes == 1


@pytest.mark.asyncio
async def test_write_failure_keeps_optimistic_value_until_seed(
    show_title, catalog, store, store_error
):
    coordinator = MutationCoordinator(
        show_title, catalog, store, reconcile_on_failure=False
    )
    await coordinator.refresh()
    store.fail_writes = store_error

    result = await coordinator.toggle_episode(ref(1, 1))

    assert result.status == MutationStatus.FAILED
    assert "try again" in result.message
    assert coordinator.state == ViewState.IDLE
    # no synchronous rollback
    assert coordinator.cache.get(ref(1, 1)) is True

    store.fail_writes = None
    await coordinator.refresh()
    assert coordinator.cache.get(ref(1, 1)) is False


@pytest.mark.asyncio
async def test_write_failure_reconciles_when_enabled(
    show_title, catalog, store, store_error
):
    coordinator = MutationCoordinator(
        show_title, catalog, store, reconcile_on_failure=True
    )
    await coordinator.refresh()
    store.fail_writes = store_error

    result = await coordinator.mark_range(ref(1, 5))

    assert result.status == MutationStatus.FAILED
    assert len(result.affected) == 5
    assert all(not coordinator.cache.get(ref(1, n)) for n in range(1, 6))


@pytest.mark.asyncio
async def test_missing_session_is_reported_not_raised(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()
    store.fail_writes = AuthenticationError("no session")

    result = await view.coordinator.toggle_show_fully_watched(True)

    assert result.status == MutationStatus.FAILED
    assert "Sign in" in result.message


@pytest.mark.asyncio
async def test_failed_refetch_marks_result_stale(show_title, catalog, store, store_error):
    view = TitleView(show_title, catalog, store)
    await view.open()
    store.fail_reads = store_error

    result = await view.coordinator.toggle_episode(ref(2, 2))

    assert result.status == MutationStatus.APPLIED
    assert result.stale is True
    assert view.cache.get(ref(2, 2)) is True


@pytest.mark.asyncio
async def test_toggle_show_fully_watched_and_back(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()

    result = await view.coordinator.toggle_show_fully_watched(True)
    assert result.status == MutationStatus.APPLIED
    assert len(result.affected) == 18
    assert view.snapshot().show.is_fully_watched is True

    await view.coordinator.toggle_show_fully_watched(False)
    assert store.watched(SHOW_ID) == set()
    assert view.snapshot().show.is_fully_watched is False
    assert len(store.batch_writes) == 2


@pytest.mark.asyncio
async def test_toggle_show_fully_watched_is_idempotent(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()

    await view.coordinator.toggle_show_fully_watched(True)
    after_first = dict(store.episodes)
    result = await view.coordinator.toggle_show_fully_watched(True)

    assert result.status == MutationStatus.APPLIED
    assert store.episodes == after_first
    first_batch, second_batch = store.batch_writes
    assert first_batch == second_batch
    assert len(store.watched(SHOW_ID)) == 18
    assert view.snapshot().show.is_fully_watched is True


@pytest.mark.asyncio
async def test_show_without_server_counts_uses_catalog_sizes(show_title, catalog, store):
    del store.counts[SHOW_ID]
    view = TitleView(show_title, catalog, store)
    await view.open()
    assert view.snapshot().seasons == []

    await view.coordinator.toggle_show_fully_watched(True)

    assert view.coordinator.episodes_per_season == [10, 8]
    assert view.snapshot().show.is_fully_watched is True


@pytest.mark.asyncio
async def test_closed_view_discards_in_flight_result(show_title, catalog, store):
    view = TitleView(show_title, catalog, store)
    await view.open()
    reads_before = store.read_tv_calls
    store.gate = asyncio.Event()

    task = asyncio.create_task(view.coordinator.toggle_episode(ref(1, 1)))
    await store.write_started.wait()
    view.close()
    store.gate.set()
    await task

    # the write still reached the server, but nothing was applied locally
    assert store.episode_writes == [(SHOW_ID, 1, 1, True)]
    assert len(view.cache) == 0
    assert store.read_tv_calls == reads_before
    assert (await view.coordinator.toggle_episode(ref(1, 2))).status == (
        MutationStatus.REJECTED
    )


@pytest.mark.asyncio
async def test_movie_toggled_on_then_off(movie_title, catalog, store):
    view = TitleView(movie_title, catalog, store)
    await view.open()

    assert (await view.coordinator.toggle_movie(True)).status == MutationStatus.APPLIED
    assert view.snapshot().movie_watched is True
    assert (await view.coordinator.toggle_movie(False)).status == MutationStatus.APPLIED

    assert store.movie_writes == [(MOVIE_ID, True), (MOVIE_ID, False)]
    assert store.movies[MOVIE_ID] is False
    assert view.snapshot().movie_watched is False
    assert catalog.calls == []


@pytest.mark.asyncio
async def test_operations_check_media_type(movie_title, show_title, catalog, store):
    movie = MutationCoordinator(movie_title, catalog, store)
    show = MutationCoordinator(show_title, catalog, store)

    with pytest.raises(ValueError):
        await movie.toggle_episode(ref(1, 1))
    with pytest.raises(ValueError):
        await show.toggle_movie(True)
    assert store.writes == 0
    assert not movie.busy


@pytest.mark.asyncio
async def test_views_on_different_titles_are_independent(catalog, store):
    other_id = "tt7654321"
    catalog.shows[other_id] = {1: [1, 2]}
    first = TitleView(Title(imdb_id=SHOW_ID, media_type=MediaType.SERIES), catalog, store)
    second = TitleView(Title(imdb_id=other_id, media_type=MediaType.SERIES), catalog, store)
    await first.open()
    await second.open()
    store.gate = asyncio.Event()

    task = asyncio.create_task(first.coordinator.toggle_episode(ref(1, 1)))
    await store.write_started.wait()
    second_task = asyncio.create_task(second.coordinator.toggle_episode(ref(1, 1)))
    await asyncio.sleep(0)
    assert second.coordinator.busy

    store.gate.set()
    assert (await task).status == MutationStatus.APPLIED
    assert (await second_task).status == MutationStatus.APPLIED
