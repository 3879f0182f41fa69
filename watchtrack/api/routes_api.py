"""API routes exposing title views and progress mutations as JSON."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import Field

from watchtrack.catalogs import CatalogRegistry
from watchtrack.core.errors import ProgressStoreError
from watchtrack.models.media import MediaType, Title
from watchtrack.models.progress import AllProgress, EpisodeRef, WireModel
from watchtrack.services.coordinator import MutationResult
from watchtrack.services.title_view import TitleSnapshot, TitleView, manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "watchtrack"}


@router.get("/catalogs")
async def list_catalogs():
    """List all registered catalog backends."""
    return {
        "catalogs": CatalogRegistry.names(),
        "active": CatalogRegistry.active_name(),
    }


@router.get("/progress", response_model=AllProgress)
async def all_progress():
    """Everything the store holds for the signed-in user (home/liked lists)."""
    try:
        return await manager.store.read_all()
    except ProgressStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


# --- Title views ---


class OpenViewRequest(WireModel):
    """Request body for opening a title view."""

    imdb_id: str = Field(min_length=1)
    media_type: MediaType


class RangeRequest(EpisodeRef):
    """Mark everything up to this episode."""

    watched: bool = True


class WatchedRequest(WireModel):
    watched: bool


def _get_view(view_id: str) -> TitleView:
    view = manager.get_view(view_id)
    if view is None:
        raise HTTPException(status_code=404, detail="View not found")
    return view


async def _run(operation) -> MutationResult:
    try:
        return await operation
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/views", response_model=TitleSnapshot)
async def open_view(request: OpenViewRequest):
    """Open a view on a title and return its first snapshot."""
    title = Title(imdb_id=request.imdb_id, media_type=request.media_type)
    try:
        view = await manager.open_view(title)
    except ProgressStoreError as exc:
        logger.error("Could not open view for %s: %s", request.imdb_id, exc)
        raise HTTPException(status_code=502, detail="Progress store unavailable")
    return view.snapshot()


@router.get("/views/{view_id}", response_model=TitleSnapshot)
async def get_view(view_id: str):
    """Current snapshot of an open view."""
    return _get_view(view_id).snapshot()


@router.delete("/views/{view_id}")
async def close_view(view_id: str):
    """Close a view; in-flight results for it are discarded."""
    if not manager.close_view(view_id):
        raise HTTPException(status_code=404, detail="View not found")
    return {"id": view_id, "status": "closed"}


@router.post("/views/{view_id}/episodes/toggle", response_model=MutationResult)
async def toggle_episode(view_id: str, ref: EpisodeRef):
    """Flip one episode's watched flag."""
    view = _get_view(view_id)
    return await _run(view.coordinator.toggle_episode(ref))


@router.post("/views/{view_id}/episodes/mark-range", response_model=MutationResult)
async def mark_range(view_id: str, request: RangeRequest):
    """Mark every episode up to the given one."""
    view = _get_view(view_id)
    up_to = EpisodeRef(
        season_number=request.season_number, episode_number=request.episode_number
    )
    return await _run(view.coordinator.mark_range(up_to, request.watched))


@router.post("/views/{view_id}/show", response_model=MutationResult)
async def toggle_show(view_id: str, request: WatchedRequest):
    """Mark the entire show watched or unwatched."""
    view = _get_view(view_id)
    return await _run(view.coordinator.toggle_show_fully_watched(request.watched))


@router.post("/views/{view_id}/movie", response_model=MutationResult)
async def toggle_movie(view_id: str, request: WatchedRequest):
    """Set a movie's watched flag."""
    view = _get_view(view_id)
    return await _run(view.coordinator.toggle_movie(request.watched))
