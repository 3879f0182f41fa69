import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from watchtrack.api.routes_api import router as api_router
from watchtrack.catalogs import CatalogRegistry, register_catalog
from watchtrack.catalogs.backend_catalog import BackendCatalog
from watchtrack.catalogs.tmdb_catalog import TMDBCatalog
from watchtrack.core.config import get_settings
from watchtrack.services.title_view import title_view_lifespan

load_dotenv()


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Application lifespan context manager."""
    try:
        # Close open views and the progress store session
        async with title_view_lifespan(app):
            yield
    finally:
        await CatalogRegistry.aclose_all()


logging.basicConfig(level=logging.DEBUG if get_settings().debug else logging.INFO)

app = FastAPI(
    title="Watchtrack",
    description="Watch progress tracking and reconciliation for movies and TV shows",
    version="0.1.0",
    lifespan=app_lifespan,
)

# Register catalogs
register_catalog(BackendCatalog())
register_catalog(TMDBCatalog())

# Include routers
app.include_router(api_router, prefix="/api")
