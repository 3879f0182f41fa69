"""Catalog registry for selecting the configured catalog backend."""

import logging
from typing import Dict, List

from watchtrack.catalogs.base import CatalogInterface
from watchtrack.core.config import get_settings

logger = logging.getLogger(__name__)


class CatalogRegistry:
    """Catalog backends by name; ``catalog_backend`` picks the active one."""

    _catalogs: Dict[str, CatalogInterface] = {}

    @classmethod
    def register(cls, catalog: CatalogInterface) -> None:
        cls._catalogs[catalog.name] = catalog

    @classmethod
    def names(cls) -> List[str]:
        return list(cls._catalogs.keys())

    @classmethod
    def active_name(cls) -> str:
        return get_settings().catalog_backend

    @classmethod
    def active(cls) -> CatalogInterface:
        """The catalog named by the ``catalog_backend`` setting.

        Raises:
            LookupError: that catalog was never registered.
        """
        name = cls.active_name()
        catalog = cls._catalogs.get(name)
        if catalog is None:
            raise LookupError(
                f"Catalog backend '{name}' is not registered "
                f"(available: {', '.join(cls.names()) or 'none'})"
            )
        return catalog

    @classmethod
    async def aclose_all(cls) -> None:
        """Close every registered catalog; one failing close does not stop the rest."""
        for catalog in cls._catalogs.values():
            try:
                await catalog.aclose()
            except Exception as e:
                logger.error(f"Error closing catalog {catalog.name}: {e}")


def register_catalog(catalog: CatalogInterface) -> None:
    """Register a catalog with the global registry."""
    CatalogRegistry.register(catalog)


def get_catalog() -> CatalogInterface:
    """Return the active catalog; used as the title views' catalog factory."""
    return CatalogRegistry.active()
