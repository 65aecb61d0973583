"""Folium adapter for the MapLibrary and MapContainer ports.

Loading imports the mapping package in a worker thread so the event loop is
never blocked by a slow first import. A successful load is cached for the
process; a failed load is NOT cached so the bootstrapper can retry it.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from types import ModuleType

from domain.mapping.ports import MapContainer
from domain.mapping.value_objects import LatLng
from shared.constants import MAPBOX_ATTRIBUTION, MAPBOX_TILES_TEMPLATE, OSM_TILES

from .folium_widget import FoliumMapWidget

logger = logging.getLogger(__name__)


class HtmlMapContainer:
    """Fixed-size ``<div>`` the map is rendered into.

    ``resize()`` models a container whose layout settles after mount.
    """

    def __init__(self, element_id: str = "map", width: float = 0, height: float = 0) -> None:
        self.element_id = element_id
        self.width = width
        self.height = height

    def measure(self) -> tuple[float, float]:
        return self.width, self.height

    def resize(self, width: float, height: float) -> None:
        self.width = width
        self.height = height


class FoliumMapLibrary:
    """Loads folium and constructs FoliumMapWidget instances.

    Parameters
    ----------
    tiles: str
        Folium tile name or URL template for the base layer.
    attribution: str | None
        Tile attribution (required for URL templates).
    module_name: str
        Package to import on ``load()``.
    """

    def __init__(
        self,
        tiles: str = OSM_TILES,
        attribution: str | None = None,
        module_name: str = "folium",
    ) -> None:
        self.tiles = tiles
        self.attribution = attribution
        self.module_name = module_name
        self._modules: tuple[ModuleType, ModuleType] | None = None

    @classmethod
    def from_token(cls, mapbox_token: str | None) -> "FoliumMapLibrary":
        """Mapbox raster tiles when a token is given, OpenStreetMap otherwise."""
        if mapbox_token:
            return cls(
                tiles=MAPBOX_TILES_TEMPLATE.format(token=mapbox_token),
                attribution=MAPBOX_ATTRIBUTION,
            )
        return cls()

    @property
    def is_loaded(self) -> bool:
        return self._modules is not None

    async def load(self) -> None:
        if self._modules is not None:
            return
        try:
            self._modules = await asyncio.to_thread(self._import)
        except Exception:
            self._modules = None
            raise
        logger.debug("Map library %s loaded", self.module_name)

    def _import(self) -> tuple[ModuleType, ModuleType]:
        module = importlib.import_module(self.module_name)
        plugins = importlib.import_module(f"{self.module_name}.plugins")
        return module, plugins

    def create_map(self, container: MapContainer, center: LatLng, zoom: int) -> FoliumMapWidget:
        if self._modules is None:
            raise RuntimeError("Map library is not loaded")
        width, height = container.measure()
        return FoliumMapWidget(
            center=center,
            zoom=zoom,
            width=width,
            height=height,
            tiles=self.tiles,
            attribution=self.attribution,
        )
