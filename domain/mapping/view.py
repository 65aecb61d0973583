"""Coverage Map View.

Mount orchestrator for one coverage map. Wires the components in order:

1) Ask the usage governor whether a live load is allowed (else static fallback)
2) Bootstrap the map and count one map load for this mount
3) Synchronize layers whenever "map ready AND areas loaded" holds, whichever
   became true first
4) On unmount cancel any in-flight bootstrap, tear down layers, destroy the map

Bootstrap failures become the ERROR state with the error kept for a retry
affordance; they are never raised to the hosting page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from domain.coverage.drawing import DrawingSession
from domain.coverage.errors import DrawingStateError, StorageOperationFailedError
from domain.coverage.services import CoverageAreaService
from domain.coverage.value_objects import CoverageArea
from domain.mapping.bootstrapper import MapBootstrapper, MapHandle
from domain.mapping.errors import MapError
from domain.mapping.ports import MapContainer
from domain.mapping.synchronizer import CoverageLayerSynchronizer, SyncResult
from domain.mapping.value_objects import LatLng
from domain.usage.errors import UsageStoreError
from domain.usage.services import MAP_LOAD, UsageGovernor
from domain.usage.value_objects import StaticMapFallback
from shared.constants import DEFAULT_CENTER, DEFAULT_ZOOM

logger = logging.getLogger(__name__)


class MapViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    FALLBACK = "fallback"
    UNMOUNTED = "unmounted"


class CoverageMapView:
    """One mounted coverage map (per-owner or global).

    ``owner_id`` set: the view lists that owner's areas. ``owner_id`` None:
    the view lists every area and labels popups with investor names.
    ``editable`` views also expose a DrawingSession once the map is ready.
    """

    def __init__(
        self,
        *,
        bootstrapper: MapBootstrapper,
        governor: UsageGovernor,
        synchronizer: CoverageLayerSynchronizer,
        container: MapContainer,
        service: CoverageAreaService,
        owner_id: int | None = None,
        editable: bool = False,
        center: LatLng = DEFAULT_CENTER,
        zoom: int = DEFAULT_ZOOM,
    ) -> None:
        if editable and owner_id is None:
            raise ValueError("An editable coverage map needs an owner_id")
        self.bootstrapper = bootstrapper
        self.governor = governor
        self.synchronizer = synchronizer
        self.container = container
        self.service = service
        self.owner_id = owner_id
        self.editable = editable
        self.center = center
        self.zoom = zoom

        self.error: MapError | None = None
        self.fallback: StaticMapFallback | None = None
        self.drawing: DrawingSession | None = None
        self.last_sync: SyncResult | None = None

        self._state = MapViewState.IDLE
        self._handle: MapHandle | None = None
        self._areas: list[CoverageArea] = []
        self._areas_loaded = False
        self._load_counted = False

    @property
    def state(self) -> MapViewState:
        return self._state

    @property
    def handle(self) -> MapHandle | None:
        return self._handle

    @property
    def areas(self) -> list[CoverageArea]:
        return list(self._areas)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    async def mount(self) -> MapViewState:
        if self._state in (MapViewState.LOADING, MapViewState.READY):
            return self._state

        if not self.governor.can_load():
            self.fallback = self.governor.fallback()
            self._state = MapViewState.FALLBACK
            logger.warning("Map load denied: %s", self.fallback.message)
            return self._state

        self._state = MapViewState.LOADING
        self.error = None
        try:
            handle = await self.bootstrapper.initialize(
                self.container, self.center, self.zoom
            )
        except MapError as e:
            self.error = e
            self._state = MapViewState.ERROR
            logger.error("Map failed to initialize: %s", e)
            return self._state
        except asyncio.CancelledError:
            if self._state is MapViewState.UNMOUNTED:
                logger.debug("Map bootstrap cancelled by unmount")
                return self._state
            raise
        except Exception as e:
            self.error = MapError(f"Map failed to initialize: {e}")
            self._state = MapViewState.ERROR
            logger.exception("Unexpected error while initializing map")
            return self._state

        if self._state is MapViewState.UNMOUNTED:
            # Unmounted while the last step was finishing
            self.bootstrapper.destroy()
            return self._state

        self._handle = handle
        self._count_load()
        self._state = MapViewState.READY
        if self.editable and self.owner_id is not None:
            self.drawing = DrawingSession(handle.widget, self.service, self.owner_id)
        await self._maybe_sync()
        return self._state

    async def retry(self) -> MapViewState:
        """Re-run the mount after a bootstrap failure."""
        if self._state is not MapViewState.ERROR:
            logger.debug("Retry ignored in state %s", self._state.value)
            return self._state
        logger.info("Retrying map initialization")
        self.bootstrapper.destroy()
        self._state = MapViewState.IDLE
        return await self.mount()

    async def unmount(self) -> None:
        if self._state is MapViewState.UNMOUNTED:
            return
        self._state = MapViewState.UNMOUNTED
        self.bootstrapper.cancel()

        if self._handle is not None:
            await self.synchronizer.teardown(self._handle.widget)
        if self.drawing is not None:
            self.drawing.cancel()
            self.drawing = None
        self.bootstrapper.destroy()
        self._handle = None
        self._load_counted = False
        logger.debug("Coverage map unmounted")

    # -----------------------------------------------------------------------
    # Record list
    # -----------------------------------------------------------------------
    async def set_areas(self, areas: Sequence[CoverageArea]) -> None:
        self._areas = list(areas)
        self._areas_loaded = True
        await self._maybe_sync()

    async def refresh_areas(self) -> list[CoverageArea]:
        """Reload areas (and, for the global map, investors) from storage.

        Raises:
            StorageOperationFailedError: The store could not be read
        """
        try:
            if self.owner_id is not None:
                areas = self.service.list_for_owner(self.owner_id)
            else:
                areas = self.service.list_all()
                self.synchronizer.set_investors(self.service.list_investors())
        except StorageOperationFailedError as e:
            logger.error("Could not refresh coverage areas: %s", e)
            raise
        await self.set_areas(areas)
        return areas

    async def commit_drawing(self, name: str) -> CoverageArea:
        """Persist the pending drawn shape and re-render."""
        if self.drawing is None:
            raise DrawingStateError("Drawing is not available on this map")
        area = self.drawing.commit(name)
        await self.refresh_areas()
        return area

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    def _count_load(self) -> None:
        if self._load_counted:
            return
        try:
            self.governor.increment(MAP_LOAD)
        except UsageStoreError as e:
            logger.error("Map load could not be recorded: %s", e)
            return
        self._load_counted = True

    async def _maybe_sync(self) -> None:
        if self._state is not MapViewState.READY or not self._areas_loaded:
            return
        if self._handle is None:
            return
        self.last_sync = await self.synchronizer.sync(self._handle.widget, self._areas)
