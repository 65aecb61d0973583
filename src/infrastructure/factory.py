"""Composition root: builds a CoverageMapView from MapSettings.

Used by ``scripts/render_coverage.py`` and by hosts embedding the map.
"""

from __future__ import annotations

import logging
from pathlib import Path

from domain.coverage.services import CoverageAreaService
from domain.mapping.bootstrapper import MapBootstrapper
from domain.mapping.synchronizer import CoverageLayerSynchronizer
from domain.mapping.view import CoverageMapView, MapViewState
from domain.usage.services import UsageGovernor
from shared.constants import COVERAGE_PREFIX, GLOBAL_COVERAGE_PREFIX

from .config.settings import MapSettings
from .coverage.sql_repository import SqlCoverageAreaRepository
from .mapping.folium_library import FoliumMapLibrary, HtmlMapContainer
from .mapping.folium_widget import FoliumMapWidget
from .usage.stores import JsonFileUsageStore

logger = logging.getLogger(__name__)


def build_coverage_view(
    settings: MapSettings,
    owner_id: int | None = None,
    editable: bool = False,
) -> CoverageMapView:
    """Wire one view. ``owner_id`` None builds the global (all investors) map."""
    global_map = owner_id is None
    governor = UsageGovernor(
        JsonFileUsageStore(settings.usage_file),
        quota=settings.map_load_quota,
        geocoding_quota=settings.geocoding_quota,
        warning_threshold=settings.warning_threshold,
        critical_threshold=settings.critical_threshold,
    )
    bootstrapper = MapBootstrapper(
        FoliumMapLibrary.from_token(settings.mapbox_token),
        max_attempts=settings.max_attempts,
        backoff_s=settings.backoff_s,
        ready_timeout_s=settings.ready_timeout_s,
    )
    synchronizer = CoverageLayerSynchronizer(
        prefix=GLOBAL_COVERAGE_PREFIX if global_map else COVERAGE_PREFIX,
        fit_padding=settings.fit_padding,
        fit_max_zoom=settings.fit_max_zoom,
        palette_by_owner=global_map,
    )
    return CoverageMapView(
        bootstrapper=bootstrapper,
        governor=governor,
        synchronizer=synchronizer,
        container=HtmlMapContainer("coverage-map", settings.width, settings.height),
        service=CoverageAreaService(SqlCoverageAreaRepository(settings.database_url)),
        owner_id=owner_id,
        editable=editable,
        center=settings.center,
        zoom=settings.zoom,
    )


async def render_coverage_page(
    view: CoverageMapView, output: Path | str
) -> MapViewState:
    """Mount ``view``, load its areas and write the page to ``output``.

    Writes the live map when READY and the static placeholder when the quota
    is exhausted. Nothing is written on ERROR.

    Raises:
        StorageOperationFailedError: Coverage areas could not be loaded
    """
    out = Path(output)
    try:
        await view.refresh_areas()
        state = await view.mount()

        if state is MapViewState.FALLBACK and view.fallback is not None:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(view.fallback.render_html(), encoding="utf-8")
            logger.info("Static fallback written to %s", out)
        elif state is MapViewState.READY and view.handle is not None:
            widget = view.handle.widget
            if not isinstance(widget, FoliumMapWidget):
                raise TypeError(f"Cannot render {type(widget).__name__} to HTML")
            widget.save(out)
        return state
    finally:
        await view.unmount()
