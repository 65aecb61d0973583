"""Coverage Layer Synchronizer.

Projects a list of coverage areas onto a live map as namespaced
source/layer triples and keeps them in step with the list:

1) Remove every layer, then every source, carrying this synchronizer's prefix
2) For each valid area add ``<prefix>source-<id>``, ``<prefix>fill-<id>`` and
   ``<prefix>line-<id>``
3) Bind hover (cursor) and click (popup) handlers to the fill layer
4) Fit the viewport to the union of rendered geometries

Every call is a full teardown-and-rebuild, so repeated calls with the same
areas converge to the same set of layers. Calls are serialized so one call's
teardown can never remove another call's additions.
"""

from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from domain.coverage.services import combined_bounds, geometry_bounds
from domain.coverage.value_objects import CoverageArea, GeoBounds, Investor
from domain.mapping.ports import MapWidget
from domain.mapping.value_objects import (
    CLICK,
    MOUSE_ENTER,
    MOUSE_LEAVE,
    LayerSpec,
    MapEvent,
)
from shared.constants import (
    COVERAGE_PREFIX,
    DEFAULT_FILL_COLOR,
    DEFAULT_LINE_COLOR,
    FILL_OPACITY,
    FIT_MAX_ZOOM,
    FIT_PADDING_PX,
    LINE_WIDTH,
    OWNER_PALETTE,
)

logger = logging.getLogger(__name__)


class LayerBinding(BaseModel):
    """Identifiers attached to the live map for one coverage area."""

    source_id: str
    fill_layer_id: str
    line_layer_id: str

    model_config = ConfigDict(frozen=True)


class SyncResult(BaseModel):
    """Outcome of one ``sync`` call."""

    rendered: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    bounds: GeoBounds | None = None
    skipped_not_ready: bool = False

    model_config = ConfigDict(frozen=True)


class CoverageLayerSynchronizer:
    """Owns the MapLayerBinding of one mounted map.

    Parameters
    ----------
    prefix: str
        Namespace for every source and layer id this instance creates.
    fit_padding: int
        Viewport padding in pixels when fitting to the rendered areas.
    fit_max_zoom: int
        Zoom ceiling so a single small area is not zoomed into too far.
    investors: Sequence[Investor]
        Owners known to the view; used for popup labels and, with
        ``palette_by_owner``, for per-owner colours.
    palette_by_owner: bool
        Colour areas by owner (global map) instead of the fixed blue.
    """

    def __init__(
        self,
        prefix: str = COVERAGE_PREFIX,
        fit_padding: int = FIT_PADDING_PX,
        fit_max_zoom: int = FIT_MAX_ZOOM,
        investors: Sequence[Investor] = (),
        palette_by_owner: bool = False,
    ) -> None:
        self.prefix = prefix
        self.fit_padding = fit_padding
        self.fit_max_zoom = fit_max_zoom
        self.palette_by_owner = palette_by_owner
        self._lock = asyncio.Lock()
        self._bindings: dict[str, LayerBinding] = {}
        self._investors: dict[int, tuple[int, Investor]] = {}
        self.set_investors(investors)

    @property
    def bindings(self) -> dict[str, LayerBinding]:
        return dict(self._bindings)

    def set_investors(self, investors: Sequence[Investor]) -> None:
        self._investors = {inv.id: (index, inv) for index, inv in enumerate(investors)}

    def binding_for(self, area_id: str) -> LayerBinding:
        return LayerBinding(
            source_id=f"{self.prefix}source-{area_id}",
            fill_layer_id=f"{self.prefix}fill-{area_id}",
            line_layer_id=f"{self.prefix}line-{area_id}",
        )

    def colors_for(self, owner_id: int) -> tuple[str, str]:
        """Return (fill, line) colours for an owner."""
        if not self.palette_by_owner:
            return DEFAULT_FILL_COLOR, DEFAULT_LINE_COLOR
        entry = self._investors.get(owner_id)
        if entry is None:
            return DEFAULT_FILL_COLOR, DEFAULT_LINE_COLOR
        color = OWNER_PALETTE[entry[0] % len(OWNER_PALETTE)]
        return color, color

    def popup_html(self, area: CoverageArea) -> str:
        parts = [f"<h3>{html.escape(area.name)}</h3>"]
        if self._investors:
            entry = self._investors.get(area.owner_id)
            owner = entry[1].company_name if entry else "Unknown Investor"
            parts.append(f"<p><strong>{html.escape(owner)}</strong></p>")
        parts.append(f"<p>Type: {html.escape(area.area_type)}</p>")
        parts.append(f"<p>Created: {area.created_label()}</p>")
        return '<div class="coverage-popup">' + "".join(parts) + "</div>"

    # -----------------------------------------------------------------------
    # Public operations
    # -----------------------------------------------------------------------
    async def sync(self, widget: MapWidget, areas: Sequence[CoverageArea]) -> SyncResult:
        """Rebuild this namespace's layers from ``areas``.

        Calling before the map is loaded and style-ready is a no-op; the
        caller re-invokes once readiness is reached.
        """
        async with self._lock:
            if not (widget.loaded() and widget.style_ready()):
                logger.debug("Map not ready; deferring coverage layer sync")
                return SyncResult(skipped_not_ready=True)

            self._remove_namespace(widget)

            rendered: list[str] = []
            skipped: list[str] = []
            extents: list[GeoBounds] = []
            for area in areas:
                try:
                    extents.append(self._render_area(widget, area))
                except Exception as e:
                    skipped.append(area.id)
                    logger.warning(
                        "Skipping coverage area %s (%r): %s", area.id, area.name, e
                    )
                    continue
                rendered.append(area.id)

            envelope = combined_bounds(extents)
            if envelope is not None:
                # Let pending widget work settle before moving the camera
                await asyncio.sleep(0)
                if widget.loaded():
                    widget.fit_bounds(
                        envelope, padding=self.fit_padding, max_zoom=self.fit_max_zoom
                    )

            logger.info(
                "Rendered %d coverage area(s) under %r, skipped %d",
                len(rendered),
                self.prefix,
                len(skipped),
            )
            return SyncResult(
                rendered=tuple(rendered), skipped=tuple(skipped), bounds=envelope
            )

    async def teardown(self, widget: MapWidget) -> None:
        """Remove everything in this namespace (on unmount)."""
        async with self._lock:
            if widget.loaded():
                self._remove_namespace(widget)
            self._bindings.clear()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    def _remove_namespace(self, widget: MapWidget) -> None:
        # Layers before sources: a source cannot be removed while in use
        for layer_id in list(widget.layer_ids()):
            if layer_id.startswith(self.prefix):
                self._safe_remove_layer(widget, layer_id)
        for source_id in list(widget.source_ids()):
            if source_id.startswith(self.prefix):
                self._safe_remove_source(widget, source_id)
        self._bindings.clear()

    def _render_area(self, widget: MapWidget, area: CoverageArea) -> GeoBounds:
        extent = geometry_bounds(area.geometry, area.id)
        binding = self.binding_for(area.id)
        if widget.has_source(binding.source_id):
            raise ValueError(f"duplicate coverage area id {area.id}")

        fill_color, line_color = self.colors_for(area.owner_id)
        popup = self.popup_html(area)
        added_layers: list[str] = []
        source_added = False
        try:
            widget.add_source(binding.source_id, area.geometry)
            source_added = True
            widget.add_layer(
                LayerSpec(
                    id=binding.fill_layer_id,
                    type="fill",
                    source=binding.source_id,
                    paint={"fill-color": fill_color, "fill-opacity": FILL_OPACITY},
                    popup=popup,
                    tooltip=area.name,
                )
            )
            added_layers.append(binding.fill_layer_id)
            widget.add_layer(
                LayerSpec(
                    id=binding.line_layer_id,
                    type="line",
                    source=binding.source_id,
                    paint={
                        "line-color": line_color,
                        "line-width": LINE_WIDTH,
                        "line-opacity": 1,
                    },
                )
            )
            added_layers.append(binding.line_layer_id)
            self._attach_handlers(widget, binding, popup, extent)
        except Exception:
            # Roll back only what this call added; ids may collide with a
            # record that rendered earlier in the batch
            for layer_id in reversed(added_layers):
                self._safe_remove_layer(widget, layer_id)
            if source_added:
                self._safe_remove_source(widget, binding.source_id)
            raise

        self._bindings[area.id] = binding
        return extent

    def _attach_handlers(
        self,
        widget: MapWidget,
        binding: LayerBinding,
        popup: str,
        extent: GeoBounds,
    ) -> None:
        anchor = (
            (extent.south + extent.north) / 2,
            (extent.west + extent.east) / 2,
        )

        def _on_click(event: MapEvent) -> None:
            widget.open_popup(event.lnglat or anchor, popup)

        def _on_enter(_event: MapEvent) -> None:
            widget.set_cursor("pointer")

        def _on_leave(_event: MapEvent) -> None:
            widget.set_cursor("")

        widget.on(CLICK, _on_click, layer_id=binding.fill_layer_id)
        widget.on(MOUSE_ENTER, _on_enter, layer_id=binding.fill_layer_id)
        widget.on(MOUSE_LEAVE, _on_leave, layer_id=binding.fill_layer_id)

    @staticmethod
    def _safe_remove_layer(widget: MapWidget, layer_id: str) -> None:
        try:
            widget.remove_layer(layer_id)
        except Exception as e:
            logger.debug("Layer %s could not be removed: %s", layer_id, e)

    @staticmethod
    def _safe_remove_source(widget: MapWidget, source_id: str) -> None:
        try:
            widget.remove_source(source_id)
        except Exception as e:
            logger.debug("Source %s could not be removed: %s", source_id, e)
