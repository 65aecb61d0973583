"""Folium (Leaflet) adapter for the MapWidget port.

Maps the Mapbox-style source/layer model onto folium elements:

- A source is a GeoJSON payload kept by id; it has no element of its own
- A ``fill`` layer becomes a ``folium.GeoJson`` with fill styling, popup and
  tooltip (a Feature with a ``radius`` property becomes a ``folium.Circle``)
- A ``line`` layer becomes a ``folium.GeoJson`` outline without fill
- The draw tool is ``folium.plugins.Draw``

Folium renders a static HTML page, so there is no browser event loop here.
Hosts that bridge browser events back to Python (a webview JS bridge, a test)
call ``fire()`` to dispatch them to the handlers registered with ``on()``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import folium
from folium import plugins

from domain.coverage.value_objects import GeoBounds
from domain.mapping.ports import EventHandler
from domain.mapping.value_objects import (
    DRAW_CREATED,
    LatLng,
    LayerSpec,
    MapEvent,
)

logger = logging.getLogger(__name__)

_DRAW_OPTIONS = {
    "polygon": True,
    "circle": True,
    "rectangle": False,
    "polyline": False,
    "marker": False,
    "circlemarker": False,
}


def _circle_of(data: Mapping[str, Any]) -> tuple[LatLng, float] | None:
    """Return ((lat, lng), radius_m) for a drawn circle Feature, else None."""
    if data.get("type") != "Feature":
        return None
    props = data.get("properties") or {}
    geom = data.get("geometry") or {}
    radius = props.get("radius")
    if geom.get("type") != "Point" or not isinstance(radius, (int, float)):
        return None
    lng, lat = geom["coordinates"][:2]
    return (float(lat), float(lng)), float(radius)


def _style_for(layer: LayerSpec) -> dict[str, Any]:
    paint = layer.paint
    if layer.type == "fill":
        return {
            "fillColor": paint.get("fill-color"),
            "fillOpacity": paint.get("fill-opacity", 1.0),
            "stroke": False,
        }
    return {
        "color": paint.get("line-color"),
        "weight": paint.get("line-width", 1),
        "opacity": paint.get("line-opacity", 1.0),
        "fill": False,
    }


class FoliumMapWidget:
    """Live-map facade over one ``folium.Map``.

    Parameters
    ----------
    center: LatLng
        Initial centre as (lat, lng).
    zoom: int
        Initial zoom level.
    width, height: float
        Container size in CSS pixels.
    tiles: str
        Folium tile name or URL template for the base layer.
    attribution: str | None
        Required by Leaflet for custom tile URLs.
    """

    def __init__(
        self,
        center: LatLng,
        zoom: int,
        width: float,
        height: float,
        tiles: str,
        attribution: str | None = None,
    ) -> None:
        self._map = folium.Map(
            location=list(center),
            zoom_start=zoom,
            width=width,
            height=height,
            tiles=None,
            control_scale=True,
        )
        folium.TileLayer(tiles=tiles, attr=attribution, name="Base map").add_to(
            self._map
        )
        self._sources: dict[str, dict[str, Any]] = {}
        self._layers: dict[str, tuple[LayerSpec, folium.Element]] = {}
        self._handlers: dict[tuple[str, str | None], list[EventHandler]] = {}
        self._popup: folium.Element | None = None
        self._draw: folium.Element | None = None
        self._drawn: list[dict[str, Any]] = []
        self._loaded = True
        self.cursor = ""
        self.fitted_bounds: GeoBounds | None = None

    @property
    def map(self) -> folium.Map:
        return self._map

    @property
    def drawn(self) -> list[dict[str, Any]]:
        return list(self._drawn)

    @property
    def draw_enabled(self) -> bool:
        return self._draw is not None

    # -----------------------------------------------------------------------
    # Readiness
    # -----------------------------------------------------------------------
    def loaded(self) -> bool:
        return self._loaded

    def style_ready(self) -> bool:
        # Tiles are attached at construction; there is no separate style fetch
        return self._loaded

    # -----------------------------------------------------------------------
    # Sources and layers
    # -----------------------------------------------------------------------
    def layer_ids(self) -> list[str]:
        return list(self._layers)

    def source_ids(self) -> list[str]:
        return list(self._sources)

    def has_source(self, source_id: str) -> bool:
        return source_id in self._sources

    def add_source(self, source_id: str, data: Mapping[str, Any]) -> None:
        if source_id in self._sources:
            raise ValueError(f"Source {source_id!r} already exists")
        if not isinstance(data, Mapping) or "type" not in data:
            raise ValueError(f"Source {source_id!r} is not a GeoJSON object")
        self._sources[source_id] = dict(data)

    def remove_source(self, source_id: str) -> None:
        if source_id not in self._sources:
            raise KeyError(source_id)
        users = [lid for lid, (spec, _) in self._layers.items() if spec.source == source_id]
        if users:
            raise ValueError(f"Source {source_id!r} is in use by layers {users}")
        del self._sources[source_id]

    def add_layer(self, layer: LayerSpec) -> None:
        if layer.id in self._layers:
            raise ValueError(f"Layer {layer.id!r} already exists")
        data = self._sources.get(layer.source)
        if data is None:
            raise ValueError(f"Layer {layer.id!r} references unknown source {layer.source!r}")

        style = _style_for(layer)
        circle = _circle_of(data)
        if circle is not None:
            location, radius = circle
            element = folium.Circle(
                location=list(location),
                radius=radius,
                fill=layer.type == "fill",
                fill_color=style.get("fillColor"),
                fill_opacity=style.get("fillOpacity"),
                color=style.get("color") or style.get("fillColor"),
                weight=style.get("weight", 0),
                stroke=layer.type == "line",
            )
        else:
            element = folium.GeoJson(
                data,
                name=layer.id,
                style_function=lambda _feature, s=style: s,
            )
        if layer.popup is not None:
            folium.Popup(layer.popup, max_width=300).add_to(element)
        if layer.tooltip is not None:
            folium.Tooltip(layer.tooltip, sticky=True).add_to(element)

        element.add_to(self._map)
        self._layers[layer.id] = (layer, element)

    def remove_layer(self, layer_id: str) -> None:
        _, element = self._layers.pop(layer_id)
        self._map._children.pop(element.get_name(), None)
        for key in [k for k in self._handlers if k[1] == layer_id]:
            del self._handlers[key]

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------
    def on(self, event: str, handler: EventHandler, layer_id: str | None = None) -> None:
        self._handlers.setdefault((event, layer_id), []).append(handler)

    def fire(
        self,
        event: str,
        layer_id: str | None = None,
        lnglat: LatLng | None = None,
        feature: dict[str, Any] | None = None,
    ) -> int:
        """Dispatch a bridged browser event; return the number of handlers run."""
        if event == DRAW_CREATED and feature is not None:
            self._drawn.append(feature)
        payload = MapEvent(type=event, layer_id=layer_id, lnglat=lnglat, feature=feature)
        handlers = list(self._handlers.get((event, layer_id), ()))
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    def open_popup(self, location: LatLng, html: str) -> None:
        if self._popup is not None:
            self._map._children.pop(self._popup.get_name(), None)
        self._popup = folium.Marker(
            location=list(location),
            popup=folium.Popup(html, max_width=300, show=True),
        )
        self._popup.add_to(self._map)

    def fit_bounds(self, bounds: GeoBounds, padding: int, max_zoom: int) -> None:
        # Keep only the latest FitBounds element on the page
        for key in [k for k in self._map._children if k.startswith("fit_bounds_")]:
            del self._map._children[key]
        self._map.fit_bounds(
            bounds.to_leaflet(), padding=(padding, padding), max_zoom=max_zoom
        )
        self.fitted_bounds = bounds

    # -----------------------------------------------------------------------
    # Drawing
    # -----------------------------------------------------------------------
    def enable_draw(self) -> None:
        if self._draw is not None:
            return
        self._draw = plugins.Draw(export=False, draw_options=_DRAW_OPTIONS)
        self._draw.add_to(self._map)

    def disable_draw(self) -> None:
        if self._draw is None:
            return
        self._map._children.pop(self._draw.get_name(), None)
        self._draw = None

    def clear_drawn(self) -> None:
        self._drawn.clear()

    # -----------------------------------------------------------------------
    # Lifecycle and output
    # -----------------------------------------------------------------------
    def remove(self) -> None:
        if not self._loaded:
            return
        self._loaded = False
        self._handlers.clear()
        self._layers.clear()
        self._sources.clear()
        logger.debug("Folium map %s released", self._map.get_name())

    def render_html(self) -> str:
        return self._map.get_root().render()

    def save(self, path: Path | str) -> Path:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        self._map.save(str(out))
        logger.info("Map written to %s", out)
        return out
