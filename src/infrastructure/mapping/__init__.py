"""Infrastructure adapters for the mapping bounded context.

Folium (Leaflet) implementations of the MapLibrary, MapContainer and
MapWidget ports.
"""

from .folium_library import FoliumMapLibrary, HtmlMapContainer
from .folium_widget import FoliumMapWidget

__all__ = ["FoliumMapLibrary", "FoliumMapWidget", "HtmlMapContainer"]
