"""Mapping Bounded Context.

Responsible for the live map lifecycle:
- Ports: MapContainer, MapLibrary, MapWidget
- Bootstrapper: MapBootstrapper, MapHandle
- Synchronizer: CoverageLayerSynchronizer
- View: CoverageMapView (mount orchestration)
"""
