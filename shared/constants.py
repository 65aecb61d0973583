"""Single source of truth for map, quota and layer defaults.

These values are imported by the domain services (as constructor defaults),
by the settings loader (as field defaults) and by tests. Keep this module
free of third-party imports so every layer can depend on it.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Usage quota (metered mapping service, free tier)
# ---------------------------------------------------------------------------
MAP_LOAD_QUOTA: int = 50_000
GEOCODING_QUOTA: int = 100_000

# Advisory levels as fractions of quota (notification only, never gating)
WARNING_THRESHOLD: float = 0.80
CRITICAL_THRESHOLD: float = 0.95

# Persisted counter keys look like "usage_2026-10"
USAGE_KEY_PREFIX: str = "usage_"

# ---------------------------------------------------------------------------
# Bootstrap retry budget
# ---------------------------------------------------------------------------
BOOTSTRAP_MAX_ATTEMPTS: int = 10
BOOTSTRAP_BACKOFF_S: float = 0.1
READY_TIMEOUT_S: float = 10.0

# ---------------------------------------------------------------------------
# Initial viewport (continental US, Leaflet lat/lng order)
# ---------------------------------------------------------------------------
DEFAULT_CENTER: tuple[float, float] = (39.8283, -98.5795)
DEFAULT_ZOOM: int = 4

# Fit-to-areas behaviour
FIT_PADDING_PX: int = 20
FIT_MAX_ZOOM: int = 12

# ---------------------------------------------------------------------------
# Layer namespaces and styling
# ---------------------------------------------------------------------------
COVERAGE_PREFIX: str = "coverage-"
GLOBAL_COVERAGE_PREFIX: str = "global-coverage-"

DEFAULT_FILL_COLOR: str = "#3b82f6"
DEFAULT_LINE_COLOR: str = "#1d4ed8"
FILL_OPACITY: float = 0.3
LINE_WIDTH: int = 2

# Per-investor colours on the global coverage map (cycled by investor index)
OWNER_PALETTE: tuple[str, ...] = (
    "#3b82f6",
    "#ef4444",
    "#22c55e",
    "#f59e0b",
    "#8b5cf6",
    "#06b6d4",
    "#f97316",
    "#84cc16",
    "#ec4899",
    "#6366f1",
)

# ---------------------------------------------------------------------------
# Base tiles
# ---------------------------------------------------------------------------
OSM_TILES: str = "OpenStreetMap"
MAPBOX_TILES_TEMPLATE: str = (
    "https://api.mapbox.com/styles/v1/mapbox/light-v11/tiles/{{z}}/{{x}}/{{y}}"
    "?access_token={token}"
)
MAPBOX_ATTRIBUTION: str = "© Mapbox © OpenStreetMap contributors"
