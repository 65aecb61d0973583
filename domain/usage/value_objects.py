"""Usage Bounded Context - Value Objects.

Monthly usage counters for the metered mapping service, the derived usage
snapshot shown to users, and the static placeholder rendered once the quota
is exhausted.
"""

from __future__ import annotations

import html
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UsageLevel(str, Enum):
    """Advisory level of map-load usage (notification only, never gating)."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# UsageCounter
# ---------------------------------------------------------------------------
class UsageCounter(BaseModel):
    """Counts for one calendar month (Value Object).

    Counters only grow; a new month starts from a fresh, zeroed counter.
    Unknown keys from older stored payloads are ignored.
    """

    map_loads: int = Field(default=0, ge=0)
    geocoding_requests: int = Field(default=0, ge=0)
    period_start: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def empty(cls, period_start: datetime) -> "UsageCounter":
        return cls(period_start=period_start)


# ---------------------------------------------------------------------------
# UsageStats
# ---------------------------------------------------------------------------
class UsageStats(BaseModel):
    """Snapshot of the current month for dashboards and warnings.

    Percentages are deliberately not clamped at 100 so overage is visible.
    """

    map_loads: int
    geocoding_requests: int
    map_load_quota: int
    geocoding_quota: int
    map_loads_percentage: float
    geocoding_percentage: float
    days_until_reset: int
    can_load_map: bool
    level: UsageLevel

    model_config = ConfigDict(frozen=True)

    @property
    def status_label(self) -> str:
        return {
            UsageLevel.NORMAL: "Normal",
            UsageLevel.WARNING: "Warning",
            UsageLevel.CRITICAL: "Critical",
        }[self.level]


# ---------------------------------------------------------------------------
# StaticMapFallback
# ---------------------------------------------------------------------------
DEFAULT_FALLBACK_MESSAGE = "Interactive map disabled to prevent usage overage"


class StaticMapFallback(BaseModel):
    """Placeholder rendered instead of a live map when loads are denied."""

    message: str = DEFAULT_FALLBACK_MESSAGE
    details: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    def render_html(self) -> str:
        lines = "".join(f"<p>{html.escape(d)}</p>" for d in self.details)
        return (
            '<div class="static-map-fallback" role="alert">'
            f"<strong>{html.escape(self.message)}</strong>"
            f"{lines}"
            "<p>Static Map Preview</p>"
            "</div>"
        )
