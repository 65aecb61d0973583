"""Usage Bounded Context - Usage Governor.

Tracks monthly map loads and geocoding requests against fixed quotas and
gates live map loads. Counters are read through the UsageStore port; NO
storage backend is chosen here.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from domain.usage.errors import UsageStoreError
from domain.usage.repositories import UsageStore
from domain.usage.value_objects import (
    StaticMapFallback,
    UsageCounter,
    UsageLevel,
    UsageStats,
)
from shared.constants import (
    CRITICAL_THRESHOLD,
    GEOCODING_QUOTA,
    MAP_LOAD_QUOTA,
    USAGE_KEY_PREFIX,
    WARNING_THRESHOLD,
)

logger = logging.getLogger(__name__)

MAP_LOAD = "map_load"
GEOCODING = "geocoding"

_KIND_FIELDS = {MAP_LOAD: "map_loads", GEOCODING: "geocoding_requests"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------
def period_key(now: datetime) -> str:
    """Storage key for the month containing ``now`` (e.g. ``usage_2026-10``)."""
    return f"{USAGE_KEY_PREFIX}{now.year:04d}-{now.month:02d}"


def period_start(now: datetime) -> datetime:
    return datetime(now.year, now.month, 1, tzinfo=now.tzinfo or timezone.utc)


def next_period_start(now: datetime) -> datetime:
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=now.tzinfo or timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=now.tzinfo or timezone.utc)


def days_until_reset(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    remaining = next_period_start(now) - now
    return math.ceil(remaining.total_seconds() / 86400)


# ---------------------------------------------------------------------------
# UsageGovernor
# ---------------------------------------------------------------------------
class UsageGovernor:
    """Monthly quota gate for the metered mapping service.

    Parameters
    ----------
    store: UsageStore
        Persistence for monthly counters.
    quota: int
        Map loads allowed per calendar month.
    geocoding_quota: int
        Geocoding requests allowed per calendar month.
    warning_threshold, critical_threshold: float
        Advisory levels as fractions of ``quota``.
    clock: Callable[[], datetime]
        Source of "now" (timezone-aware); injectable for tests.
    """

    def __init__(
        self,
        store: UsageStore,
        quota: int = MAP_LOAD_QUOTA,
        geocoding_quota: int = GEOCODING_QUOTA,
        warning_threshold: float = WARNING_THRESHOLD,
        critical_threshold: float = CRITICAL_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if quota <= 0 or geocoding_quota <= 0:
            raise ValueError("Quotas must be positive")
        if not (0 < warning_threshold < critical_threshold):
            raise ValueError(
                f"Invalid thresholds: warning={warning_threshold}, "
                f"critical={critical_threshold}"
            )
        self.store = store
        self.quota = quota
        self.geocoding_quota = geocoding_quota
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._notified_level = UsageLevel.NORMAL

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------
    def current(self) -> UsageCounter:
        """Counter for the current month, created lazily on first read."""
        return self._read(self._clock())

    def can_load(self) -> bool:
        """Hard gate: False once this month's map loads reach the quota."""
        return self.current().map_loads < self.quota

    def percent_used(self, kind: str = MAP_LOAD) -> float:
        """``count / quota * 100`` for ``kind``; may exceed 100."""
        field = self._field(kind)
        count = getattr(self.current(), field)
        quota = self.quota if kind == MAP_LOAD else self.geocoding_quota
        return count / quota * 100

    def level(self) -> UsageLevel:
        return self._level_for(self.percent_used(MAP_LOAD))

    def stats(self) -> UsageStats:
        now = self._clock()
        counter = self._read(now)
        map_pct = counter.map_loads / self.quota * 100
        geo_pct = counter.geocoding_requests / self.geocoding_quota * 100
        level = self._level_for(map_pct)
        with self._lock:
            self._notify(level, map_pct)
        return UsageStats(
            map_loads=counter.map_loads,
            geocoding_requests=counter.geocoding_requests,
            map_load_quota=self.quota,
            geocoding_quota=self.geocoding_quota,
            map_loads_percentage=map_pct,
            geocoding_percentage=geo_pct,
            days_until_reset=days_until_reset(now),
            can_load_map=counter.map_loads < self.quota,
            level=level,
        )

    def fallback(self) -> StaticMapFallback:
        """Placeholder describing why the live map is disabled."""
        now = self._clock()
        counter = self._read(now)
        pct = counter.map_loads / self.quota * 100
        return StaticMapFallback(
            message=(
                "Interactive map disabled to prevent usage overage: "
                f"{counter.map_loads} of {self.quota} monthly map loads used "
                f"({pct:.1f}%)"
            ),
            details=(
                "Map functionality is temporarily limited to preserve your "
                "free tier quota.",
                f"Usage resets in {days_until_reset(now)} days.",
            ),
        )

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------
    def increment(self, kind: str = MAP_LOAD) -> UsageCounter:
        """Add one event of ``kind`` to the current month.

        Raises:
            ValueError: Unknown kind
            UsageStoreError: Counter could not be read or persisted; nothing is
                written, so a stored count never goes down
        """
        field = self._field(kind)
        with self._lock:
            now = self._clock()
            counter = self._read(now, strict=True)
            updated = counter.model_copy(
                update={field: getattr(counter, field) + 1, "updated_at": now}
            )
            self._write(period_key(now), updated)
            if kind == MAP_LOAD:
                pct = updated.map_loads / self.quota * 100
                self._notify(self._level_for(pct), pct)
        return updated

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    @staticmethod
    def _field(kind: str) -> str:
        try:
            return _KIND_FIELDS[kind]
        except KeyError:
            raise ValueError(
                f"Unknown usage kind {kind!r}; expected one of {sorted(_KIND_FIELDS)}"
            ) from None

    def _read(self, now: datetime, strict: bool = False) -> UsageCounter:
        # Lenient reads gate and report; strict reads precede a write
        key = period_key(now)
        try:
            raw = self.store.get(key)
        except Exception as e:
            if strict:
                raise UsageStoreError(
                    f"Failed to read usage counter {key}: {e}"
                ) from e
            logger.error("Failed to read usage counter %s: %s", key, e)
            return UsageCounter.empty(period_start(now))

        if raw is None:
            counter = UsageCounter.empty(period_start(now))
            try:
                self._write(key, counter)
            except UsageStoreError as e:
                logger.warning("Could not initialize usage counter %s: %s", key, e)
            else:
                logger.debug("Started usage counter %s", key)
            return counter

        try:
            return UsageCounter.model_validate(raw)
        except ValidationError as e:
            if strict:
                raise UsageStoreError(f"Malformed usage counter {key}: {e}") from e
            logger.warning("Discarding malformed usage counter %s: %s", key, e)
            return UsageCounter.empty(period_start(now))

    def _write(self, key: str, counter: UsageCounter) -> None:
        try:
            self.store.put(key, counter.model_dump(mode="json"))
        except Exception as e:
            raise UsageStoreError(f"Failed to persist usage counter {key}: {e}") from e

    def _level_for(self, percentage: float) -> UsageLevel:
        if percentage >= self.critical_threshold * 100:
            return UsageLevel.CRITICAL
        if percentage >= self.warning_threshold * 100:
            return UsageLevel.WARNING
        return UsageLevel.NORMAL

    def _notify(self, level: UsageLevel, percentage: float) -> None:
        # Caller holds self._lock; log once per level change
        if level == self._notified_level:
            return
        self._notified_level = level
        if level is UsageLevel.CRITICAL:
            logger.critical(
                "%.1f%% of monthly map loads used; consider switching to static maps",
                percentage,
            )
        elif level is UsageLevel.WARNING:
            logger.warning(
                "%.1f%% of monthly map loads used; approaching limit", percentage
            )
