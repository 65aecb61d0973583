"""Runtime settings for the coverage map stack.

Defaults come from ``shared.constants``. An optional YAML file overrides
them, and environment variables override the file:

    MAPBOX_TOKEN            -> mapbox_token
    COVERAGE_DATABASE_URL   -> database_url
    COVERAGE_USAGE_FILE     -> usage_file
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.constants import (
    BOOTSTRAP_BACKOFF_S,
    BOOTSTRAP_MAX_ATTEMPTS,
    CRITICAL_THRESHOLD,
    DEFAULT_CENTER,
    DEFAULT_ZOOM,
    FIT_MAX_ZOOM,
    FIT_PADDING_PX,
    GEOCODING_QUOTA,
    MAP_LOAD_QUOTA,
    READY_TIMEOUT_S,
    WARNING_THRESHOLD,
)

logger = logging.getLogger(__name__)

ENV_OVERRIDES = {
    "MAPBOX_TOKEN": "mapbox_token",
    "COVERAGE_DATABASE_URL": "database_url",
    "COVERAGE_USAGE_FILE": "usage_file",
}


class MapSettings(BaseModel):
    """Validated settings; unknown keys are rejected."""

    mapbox_token: str | None = None
    database_url: str = "sqlite:///coverage.db"
    usage_file: Path = Path("mapbox_usage.json")

    map_load_quota: int = Field(default=MAP_LOAD_QUOTA, gt=0)
    geocoding_quota: int = Field(default=GEOCODING_QUOTA, gt=0)
    warning_threshold: float = Field(default=WARNING_THRESHOLD, gt=0, lt=1)
    critical_threshold: float = Field(default=CRITICAL_THRESHOLD, gt=0, le=1)

    max_attempts: int = Field(default=BOOTSTRAP_MAX_ATTEMPTS, ge=1)
    backoff_s: float = Field(default=BOOTSTRAP_BACKOFF_S, ge=0)
    ready_timeout_s: float = Field(default=READY_TIMEOUT_S, gt=0)

    center: tuple[float, float] = DEFAULT_CENTER
    zoom: int = Field(default=DEFAULT_ZOOM, ge=0, le=22)
    fit_padding: int = Field(default=FIT_PADDING_PX, ge=0)
    fit_max_zoom: int = Field(default=FIT_MAX_ZOOM, ge=0, le=22)

    width: int = Field(default=1024, gt=0)
    height: int = Field(default=768, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def validate_thresholds(self) -> "MapSettings":
        if self.warning_threshold >= self.critical_threshold:
            raise ValueError(
                f"warning_threshold ({self.warning_threshold}) must be below "
                f"critical_threshold ({self.critical_threshold})"
            )
        return self


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> MapSettings:
    """Build MapSettings from an optional YAML file plus environment overrides.

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist
        yaml.YAMLError: If the file is not valid YAML
        pydantic.ValidationError: If a value is invalid or a key is unknown
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must hold a mapping")
        values.update(loaded)
        logger.debug("Loaded settings from %s", config_path)

    for var, field in ENV_OVERRIDES.items():
        if env.get(var):
            values[field] = env[var]

    return MapSettings(**values)
