"""Settings loading for the coverage map stack."""

from .settings import MapSettings, load_settings

__all__ = ["MapSettings", "load_settings"]
