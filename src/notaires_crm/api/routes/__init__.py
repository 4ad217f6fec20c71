"""Route group exports."""

from . import geocoding, health, records, sync, zones

__all__ = ["health", "records", "zones", "sync", "geocoding"]
