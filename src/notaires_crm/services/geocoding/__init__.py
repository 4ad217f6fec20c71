"""Address resolution for records."""

from .batch import geocode_pending, needs_geocoding
from .client import AddressSuggestion, GeocodeResult, GeocodingClient, apply_geocode_result

__all__ = [
    "AddressSuggestion",
    "GeocodeResult",
    "GeocodingClient",
    "apply_geocode_result",
    "geocode_pending",
    "needs_geocoding",
]
