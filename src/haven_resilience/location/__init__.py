from .search import (
    MIN_QUERY_LENGTH,
    ConfiguredPositionProvider,
    DevicePositionProvider,
    Geocoder,
    LocationSearch,
)

__all__ = [
    "ConfiguredPositionProvider",
    "DevicePositionProvider",
    "Geocoder",
    "LocationSearch",
    "MIN_QUERY_LENGTH",
]
