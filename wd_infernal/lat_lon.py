"""
lat_lon.py - Latitude/longitude value type.

Module: wd_infernal.lat_lon
"""
__all__ = ['LatLon']

import logging
from dataclasses import dataclass
from typing import Any

from geopy.distance import geodesic

from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LatLon:
    """
    A WGS84 coordinate.

    Attributes:
        lat (float): Latitude in degrees, -90..90.
        lon (float): Longitude in degrees, -180..180.
    """
    lat: float
    lon: float

    def __post_init__(self):
        lat = self._coerce(self.lat, "latitude")
        lon = self._coerce(self.lon, "longitude")
        if not -90.0 <= lat <= 90.0:
            raise ValidationError(f"Latitude out of range: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValidationError(f"Longitude out of range: {lon}")
        object.__setattr__(self, 'lat', lat)
        object.__setattr__(self, 'lon', lon)

    @staticmethod
    def _coerce(value: Any, name: str) -> float:
        if isinstance(value, bool):
            raise ValidationError(f"Unparsable {name}: {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Unparsable {name}: {value!r}")
        if number != number or number in (float('inf'), float('-inf')):
            raise ValidationError(f"Unparsable {name}: {value!r}")
        return number

    def distance_km(self, other: "LatLon") -> float:
        """Geodesic distance to another coordinate in kilometres."""
        return geodesic((self.lat, self.lon), (other.lat, other.lon)).km

    def to_wkt(self) -> str:
        """Well-known-text point as used by the Wikidata query service (lon first)."""
        return f"Point({self.lon} {self.lat})"

    def __str__(self):
        return f"({self.lat}, {self.lon})"
