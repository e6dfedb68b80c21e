"""wd_infernal package: inference rules proposing provenance-annotated statements for Wikidata."""

from wd_infernal.errors import AdapterError, InfernalError, ValidationError
from wd_infernal.lat_lon import LatLon
from wd_infernal.wikidate import WikidataTime

__version__ = "0.1.0"

__all__ = [
    "AdapterError",
    "InfernalError",
    "LatLon",
    "ValidationError",
    "WikidataTime",
]
