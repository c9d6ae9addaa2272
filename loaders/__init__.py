"""
Upstream data loaders for the CRE Incentives Engine.

Includes:
- Geocoding and reverse geocoding (Nominatim)
- Census tract lookup (Census Bureau geocoder)
"""

from loaders.http import JSONClient
from loaders.geocoder import Geocoder
from loaders.census import CensusTractLoader

__all__ = [
    "JSONClient",
    "Geocoder",
    "CensusTractLoader",
]
