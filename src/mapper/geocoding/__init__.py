"""Address geocoding and spreadsheet column detection."""

from mapper.geocoding.columns import auto_map_columns, detect_column_type
from mapper.geocoding.service import GeocodeResult, GeocodingService, validate_coordinates

__all__ = [
    "GeocodeResult",
    "GeocodingService",
    "auto_map_columns",
    "detect_column_type",
    "validate_coordinates",
]
