"""Record service integration: property extraction, parent resolution, points."""

from mapper.records.client import RecordClient, normalize_record_id
from mapper.records.points import MapPoint, normalize_records, parse_coordinates
from mapper.records.properties import PropertyType, extract_property
from mapper.records.resolver import resolve_dataset, resolve_title

__all__ = [
    "MapPoint",
    "PropertyType",
    "RecordClient",
    "extract_property",
    "normalize_record_id",
    "normalize_records",
    "parse_coordinates",
    "resolve_dataset",
    "resolve_title",
]
