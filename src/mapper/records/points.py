"""Normalize raw dataset rows into map points.

Rows missing a parseable coordinate pair or an address are dropped and
logged; a failure on one row never aborts the batch. Output order follows
input order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from loguru import logger

from mapper.records.properties import extract_property, first_present

# Synonymous column names, tried in order.
COORDINATE_FIELDS = ("Lat/long", "Latlong", "Coordenadas")
ADDRESS_FIELDS = ("Endereço", "Endereco", "Nome")
EXHIBITOR_FIELDS = ("Exibidora",)
PRODUCT_FIELDS = ("Produto",)
STATE_FIELDS = ("UF", "Estado")
LOCALITY_FIELDS = ("Praça", "Praca", "Cidade")
INCLUSION_FIELDS = ("Incluso",)


@dataclass
class MapPoint:
    """A record projected onto the map.

    Attributes:
        point_id: Record id.
        lat: Latitude in degrees.
        lng: Longitude in degrees.
        latlong: Coordinate text as stored in the record.
        address: Street address / display name.
        exhibitor: Media owner, if any.
        product: Product name or list of names.
        state: State (UF) part of the region.
        locality: City / market part of the region.
        image_url: Cover image URL, if any.
    """

    point_id: str
    lat: float
    lng: float
    latlong: str
    address: str
    exhibitor: str | None = None
    product: Any = None
    state: str | None = None
    locality: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.point_id,
            "coordinates": {"lat": self.lat, "lng": self.lng},
            "latlong": self.latlong,
            "address": self.address,
            "exhibitor": self.exhibitor,
            "product": self.product,
            "state": self.state,
            "locality": self.locality,
            "imageUrl": self.image_url,
        }


def parse_coordinates(text: Any) -> tuple[float, float] | None:
    """Parse ``"lat,lng"`` into a float pair.

    Returns None (never raises) unless the text has exactly two
    comma-separated finite numbers with lat in [-90, 90] and lng in
    [-180, 180].
    """
    if not isinstance(text, str):
        return None
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        return None
    try:
        lat = float(parts[0])
        lng = float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return lat, lng


def cover_image_url(record: dict) -> str | None:
    """URL of a record's cover image (external link or hosted file)."""
    cover = record.get("cover")
    if not isinstance(cover, dict):
        return None
    if cover.get("type") == "external":
        return (cover.get("external") or {}).get("url")
    return (cover.get("file") or {}).get("url")


def _normalize_one(record: dict, inclusion_filter: bool) -> MapPoint | None:
    props = record.get("properties") or {}

    latlong = extract_property(first_present(props, *COORDINATE_FIELDS))
    address = extract_property(first_present(props, *ADDRESS_FIELDS))
    if not latlong or not address:
        logger.debug(f"Skipping record {record.get('id')}: missing coordinates or address")
        return None

    if inclusion_filter:
        included = extract_property(first_present(props, *INCLUSION_FIELDS))
        if included is not None and not included:
            logger.debug(f"Skipping record {record.get('id')}: not included")
            return None

    coords = parse_coordinates(latlong)
    if coords is None:
        logger.warning(f"Skipping record {record.get('id')}: bad coordinates {latlong!r}")
        return None

    return MapPoint(
        point_id=record.get("id", ""),
        lat=coords[0],
        lng=coords[1],
        latlong=latlong,
        address=address,
        exhibitor=extract_property(first_present(props, *EXHIBITOR_FIELDS)),
        product=extract_property(first_present(props, *PRODUCT_FIELDS)),
        state=extract_property(first_present(props, *STATE_FIELDS)),
        locality=extract_property(first_present(props, *LOCALITY_FIELDS)),
        image_url=cover_image_url(record),
    )


def normalize_records(records: list[dict], inclusion_filter: bool = False) -> list[MapPoint]:
    """Convert raw dataset rows to MapPoints, dropping invalid rows.

    Args:
        records: Rows as returned by the dataset query.
        inclusion_filter: When True, rows whose "Incluso" checkbox is
            explicitly false are dropped as well.
    """
    points: list[MapPoint] = []
    for record in records:
        try:
            point = _normalize_one(record, inclusion_filter)
        except Exception as e:
            logger.warning(f"Failed to normalize record {record.get('id') if isinstance(record, dict) else record!r}: {e}")
            continue
        if point is not None:
            points.append(point)
    logger.info(f"Normalized {len(points)}/{len(records)} records")
    return points
