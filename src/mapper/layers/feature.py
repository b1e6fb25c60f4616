"""Feature, FeatureCollection and Layer dataclasses for the layer system.

All coordinates are stored in GeoJSON convention: [lng, lat].
"""

from __future__ import annotations

from dataclasses import dataclass, field

GEOMETRY_TYPES = ("Point", "LineString", "Polygon")


@dataclass
class Feature:
    """A single feature (point, line, polygon) with free-form properties.

    Attributes:
        geometry_type: One of "Point", "LineString", "Polygon".
        coordinates: GeoJSON-style coordinate arrays.
            Point: [lng, lat]
            LineString: [[lng, lat], [lng, lat], ...]
            Polygon: [[[lng, lat], [lng, lat], ...]]  (outer ring only)
        properties: Arbitrary key-value metadata.
    """

    geometry_type: str
    coordinates: list
    properties: dict = field(default_factory=dict)

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "geometry": {"type": self.geometry_type, "coordinates": self.coordinates},
            "properties": self.properties,
        }

    @classmethod
    def from_geojson(cls, data: dict) -> Feature:
        geometry = data.get("geometry") or {}
        return cls(
            geometry_type=geometry.get("type", ""),
            coordinates=geometry.get("coordinates", []),
            properties=dict(data.get("properties") or {}),
        )


@dataclass
class FeatureCollection:
    """Interchange format between the KML codec and the rest of the system."""

    features: list[Feature] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    def to_geojson(self) -> dict:
        return {
            "type": "FeatureCollection",
            "features": [f.to_geojson() for f in self.features],
        }

    @classmethod
    def from_geojson(cls, data: dict) -> FeatureCollection:
        return cls(features=[Feature.from_geojson(f) for f in data.get("features", [])])


@dataclass
class Layer:
    """An active layer as listed for a project: file descriptor merged with metadata.

    Attributes:
        layer_id: File id in the store.
        name: File name without the ``.kml`` extension.
        file_name: File name in the store.
        kml_url: URL the KML content can be downloaded from.
        size: Byte size of the file.
        modified_time: ISO8601 last-modified timestamp.
        color: Marker color as ``#rrggbb``.
        icon: Icon identifier.
        visible: Whether the layer is drawn.
        opacity: Rendering opacity (0.0 to 1.0).
        point_count: Number of features, 0 when unknown.
    """

    layer_id: str
    name: str
    file_name: str
    kml_url: str | None = None
    size: int | None = None
    modified_time: str = ""
    color: str = "#e74c3c"
    icon: str = "pin"
    visible: bool = True
    opacity: float = 1.0
    point_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.layer_id,
            "name": self.name,
            "fileName": self.file_name,
            "kmlUrl": self.kml_url,
            "size": self.size,
            "modifiedTime": self.modified_time,
            "color": self.color,
            "icon": self.icon,
            "visible": self.visible,
            "opacity": self.opacity,
            "pointCount": self.point_count,
        }
