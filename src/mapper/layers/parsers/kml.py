"""Parse KML 2.2 XML to a FeatureCollection using xml.etree.ElementTree.

Handles Placemark/Point, Placemark/LineString, Placemark/Polygon.
Extracts name, description, ExtendedData and IconStyle (color, icon href),
following ``styleUrl`` references to shared document styles.
KML coordinate format: "lng,lat,alt lng,lat,alt" (longitude first, latitude second).
Altitude is discarded; coordinates are stored as [lng, lat] (GeoJSON convention).
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from loguru import logger

from mapper.errors import MalformedXmlError
from mapper.layers.feature import Feature, FeatureCollection

DEFAULT_COLOR = "#e74c3c"
DEFAULT_PLACEMARK_NAME = "Sem nome"

_KML_COLOR = re.compile(r"^[0-9a-fA-F]{8}$")


@dataclass
class KmlValidation:
    valid: bool
    error: str | None = None


def parse_kml(kml_string: str) -> FeatureCollection:
    """Parse a KML XML string into a FeatureCollection.

    Args:
        kml_string: Raw KML XML content.

    Returns:
        FeatureCollection with one feature per placemark that carries a
        usable geometry. Placemarks without one are skipped.

    Raises:
        MalformedXmlError: If the text is not well-formed XML.
    """
    root = _parse_root(kml_string)
    ns = _detect_namespace(root)
    shared_styles = _collect_shared_styles(root, ns)

    placemarks = list(root.iter(f"{ns}Placemark"))
    logger.debug(f"KML: {len(placemarks)} placemarks found")

    features: list[Feature] = []
    for idx, pm in enumerate(placemarks):
        try:
            feature = _parse_placemark(pm, ns, shared_styles)
        except Exception as e:
            logger.warning(f"KML: skipping placemark {idx}: {e}")
            continue
        if feature is None:
            logger.warning(f"KML: placemark {idx} has no usable geometry")
            continue
        features.append(feature)

    return FeatureCollection(features=features)


def validate_kml(kml_string: str) -> KmlValidation:
    """Structural check: well-formed XML, a ``kml`` root and at least one Placemark."""
    try:
        root = _parse_root(kml_string)
    except MalformedXmlError as e:
        return KmlValidation(False, str(e))

    ns = _detect_namespace(root)
    if _local_name(root.tag) != "kml":
        return KmlValidation(False, "Not a KML document (no <kml> element)")
    if next(root.iter(f"{ns}Placemark"), None) is None:
        return KmlValidation(False, "No Placemark found in KML")
    return KmlValidation(True)


def kml_color_to_hex(kml_color: str) -> str:
    """Convert a KML ``aabbggrr`` color to ``#rrggbb``; default color if malformed."""
    kml_color = (kml_color or "").strip()
    if not _KML_COLOR.match(kml_color):
        return DEFAULT_COLOR
    return f"#{kml_color[6:8]}{kml_color[4:6]}{kml_color[2:4]}"


def parse_coordinate_string(coord_str: str) -> list[list[float]]:
    """Parse KML coordinate string: 'lng,lat,alt lng,lat,alt ...'

    Returns list of [lng, lat] arrays. Malformed tuples are dropped.
    """
    coords = []
    for token in coord_str.strip().split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        try:
            lng = float(parts[0])
            lat = float(parts[1])
        except ValueError:
            continue
        coords.append([lng, lat])
    return coords


def _parse_root(kml_string: str) -> ET.Element:
    try:
        return ET.fromstring(kml_string)
    except ET.ParseError as e:
        raise MalformedXmlError(f"Invalid XML: {e}") from e


def _detect_namespace(root: ET.Element) -> str:
    """Detect KML namespace from root element tag."""
    tag = root.tag
    if "{" in tag:
        return tag.split("}")[0] + "}"
    return ""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_child(parent: ET.Element, tag: str, ns: str) -> ET.Element | None:
    """Find a direct or nested child element by tag."""
    return parent.find(f".//{ns}{tag}")


def _get_text(parent: ET.Element, tag: str, ns: str) -> str:
    """Text of a direct child element."""
    elem = parent.find(f"{ns}{tag}")
    if elem is not None and elem.text:
        return elem.text.strip()
    return ""


# ---------------------------------------------------------------------------
# Placemarks
# ---------------------------------------------------------------------------

def _parse_placemark(pm: ET.Element, ns: str, shared_styles: dict[str, dict]) -> Feature | None:
    geometry = _parse_geometry(pm, ns)
    if geometry is None:
        return None
    geometry_type, coordinates = geometry

    properties: dict = {
        "name": _get_text(pm, "name", ns) or DEFAULT_PLACEMARK_NAME,
        "description": _get_text(pm, "description", ns),
    }
    properties.update(_parse_extended_data(pm, ns))
    properties.update(_parse_style(pm, ns, shared_styles))

    return Feature(geometry_type=geometry_type, coordinates=coordinates, properties=properties)


def _parse_geometry(pm: ET.Element, ns: str) -> tuple[str, list] | None:
    """Point, then LineString, then Polygon; the first that parses wins."""
    point = _find_child(pm, "Point", ns)
    if point is not None:
        coords = _coordinates_of(point, ns)
        if coords:
            return "Point", coords[0]

    linestring = _find_child(pm, "LineString", ns)
    if linestring is not None:
        coords = _coordinates_of(linestring, ns)
        if coords:
            return "LineString", coords

    polygon = _find_child(pm, "Polygon", ns)
    if polygon is not None:
        outer = _find_child(polygon, "outerBoundaryIs", ns)
        if outer is not None:
            coords = _coordinates_of(outer, ns)
            if coords:
                return "Polygon", [coords]

    return None


def _coordinates_of(geom_elem: ET.Element, ns: str) -> list[list[float]]:
    coord_elem = _find_child(geom_elem, "coordinates", ns)
    if coord_elem is None or not coord_elem.text:
        return []
    return parse_coordinate_string(coord_elem.text)


def _parse_extended_data(pm: ET.Element, ns: str) -> dict:
    """ExtendedData/Data name/value pairs."""
    data: dict = {}
    extended = pm.find(f"{ns}ExtendedData")
    if extended is None:
        return data
    for elem in extended.iter(f"{ns}Data"):
        name = elem.get("name")
        if not name:
            continue
        value = elem.find(f"{ns}value")
        data[name] = value.text.strip() if value is not None and value.text else ""
    return data


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

def _icon_style(style_elem: ET.Element, ns: str) -> dict:
    style: dict = {}
    icon_style = _find_child(style_elem, "IconStyle", ns)
    if icon_style is None:
        return style
    color = _get_text(icon_style, "color", ns)
    if color:
        style["color"] = kml_color_to_hex(color)
    icon = icon_style.find(f"{ns}Icon")
    if icon is not None:
        href = _get_text(icon, "href", ns)
        if href:
            style["iconUrl"] = href
    return style


def _collect_shared_styles(root: ET.Element, ns: str) -> dict[str, dict]:
    """Document-level ``<Style id=...>`` elements keyed by id."""
    styles = {}
    for style_elem in root.iter(f"{ns}Style"):
        style_id = style_elem.get("id")
        if style_id:
            styles[style_id] = _icon_style(style_elem, ns)
    return styles


def _parse_style(pm: ET.Element, ns: str, shared_styles: dict[str, dict]) -> dict:
    """Inline Style wins over a ``styleUrl`` reference."""
    style: dict = {}
    style_url = _get_text(pm, "styleUrl", ns)
    if style_url.startswith("#"):
        style.update(shared_styles.get(style_url[1:], {}))
    inline = pm.find(f"{ns}Style")
    if inline is not None:
        style.update(_icon_style(inline, ns))
    return style
