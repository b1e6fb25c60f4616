"""Export a FeatureCollection to a KML 2.2 XML string.

Built as text rather than with ElementTree so descriptions can be wrapped
in CDATA sections. KML coordinates are in "lng,lat,alt" order
(longitude first); altitude is always written as 0.
"""

from __future__ import annotations

import re
from xml.sax.saxutils import escape

from mapper.layers.feature import Feature, FeatureCollection

DEFAULT_LAYER_NAME = "Camada OOH"
DEFAULT_COLOR = "#e74c3c"
DEFAULT_ICON = "pin"
DEFAULT_PLACEMARK_NAME = "Sem nome"
ICON_HREF = "http://maps.google.com/mapfiles/kml/pushpin/red-pushpin.png"
STYLE_ID = "layerStyle"

# Properties carried by dedicated KML elements rather than ExtendedData
_RESERVED_PROPERTIES = {"name", "description", "color", "iconUrl"}

_ENTITIES = {'"': "&quot;", "'": "&apos;"}
_HEX_COLOR = re.compile(r"^#?[0-9a-fA-F]{6}$")


def escape_xml(value) -> str:
    """Escape the five XML special characters. Non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return escape(value, _ENTITIES)


def hex_to_kml_color(hex_color: str) -> str:
    """Convert ``#rrggbb`` to the fully opaque KML ``ffbbggrr`` form.

    Anything that is not six hex digits converts DEFAULT_COLOR instead.
    """
    hex_color = hex_color.strip() if isinstance(hex_color, str) else ""
    if not _HEX_COLOR.match(hex_color):
        hex_color = DEFAULT_COLOR
    hex_color = hex_color.lstrip("#")
    return f"ff{hex_color[4:6]}{hex_color[2:4]}{hex_color[0:2]}"


def to_kml(
    collection: FeatureCollection,
    layer_name: str = DEFAULT_LAYER_NAME,
    color: str = DEFAULT_COLOR,
    icon: str = DEFAULT_ICON,
) -> str:
    """Export a FeatureCollection to a KML XML string.

    Args:
        collection: Features to export.
        layer_name: Document name.
        color: Marker color as ``#rrggbb``, applied through one shared style.
        icon: Icon identifier. Every layer currently uses the pushpin icon.

    Returns:
        KML XML string.
    """
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<kml xmlns="http://www.opengis.net/kml/2.2">',
        "  <Document>",
        f"    <name>{escape_xml(layer_name)}</name>",
        f'    <Style id="{STYLE_ID}">',
        "      <IconStyle>",
        f"        <color>{hex_to_kml_color(color)}</color>",
        "        <Icon>",
        f"          <href>{ICON_HREF}</href>",
        "        </Icon>",
        "      </IconStyle>",
        "    </Style>",
    ]
    for feature in collection.features:
        lines.extend(_placemark_lines(feature))
    lines.append("  </Document>")
    lines.append("</kml>")
    return "\n".join(lines)


def _cdata(text: str) -> str:
    # A literal "]]>" would end the section early
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _data_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _coord(coord: list) -> str:
    return f"{coord[0]},{coord[1]},0"


def _placemark_lines(feature: Feature) -> list[str]:
    props = feature.properties or {}
    name = props.get("name") or props.get("label") or DEFAULT_PLACEMARK_NAME

    lines = [
        "    <Placemark>",
        f"      <name>{escape_xml(str(name))}</name>",
        f"      <styleUrl>#{STYLE_ID}</styleUrl>",
    ]

    description = props.get("description")
    if description:
        lines.append(f"      <description>{_cdata(str(description))}</description>")

    extended = [(k, v) for k, v in props.items() if k not in _RESERVED_PROPERTIES]
    if extended:
        lines.append("      <ExtendedData>")
        for key, value in extended:
            lines.append(f'        <Data name="{escape_xml(str(key))}">')
            lines.append(f"          <value>{escape_xml(_data_value(value))}</value>")
            lines.append("        </Data>")
        lines.append("      </ExtendedData>")

    lines.extend(_geometry_lines(feature))
    lines.append("    </Placemark>")
    return lines


def _geometry_lines(feature: Feature) -> list[str]:
    coords = feature.coordinates
    if feature.geometry_type == "Point":
        return [
            "      <Point>",
            f"        <coordinates>{_coord(coords)}</coordinates>",
            "      </Point>",
        ]
    if feature.geometry_type == "LineString":
        return [
            "      <LineString>",
            "        <coordinates>",
            *(f"          {_coord(c)}" for c in coords),
            "        </coordinates>",
            "      </LineString>",
        ]
    if feature.geometry_type == "Polygon":
        outer = coords[0] if coords else []
        return [
            "      <Polygon>",
            "        <outerBoundaryIs>",
            "          <LinearRing>",
            "            <coordinates>",
            *(f"              {_coord(c)}" for c in outer),
            "            </coordinates>",
            "          </LinearRing>",
            "        </outerBoundaryIs>",
            "      </Polygon>",
        ]
    return []
