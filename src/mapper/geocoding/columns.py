"""Detect the semantic type of spreadsheet columns from their header names."""

from __future__ import annotations

from loguru import logger

# First matching type wins, so order matters.
COLUMN_PATTERNS: dict[str, tuple[str, ...]] = {
    "latitude": ("lat", "latitude", "latitud"),
    "longitude": ("lng", "lon", "long", "longitude", "longitud"),
    "address": ("endereco", "endereço", "address", "rua", "logradouro"),
    "city": ("cidade", "city", "municipio", "município"),
    "state": ("estado", "state", "uf"),
    "zipcode": ("cep", "zip", "zipcode", "postal", "codigo postal"),
    "label": ("nome", "name", "titulo", "título", "label", "rotulo", "rótulo"),
    "category": ("categoria", "category", "tipo", "type", "classificacao"),
}


def detect_column_type(column_name: str) -> str | None:
    """Semantic type whose keywords occur in the lower-cased header, else None."""
    name = column_name.lower().strip()
    for kind, keywords in COLUMN_PATTERNS.items():
        if any(keyword in name for keyword in keywords):
            return kind
    return None


def auto_map_columns(headers: list[str]) -> dict[str, str]:
    """Map each recognised header to its semantic type; others are omitted."""
    mapping = {}
    for header in headers:
        kind = detect_column_type(header)
        if kind:
            mapping[header] = kind
    logger.debug(f"Column mapping: {mapping}")
    return mapping
