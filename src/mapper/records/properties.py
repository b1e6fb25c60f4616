"""Typed property extraction.

Each record property is a tagged value: ``{"type": <tag>, <tag>: <payload>}``.
``extract_property`` projects it onto a scalar, a list, or None. The
projection is total: malformed payloads and unknown tags yield None.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable


class PropertyType(str, Enum):
    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    DATE = "date"


def _first_text(runs: Any) -> str | None:
    if not isinstance(runs, list) or not runs:
        return None
    first = runs[0]
    if not isinstance(first, dict):
        return None
    return first.get("plain_text") or None


def _option_name(option: Any) -> str | None:
    if not isinstance(option, dict):
        return None
    return option.get("name") or None


def _option_names(options: Any) -> list[str]:
    if not isinstance(options, list):
        return []
    return [o.get("name") for o in options if isinstance(o, dict)]


def _date_start(value: Any) -> str | None:
    if not isinstance(value, dict):
        return None
    return value.get("start") or None


_EXTRACTORS: dict[PropertyType, Callable[[Any], Any]] = {
    PropertyType.TITLE: _first_text,
    PropertyType.RICH_TEXT: _first_text,
    PropertyType.NUMBER: lambda v: v,
    PropertyType.SELECT: _option_name,
    PropertyType.MULTI_SELECT: _option_names,
    PropertyType.CHECKBOX: lambda v: v,
    PropertyType.URL: lambda v: v,
    PropertyType.EMAIL: lambda v: v,
    PropertyType.PHONE_NUMBER: lambda v: v,
    PropertyType.DATE: _date_start,
}

if set(_EXTRACTORS) != set(PropertyType):
    raise RuntimeError("every PropertyType needs an extractor")


def extract_property(prop: dict | None) -> Any:
    """Project a typed property onto its plain value.

    Args:
        prop: Property object as returned by the record service, or None.

    Returns:
        title/rich_text: first text run (None if empty).
        number/checkbox/url/email/phone_number: raw payload.
        select: option name or None.
        multi_select: list of option names ([] when no options).
        date: start date string or None.
        Anything else (absent input, unknown tag): None.
    """
    if not isinstance(prop, dict):
        return None
    try:
        tag = PropertyType(prop.get("type"))
    except (ValueError, TypeError):
        return None
    return _EXTRACTORS[tag](prop.get(tag.value))


def first_present(props: dict, *names: str) -> dict | None:
    """Return the first property found under any of the given names."""
    for name in names:
        prop = props.get(name)
        if prop:
            return prop
    return None
