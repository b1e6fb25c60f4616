"""Resolve a record id to its owning dataset and a display title.

Records can be nested under other records; the owning dataset is found by
walking parent references until a dataset reference appears. The walk is
an explicit loop bounded by ``max_hops``.
"""

from __future__ import annotations

from loguru import logger

from mapper.errors import MissingParentError, ParentChainTooDeepError, UnsupportedParentError
from mapper.records.client import RecordClient
from mapper.records.properties import PropertyType

DEFAULT_MAX_HOPS = 20
DEFAULT_PROJECT_TITLE = "Untitled Project"
DEFAULT_DATASET_TITLE = "Untitled Dataset"

PARENT_DATASET = "database_id"
PARENT_RECORD = "page_id"


async def resolve_dataset(
    client: RecordClient, record_id: str, max_hops: int = DEFAULT_MAX_HOPS
) -> str:
    """Return the id of the dataset that owns ``record_id``.

    Raises:
        MissingParentError: a record in the chain has no parent.
        UnsupportedParentError: a parent is neither dataset nor record.
        ParentChainTooDeepError: more than ``max_hops`` records were visited.
    """
    current = record_id
    for _ in range(max_hops):
        record = await client.fetch_record(current)
        parent = record.get("parent")
        if not parent:
            raise MissingParentError(current)
        if not isinstance(parent, dict):
            raise UnsupportedParentError(current, None)

        kind = parent.get("type")
        target = parent.get(kind) if kind in (PARENT_DATASET, PARENT_RECORD) else None
        if not isinstance(target, str) or not target:
            # Unknown kind, or a known kind without its id
            raise UnsupportedParentError(current, kind)
        if kind == PARENT_DATASET:
            logger.info(f"Dataset for record {record_id}: {target}")
            return target
        current = target

    raise ParentChainTooDeepError(record_id, max_hops)


def _first_plain_text(runs) -> str | None:
    if not isinstance(runs, list) or not runs or not isinstance(runs[0], dict):
        return None
    text = runs[0].get("plain_text")
    return text if isinstance(text, str) and text else None


def _title_of(record: dict) -> str | None:
    properties = record.get("properties")
    if not isinstance(properties, dict):
        return None
    for prop in properties.values():
        if not isinstance(prop, dict) or prop.get("type") != PropertyType.TITLE.value:
            continue
        title = _first_plain_text(prop.get("title"))
        if title:
            return title
    return None


async def dataset_title(client: RecordClient, dataset_id: str) -> str:
    """Title of a dataset, or a fixed fallback if absent or unreadable."""
    try:
        data = await client.fetch_dataset(dataset_id)
    except Exception as e:
        logger.warning(f"Dataset title lookup failed for {dataset_id}: {e}")
        return DEFAULT_DATASET_TITLE
    title = _first_plain_text(data.get("title")) if isinstance(data, dict) else None
    return title or DEFAULT_DATASET_TITLE


async def resolve_title(client: RecordClient, record_id: str) -> str:
    """Human-readable title of a record.

    Falls back to the parent dataset's title, then to DEFAULT_PROJECT_TITLE.
    """
    record = await client.fetch_record(record_id)
    title = _title_of(record)
    if title:
        return title

    parent = record.get("parent")
    if isinstance(parent, dict) and parent.get("type") == PARENT_DATASET and parent.get(PARENT_DATASET):
        return await dataset_title(client, parent[PARENT_DATASET])

    return DEFAULT_PROJECT_TITLE
