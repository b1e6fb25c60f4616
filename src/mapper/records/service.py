"""Map data service: record id in, cached map points out."""

from __future__ import annotations

import time
from dataclasses import dataclass

from loguru import logger

from mapper.cache import ResponseCache
from mapper.records.client import RecordClient, normalize_record_id
from mapper.records.points import normalize_records
from mapper.records.resolver import DEFAULT_MAX_HOPS, resolve_dataset, resolve_title

DEFAULT_TTL = 300


@dataclass
class MapDataResult:
    payload: dict
    cache_hit: bool


class MapDataService:
    """Resolve a record to its dataset and return the dataset as map points."""

    def __init__(
        self,
        client: RecordClient,
        cache: ResponseCache | None = None,
        ttl: float = DEFAULT_TTL,
        max_hops: int = DEFAULT_MAX_HOPS,
        inclusion_filter: bool = False,
    ) -> None:
        self._client = client
        self._cache = cache
        self._ttl = ttl
        self._max_hops = max_hops
        self._inclusion_filter = inclusion_filter

    async def get_map_data(self, record_id: str) -> MapDataResult:
        record_id = normalize_record_id(record_id)
        cache_key = f"map-data-{record_id}"

        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit: {cache_key}")
                return MapDataResult(payload=cached, cache_hit=True)

        dataset_id = await resolve_dataset(self._client, record_id, self._max_hops)
        project_name = await resolve_title(self._client, record_id)
        records = await self._client.query_dataset(dataset_id)
        points = normalize_records(records, inclusion_filter=self._inclusion_filter)

        payload = {
            "recordId": record_id,
            "datasetId": dataset_id,
            "projectName": project_name,
            "points": [p.to_dict() for p in points],
            "pointCount": len(points),
            "timestamp": int(time.time() * 1000),
        }
        if self._cache is not None:
            self._cache.set(cache_key, payload, self._ttl)

        logger.info(f"Map data for {record_id}: {len(points)} points")
        return MapDataResult(payload=payload, cache_hit=False)
