"""Address geocoding against a Nominatim-compatible provider.

Outbound requests go through one FIFO queue that is drained by a single
task, so at most one provider request is in flight and consecutive
requests start at least ``min_interval`` seconds after the previous one
completed. Results are cached in memory for the life of the service.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

import httpx
from loguru import logger

from mapper.errors import AddressNotFoundError, GeocodeHttpError, GeocodeTimeoutError, UpstreamError

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "MapeamentoOOH/1.0"
DEFAULT_COUNTRY = "Brasil"
SOURCE_PROVIDED = "provided"
SOURCE_PROVIDER = "nominatim"

# Query parts, in the order they are joined
QUERY_FIELDS = ("address", "city", "state", "zipcode", "country")

ProgressCallback = Callable[[int, int], Any]


@dataclass
class GeocodeResult:
    """Resolved coordinates for one address.

    Attributes:
        lat: Latitude.
        lng: Longitude.
        confidence: Match quality in [0.1, 1.0].
        formatted_address: Provider display name (or the input address).
        source: "provided" when the input already had coordinates,
            otherwise the provider name.
        place_id: Provider place identifier, if any.
    """

    lat: float
    lng: float
    confidence: float
    formatted_address: str | None
    source: str
    place_id: Any = None

    def to_dict(self) -> dict:
        data = {
            "lat": self.lat,
            "lng": self.lng,
            "confidence": self.confidence,
            "formattedAddress": self.formatted_address,
            "source": self.source,
        }
        if self.place_id is not None:
            data["placeId"] = self.place_id
        return data


def validate_coordinates(lat: Any, lng: Any) -> bool:
    """True when both values are finite numbers within WGS84 ranges."""
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def calculate_confidence(hit: dict) -> float:
    """Confidence from the provider's importance score and place type."""
    try:
        confidence = float(hit.get("importance") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    if math.isnan(confidence):
        confidence = 0.0

    kind = str(hit.get("type") or "").lower()
    if "house" in kind or "building" in kind:
        confidence = min(1.0, confidence + 0.2)
    elif "road" in kind or "street" in kind:
        confidence = min(0.9, confidence + 0.1)
    elif "city" in kind or "town" in kind:
        confidence = min(0.7, confidence)

    return max(0.1, min(1.0, confidence))


def build_query(fields: dict) -> str:
    parts = [str(fields[name]).strip() for name in QUERY_FIELDS if fields.get(name)]
    return ", ".join(p for p in parts if p)


def cache_key(query: str) -> str:
    return query.lower().strip()


def _provided_coordinates(fields: dict) -> tuple[float, float] | None:
    lat, lng = fields.get("latitude"), fields.get("longitude")
    if not lat or not lng:
        return None
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return lat, lng


class GeocodingService:
    """Cached, rate-limited geocoder with batch support."""

    def __init__(
        self,
        url: str = DEFAULT_GEOCODER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        min_interval: float = 1.0,
        timeout: float = 10.0,
        batch_size: int = 10,
        default_country: str | None = DEFAULT_COUNTRY,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.user_agent = user_agent
        self.min_interval = min_interval
        self.timeout = timeout
        self.batch_size = max(1, batch_size)
        self.default_country = default_country
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self._clock = clock

        self._cache: dict[str, GeocodeResult] = {}
        self._queue: deque[tuple[str, asyncio.Future]] = deque()
        self._draining = False
        self._drain_task: asyncio.Task | None = None
        self._last_request: float | None = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Geocoding cache cleared")

    # ------------------------------------------------------------------
    # Single address
    # ------------------------------------------------------------------

    async def geocode(self, fields: dict) -> GeocodeResult:
        """Resolve an address to coordinates.

        Args:
            fields: Any of ``address``, ``city``, ``state``, ``zipcode``,
                ``country``, ``latitude``, ``longitude``. Other keys are ignored.

        Raises:
            AddressNotFoundError: the provider returned no match.
            GeocodeHttpError: the provider answered with an error status.
            GeocodeTimeoutError: the provider did not answer in time.
        """
        provided = _provided_coordinates(fields)
        if provided is not None:
            return GeocodeResult(
                lat=provided[0],
                lng=provided[1],
                confidence=1.0,
                formatted_address=fields.get("address"),
                source=SOURCE_PROVIDED,
            )

        if not fields.get("country") and self.default_country:
            fields = {**fields, "country": self.default_country}
        query = build_query(fields)

        key = cache_key(query)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Geocoding cache hit: {query}")
            return cached

        result = await self._enqueue(query)
        self._cache[key] = result
        return result

    # ------------------------------------------------------------------
    # Request queue
    # ------------------------------------------------------------------

    async def _enqueue(self, query: str) -> GeocodeResult:
        future = asyncio.get_running_loop().create_future()
        self._queue.append((query, future))
        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        try:
            while self._queue:
                query, future = self._queue.popleft()
                if future.done():
                    continue

                if self._last_request is not None:
                    wait = self._last_request + self.min_interval - self._clock()
                    if wait > 0:
                        await asyncio.sleep(wait)

                try:
                    result = await self._fetch(query)
                except Exception as e:
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
                finally:
                    self._last_request = self._clock()
        finally:
            self._draining = False

    async def _fetch(self, query: str) -> GeocodeResult:
        logger.debug(f"Geocoding: {query}")
        try:
            resp = await self._client.get(
                self.url,
                params={"q": query, "format": "json", "addressdetails": 1, "limit": 1},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise GeocodeTimeoutError(query) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Geocoding request failed: {e}") from e

        if resp.status_code >= 400:
            raise GeocodeHttpError(resp.status_code)

        try:
            hits = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Geocoding returned a non-JSON body: {e}", resp.status_code) from e
        if not hits:
            raise AddressNotFoundError(query)

        try:
            hit = hits[0]
            lat, lng = float(hit["lat"]), float(hit["lon"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(f"Geocoding returned a malformed result: {e!r}", resp.status_code) from e
        return GeocodeResult(
            lat=lat,
            lng=lng,
            confidence=calculate_confidence(hit),
            formatted_address=hit.get("display_name"),
            source=SOURCE_PROVIDER,
            place_id=hit.get("place_id"),
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def geocode_batch(
        self, addresses: list[dict], on_progress: ProgressCallback | None = None
    ) -> list[dict]:
        """Geocode many addresses; per-address failures never abort the batch.

        Addresses are processed in chunks of ``batch_size``. Each chunk is
        dispatched concurrently (the queue still serializes provider calls)
        and the service pauses ``min_interval`` between chunks.

        Returns:
            One dict per input, in input order: the input fields plus either
            the result fields and ``success: True``, or ``success: False``
            and ``error``.
        """
        total = len(addresses)
        completed = 0
        logger.info(f"Geocoding {total} addresses")

        async def one(index: int, fields: dict) -> dict:
            nonlocal completed
            try:
                result = await self.geocode(fields)
                outcome = {**fields, **result.to_dict(), "success": True}
            except Exception as e:
                logger.warning(f"Geocoding failed for row {index}: {e}")
                outcome = {**fields, "success": False, "error": str(e)}
            completed += 1
            if on_progress is not None:
                on_progress(completed, total)
            return outcome

        results: list[dict] = []
        for start in range(0, total, self.batch_size):
            chunk = addresses[start:start + self.batch_size]
            results.extend(
                await asyncio.gather(*(one(start + i, f) for i, f in enumerate(chunk)))
            )
            if start + self.batch_size < total:
                await asyncio.sleep(self.min_interval)

        successes = sum(1 for r in results if r["success"])
        logger.info(f"Geocoding done: {successes}/{total} succeeded")
        return results
