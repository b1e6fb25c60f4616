"""Tests for the cached, rate-limited geocoder."""

import asyncio
import time

import httpx
import pytest

from mapper.errors import AddressNotFoundError, GeocodeHttpError, GeocodeTimeoutError, UpstreamError
from mapper.geocoding.service import (
    GeocodingService,
    build_query,
    cache_key,
    calculate_confidence,
    validate_coordinates,
)


def _hit(lat="-23.55", lon="-46.63", **extra):
    return {"lat": lat, "lon": lon, "display_name": "Av. Paulista, São Paulo", "place_id": 42,
            "importance": 0.5, "type": "road", **extra}


class _Provider:
    """MockTransport handler that records queries and request timings."""

    def __init__(self, respond=None, delay=0.0):
        self.respond = respond or (lambda query: httpx.Response(200, json=[_hit()]))
        self.delay = delay
        self.queries: list[str] = []
        self.starts: list[float] = []
        self.ends: list[float] = []
        self.user_agents: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.starts.append(time.monotonic())
        query = request.url.params["q"]
        self.queries.append(query)
        self.user_agents.append(request.headers.get("user-agent"))
        if self.delay:
            await asyncio.sleep(self.delay)
        try:
            return self.respond(query)
        finally:
            self.ends.append(time.monotonic())


def _service(provider, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
    kwargs.setdefault("min_interval", 0)
    return GeocodingService(url="https://geo.test/search", client=client, **kwargs)


@pytest.mark.unit
class TestHelpers:

    def test_validate_coordinates(self):
        assert validate_coordinates(-23.5, -46.6)
        assert validate_coordinates("90", "-180")
        assert not validate_coordinates(91, 0)
        assert not validate_coordinates(0, 181)
        assert not validate_coordinates("abc", 0)
        assert not validate_coordinates(None, 0)
        assert not validate_coordinates(float("nan"), 0)

    def test_confidence_by_type(self):
        assert calculate_confidence({"importance": 0.5, "type": "house"}) == pytest.approx(0.7)
        assert calculate_confidence({"importance": 0.85, "type": "road"}) == pytest.approx(0.9)
        assert calculate_confidence({"importance": 0.9, "type": "city"}) == pytest.approx(0.7)
        assert calculate_confidence({"importance": 0.4, "type": "park"}) == pytest.approx(0.4)

    def test_confidence_clamped(self):
        assert calculate_confidence({}) == pytest.approx(0.1)
        assert calculate_confidence({"importance": 3}) == 1.0
        assert calculate_confidence({"importance": "bad"}) == pytest.approx(0.1)

    def test_build_query_order(self):
        fields = {"country": "Brasil", "city": "Santos", "address": "Rua A, 10", "zipcode": ""}
        assert build_query(fields) == "Rua A, 10, Santos, Brasil"

    def test_cache_key(self):
        assert cache_key("  Rua A, Santos ") == "rua a, santos"


@pytest.mark.unit
class TestGeocode:

    def test_provider_result(self):
        provider = _Provider()
        service = _service(provider, user_agent="TestAgent/1.0")
        result = asyncio.run(service.geocode({"address": "Av. Paulista 1000", "city": "São Paulo"}))
        assert (result.lat, result.lng) == (-23.55, -46.63)
        assert result.source == "nominatim"
        assert result.place_id == 42
        assert result.formatted_address == "Av. Paulista, São Paulo"
        assert result.confidence == pytest.approx(0.6)
        assert provider.queries == ["Av. Paulista 1000, São Paulo, Brasil"]
        assert provider.user_agents == ["TestAgent/1.0"]

    def test_explicit_country_kept(self):
        provider = _Provider()
        asyncio.run(_service(provider).geocode({"address": "Main St", "country": "USA"}))
        assert provider.queries == ["Main St, USA"]

    def test_provided_coordinates_skip_provider(self):
        provider = _Provider()
        result = asyncio.run(_service(provider).geocode(
            {"address": "Ponto 1", "latitude": "-23.5", "longitude": "-46.6"}
        ))
        assert provider.queries == []
        assert (result.lat, result.lng) == (-23.5, -46.6)
        assert result.confidence == 1.0
        assert result.source == "provided"
        assert result.to_dict()["formattedAddress"] == "Ponto 1"

    def test_unparseable_coordinates_fall_back_to_provider(self):
        provider = _Provider()
        asyncio.run(_service(provider).geocode({"address": "Rua B", "latitude": "x", "longitude": "y"}))
        assert len(provider.queries) == 1

    def test_cache_is_case_insensitive(self):
        provider = _Provider()
        service = _service(provider)

        async def run():
            first = await service.geocode({"address": "Rua A"})
            second = await service.geocode({"address": "RUA A  "})
            return first, second

        first, second = asyncio.run(run())
        assert first is second
        assert len(provider.queries) == 1

    def test_clear_cache(self):
        provider = _Provider()
        service = _service(provider)

        async def run():
            await service.geocode({"address": "Rua A"})
            service.clear_cache()
            await service.geocode({"address": "Rua A"})

        asyncio.run(run())
        assert len(provider.queries) == 2

    def test_no_match(self):
        service = _service(_Provider(lambda q: httpx.Response(200, json=[])))
        with pytest.raises(AddressNotFoundError):
            asyncio.run(service.geocode({"address": "Nowhere"}))

    def test_http_error(self):
        service = _service(_Provider(lambda q: httpx.Response(503)))
        with pytest.raises(GeocodeHttpError) as exc:
            asyncio.run(service.geocode({"address": "Rua A"}))
        assert exc.value.status == 503

    def test_timeout(self):
        def respond(query):
            raise httpx.ReadTimeout("slow")

        service = _service(_Provider(respond))
        with pytest.raises(GeocodeTimeoutError):
            asyncio.run(service.geocode({"address": "Rua A"}))

    def test_failures_not_cached(self):
        responses = iter([httpx.Response(500), httpx.Response(200, json=[_hit()])])
        provider = _Provider(lambda q: next(responses))
        service = _service(provider)

        async def run():
            with pytest.raises(GeocodeHttpError):
                await service.geocode({"address": "Rua A"})
            return await service.geocode({"address": "Rua A"})

        assert asyncio.run(run()).lat == -23.55
        assert len(provider.queries) == 2


@pytest.mark.unit
class TestRateLimiting:

    def test_requests_are_spaced(self):
        interval = 0.05
        provider = _Provider(delay=0.01)
        service = _service(provider, min_interval=interval)

        async def run():
            await asyncio.gather(*(service.geocode({"address": f"Rua {i}"}) for i in range(4)))

        asyncio.run(run())
        assert len(provider.starts) == 4
        for end, start in zip(provider.ends, provider.starts[1:]):
            assert start - end >= interval - 0.005

    def test_one_request_in_flight(self):
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json=[_hit()])

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = GeocodingService(client=client, min_interval=0)

        async def run():
            await asyncio.gather(*(service.geocode({"address": f"Rua {i}"}) for i in range(5)))

        asyncio.run(run())
        assert peak == 1

    def test_spacing_applies_after_failures(self):
        interval = 0.05
        provider = _Provider(lambda q: httpx.Response(500))
        service = _service(provider, min_interval=interval)

        async def run():
            await asyncio.gather(
                *(service.geocode({"address": f"Rua {i}"}) for i in range(3)),
                return_exceptions=True,
            )

        asyncio.run(run())
        for end, start in zip(provider.ends, provider.starts[1:]):
            assert start - end >= interval - 0.005


@pytest.mark.unit
class TestGeocodeBatch:

    def test_order_and_failures(self):
        def respond(query):
            if query.startswith("Nowhere"):
                return httpx.Response(200, json=[])
            number = int(query.split(",")[0].split()[-1])
            return httpx.Response(200, json=[_hit(lat=str(number), lon=str(-number))])

        service = _service(_Provider(respond), batch_size=2)
        addresses = [{"address": "Rua 1"}, {"address": "Nowhere"}, {"address": "Rua 3", "label": "Três"}]
        results = asyncio.run(service.geocode_batch(addresses))

        assert [r["success"] for r in results] == [True, False, True]
        assert results[0]["lat"] == 1.0
        assert results[2]["lng"] == -3.0
        assert results[2]["label"] == "Três"
        assert results[1]["address"] == "Nowhere"
        assert "Address not found" in results[1]["error"]

    def test_progress(self):
        progress = []
        service = _service(_Provider(), batch_size=2)
        addresses = [{"address": f"Rua {i}"} for i in range(5)]
        asyncio.run(service.geocode_batch(addresses, lambda done, total: progress.append((done, total))))
        assert progress == [(i, 5) for i in range(1, 6)]

    def test_empty_batch(self):
        assert asyncio.run(_service(_Provider()).geocode_batch([])) == []


@pytest.mark.unit
class TestMalformedProviderResponses:

    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>blocked</html>"),
        httpx.Response(200, json=[{"lon": "-46.6"}]),
        httpx.Response(200, json=[{"lat": "north", "lon": "-46.6"}]),
        httpx.Response(200, json=["not an object"]),
        httpx.Response(200, json={"error": "quota"}),
    ])
    def test_wrapped_as_upstream_error(self, response):
        service = _service(_Provider(lambda q: response))
        with pytest.raises(UpstreamError):
            asyncio.run(service.geocode({"address": "Rua A"}))

    def test_batch_row_fails_without_aborting(self):
        responses = iter([httpx.Response(200, text="oops"), httpx.Response(200, json=[_hit()])])
        service = _service(_Provider(lambda q: next(responses)))
        results = asyncio.run(service.geocode_batch([{"address": "Rua 1"}, {"address": "Rua 2"}]))
        assert [r["success"] for r in results] == [False, True]
