"""Shared fixtures: an in-memory record service, file store and geocoder."""

from __future__ import annotations

import httpx
import pytest

from app.config import Settings
from mapper.context import build_context
from mapper.errors import UpstreamError
from mapper.geocoding.service import GeocodingService
from mapper.layers.service import LayerService
from mapper.store.files import FileStoreAdapter
from mapper.store.memory import MemoryBackend
from mapper.store.metadata import LayerMetadataStore

PROJECT_ID = "proj-1"
DATASET_ID = "db-1"
PROJECT_NAME = "Campanha Centro"


class FakeRecordClient:
    """Record service stand-in backed by dicts.

    ``records`` maps record id to the page object, ``datasets`` maps dataset
    id to its metadata and ``rows`` maps dataset id to query results.
    """

    def __init__(self, records=None, datasets=None, rows=None):
        self.records = records or {}
        self.datasets = datasets or {}
        self.rows = rows or {}
        self.fetched: list[str] = []
        self.queried: list[str] = []
        self.closed = False

    async def fetch_record(self, record_id: str) -> dict:
        self.fetched.append(record_id)
        if record_id not in self.records:
            raise UpstreamError(f"Record fetch failed: 404 - {record_id}", 404)
        return self.records[record_id]

    async def fetch_dataset(self, dataset_id: str) -> dict:
        if dataset_id not in self.datasets:
            raise UpstreamError("Dataset fetch failed: 404", 404)
        return self.datasets[dataset_id]

    async def query_dataset(self, dataset_id: str, page_size: int = 100) -> list[dict]:
        self.queried.append(dataset_id)
        return self.rows.get(dataset_id, [])

    async def aclose(self) -> None:
        self.closed = True


def title(text: str) -> dict:
    return {"type": "title", "title": [{"plain_text": text}]}


@pytest.fixture
def record_client():
    """One project record titled PROJECT_NAME inside dataset DATASET_ID."""
    return FakeRecordClient(
        records={
            PROJECT_ID: {
                "id": PROJECT_ID,
                "parent": {"type": "database_id", "database_id": DATASET_ID},
                "properties": {"Nome": title(PROJECT_NAME)},
            }
        },
        datasets={DATASET_ID: {"title": [{"plain_text": "Pontos OOH"}]}},
    )


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def file_store(memory_backend):
    return FileStoreAdapter(memory_backend)


@pytest.fixture
def metadata_store(file_store):
    return LayerMetadataStore(file_store)


@pytest.fixture
def layer_service(record_client, file_store, metadata_store):
    return LayerService(record_client, file_store, metadata_store)


@pytest.fixture
def fake_record_client():
    """The FakeRecordClient class, for tests that build their own records."""
    return FakeRecordClient


def _geocode(request: httpx.Request) -> httpx.Response:
    """Every query resolves to Praça da Sé except those mentioning "Nenhum"."""
    if "Nenhum" in request.url.params["q"]:
        return httpx.Response(200, json=[])
    return httpx.Response(200, json=[{
        "lat": "-23.5503", "lon": "-46.6339", "display_name": "Praça da Sé, São Paulo",
        "place_id": 7, "importance": 0.6, "type": "square",
    }])


@pytest.fixture
def stub_geocoder():
    client = httpx.AsyncClient(transport=httpx.MockTransport(_geocode))
    return GeocodingService(client=client, min_interval=0)


@pytest.fixture
def service_context(record_client, memory_backend, stub_geocoder, tmp_path):
    """ServiceContext over the fake record service, memory store and stub geocoder."""
    settings = Settings(file_store_backend="memory", cache_dir=str(tmp_path / "cache"))
    return build_context(
        settings, records=record_client, backend=memory_backend, geocoder=stub_geocoder
    )
