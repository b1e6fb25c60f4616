"""HTTP client for the hosted record service.

Every call carries the bearer credential and the API version header.
No retries: a non-success status surfaces as an UpstreamError.
"""

from __future__ import annotations

import re

import httpx
from loguru import logger

from mapper.errors import UpstreamError, UpstreamQueryError

DEFAULT_API_URL = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2022-06-28"
QUERY_PAGE_SIZE = 100

_HEX32 = re.compile(r"^[0-9a-fA-F]{32}$")


def normalize_record_id(record_id: str | None) -> str | None:
    """Re-insert UUID hyphens into a bare 32-hex-digit record id.

    Anything that is not 32 hex digits once hyphens are removed is
    returned unchanged.
    """
    if not record_id:
        return None
    clean = record_id.replace("-", "")
    if not _HEX32.match(clean):
        return record_id
    return f"{clean[:8]}-{clean[8:12]}-{clean[12:16]}-{clean[16:20]}-{clean[20:]}"


class RecordClient:
    """Thin async wrapper over the record service REST API."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": api_version,
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=30.0)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(
                method, f"{self._base_url}{path}", headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Record service unreachable: {e}") from e

    async def fetch_record(self, record_id: str) -> dict:
        """GET one record (page) by id."""
        resp = await self._send("GET", f"/pages/{record_id}")
        if resp.status_code >= 400:
            raise UpstreamError(
                f"Record fetch failed: {resp.status_code} - {resp.text}",
                resp.status_code,
                resp.text,
            )
        return resp.json()

    async def fetch_dataset(self, dataset_id: str) -> dict:
        """GET dataset (database) metadata by id."""
        resp = await self._send("GET", f"/databases/{dataset_id}")
        if resp.status_code >= 400:
            raise UpstreamError(
                f"Dataset fetch failed: {resp.status_code}",
                resp.status_code,
                resp.text,
            )
        return resp.json()

    async def query_dataset(self, dataset_id: str, page_size: int = QUERY_PAGE_SIZE) -> list[dict]:
        """Query one page of rows from a dataset.

        Only the first page is read; larger datasets are truncated.
        """
        logger.info(f"Querying dataset {dataset_id}")
        resp = await self._send(
            "POST", f"/databases/{dataset_id}/query", json={"page_size": page_size}
        )
        if resp.status_code >= 400:
            raise UpstreamQueryError(resp.status_code, resp.text)
        results = resp.json().get("results") or []
        logger.info(f"Dataset {dataset_id}: {len(results)} records")
        return results
