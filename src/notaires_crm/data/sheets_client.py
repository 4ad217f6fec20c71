"""HTTP client for the spreadsheet proxy API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Sequence

import httpx

from ..config import settings
from ..errors import RemoteStoreError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Key-range read/write access to the spreadsheet."""

    async def read_range(self, range_id: str) -> list[list[str]]:
        ...

    async def write_range(self, range_id: str, rows: Sequence[Sequence[str]]) -> dict[str, Any]:
        ...


class SheetsApiClient:
    """Reads and overwrites A1 ranges through ``GET/POST {base}/sheets``."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.sheets_api_base_url).rstrip("/")
        if not self.base_url:
            raise ValueError("Sheets API base URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.sheets_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.sheets_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.sheets_backoff_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SheetsApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, "/sheets", **kwargs)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                code = exc.response.status_code
                if code not in RETRYABLE_STATUS_CODES:
                    raise RemoteStoreError(f"Sheets API rejected {method} ({code}): {exc.response.text[:200]}") from exc
                attempt += 1
                if attempt > self.max_retries:
                    raise RemoteStoreError(f"Sheets API {method} failed with HTTP {code} after {attempt} attempts") from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(f"Sheets API returned {code}, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise RemoteStoreError(f"Sheets API at {self.base_url} is not reachable: {exc}") from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"Sheets API network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}")
                await asyncio.sleep(wait_time)
            except ValueError as exc:
                raise RemoteStoreError(f"Sheets API returned a malformed payload: {exc}") from exc

    async def read_range(self, range_id: str) -> list[list[str]]:
        payload = await self._request("GET", params={"range": range_id})
        if payload is None:
            return []
        if isinstance(payload, dict):
            # some deployments wrap the rows as {"values": [...]}
            payload = payload.get("values") or []
        if not isinstance(payload, list):
            raise RemoteStoreError(f"Expected a list of rows for range '{range_id}'")
        rows: list[list[str]] = []
        for row in payload:
            if not isinstance(row, list):
                raise RemoteStoreError(f"Malformed row in range '{range_id}': {row!r}")
            rows.append(["" if cell is None else str(cell) for cell in row])
        return rows

    async def write_range(self, range_id: str, rows: Sequence[Sequence[str]]) -> dict[str, Any]:
        values = [[str(cell) for cell in row] for row in rows]
        payload = await self._request("POST", json={"range": range_id, "values": values})
        logger.debug(f"Wrote {len(values)} row(s) to {range_id}")
        return payload if isinstance(payload, dict) else {"success": True}
