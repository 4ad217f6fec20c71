"""Async client for the French national address API (api-adresse.data.gouv.fr)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ...config import settings
from ...models.domain import GeocodeAttempt, GeocodeStatus, Record
from ...persistence.geocode_cache import GeocodeCache
from ..geospatial import is_valid_latitude, is_valid_longitude

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 3


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    latitude: float = 0.0
    longitude: float = 0.0
    label: str = ""
    score: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class AddressSuggestion:
    label: str
    score: float
    postcode: str
    city: str
    latitude: float
    longitude: float


def _coordinates(feature: dict[str, Any]) -> tuple[float, float] | None:
    try:
        lon, lat = feature["geometry"]["coordinates"][:2]
        return float(lat), float(lon)
    except (KeyError, TypeError, ValueError):
        return None


def apply_geocode_result(record: Record, address: str, result: GeocodeResult) -> Record:
    """Return ``record`` with the outcome of one geocoding attempt recorded.

    A failed attempt keeps whatever coordinates the record already had.
    """
    attempt = GeocodeAttempt(
        date=datetime.now(timezone.utc).isoformat(),
        address=address,
        success=result.ok,
        latitude=result.latitude if result.ok else None,
        longitude=result.longitude if result.ok else None,
    )
    history = record.geocode_history + (attempt,)
    if not result.ok:
        return replace(record, geocode_status=GeocodeStatus.ERROR, geocode_history=history, needs_geocoding=False)
    return replace(
        record,
        latitude=result.latitude,
        longitude=result.longitude,
        geocode_score=result.score,
        geocode_status=GeocodeStatus.SUCCESS,
        geocode_history=history,
        needs_geocoding=False,
    )


class GeocodingClient:
    """Resolves postal addresses to coordinates.

    Requests are serialized and spaced by ``request_delay_seconds``; network
    errors and timeouts are retried after a fixed delay. Lookups never raise,
    failures come back as a ``GeocodeResult`` with ``error`` set.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay_seconds: float | None = None,
        request_delay_seconds: float | None = None,
        cache: GeocodeCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or settings.geocoding_api_url
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.geocoding_max_retries
        self.retry_delay_seconds = (
            retry_delay_seconds if retry_delay_seconds is not None else settings.geocoding_retry_delay_seconds
        )
        self.request_delay_seconds = (
            request_delay_seconds if request_delay_seconds is not None else settings.geocoding_request_delay_seconds
        )
        self.cache = cache if cache is not None else GeocodeCache()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GeocodingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _wait_for_rate_limit(self) -> None:
        loop = asyncio.get_running_loop()
        if self._last_request is not None:
            elapsed = loop.time() - self._last_request
            if elapsed < self.request_delay_seconds:
                await asyncio.sleep(self.request_delay_seconds - elapsed)
        self._last_request = loop.time()

    async def _search(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        attempt = 0
        async with self._lock:
            while True:
                await self._wait_for_rate_limit()
                try:
                    response = await self._client.get(self.base_url, params=params)
                    response.raise_for_status()
                    payload = response.json()
                    break
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    logger.warning(
                        f"Address API network error, retrying in {self.retry_delay_seconds:.1f}s "
                        f"(attempt {attempt}/{self.max_retries}): {exc}"
                    )
                    await asyncio.sleep(self.retry_delay_seconds)
        features = payload.get("features") if isinstance(payload, dict) else None
        return [item for item in features if isinstance(item, dict)] if isinstance(features, list) else []

    async def resolve_address(self, address: str) -> GeocodeResult:
        if not address or not address.strip():
            return GeocodeResult(error="Empty address")

        cached = self.cache.get(address)
        if cached is not None:
            logger.debug(f"Geocoding cache hit for '{address}'")
            return GeocodeResult(**cached)

        try:
            features = await self._search({"q": address, "limit": 1, "type": "housenumber"})
            if not features:
                logger.info(f"No house number match for '{address}', trying municipality")
                features = await self._search({"q": address, "limit": 1, "type": "municipality"})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Geocoding '{address}' failed: {exc}")
            return GeocodeResult(error=f"Geocoding request failed: {exc}")

        if not features:
            return GeocodeResult(error="Address not found")

        feature = features[0]
        coords = _coordinates(feature)
        if coords is None or not is_valid_latitude(coords[0]) or not is_valid_longitude(coords[1]):
            return GeocodeResult(error="Invalid coordinates")

        properties = feature.get("properties") or {}
        result = GeocodeResult(
            latitude=coords[0],
            longitude=coords[1],
            label=str(properties.get("label") or ""),
            score=float(properties.get("score") or 0.0),
        )
        self.cache.put(address, {key: value for key, value in asdict(result).items() if key != "error"})
        return result

    async def search_addresses(self, query: str, limit: int = 5) -> list[AddressSuggestion]:
        """Autocomplete suggestions; empty on short queries or API failure."""
        text = (query or "").strip()
        if len(text) < MIN_SEARCH_LENGTH:
            return []
        try:
            features = await self._search({"q": text, "limit": limit, "type": "housenumber"})
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Address search for '{text}' failed: {exc}")
            return []

        suggestions: list[AddressSuggestion] = []
        for feature in features:
            coords = _coordinates(feature)
            if coords is None:
                continue
            properties = feature.get("properties") or {}
            suggestions.append(
                AddressSuggestion(
                    label=str(properties.get("label") or ""),
                    score=float(properties.get("score") or 0.0),
                    postcode=str(properties.get("postcode") or ""),
                    city=str(properties.get("city") or ""),
                    latitude=coords[0],
                    longitude=coords[1],
                )
            )
        return suggestions

    async def geocode_record(self, record: Record) -> Record:
        address = record.full_address
        result = await self.resolve_address(address)
        if result.ok:
            logger.info(f"Geocoded record {record.id} to ({result.latitude}, {result.longitude})")
        else:
            logger.warning(f"Geocoding record {record.id} failed: {result.error}")
        return apply_geocode_result(record, address, result)
