import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from fakes import FakeRemoteStore, loaded_store, make_record, record_row
from notaires_crm.models.domain import GeocodeStatus
from notaires_crm.persistence.geocode_cache import GeocodeCache
from notaires_crm.services.geocoding import GeocodeResult, GeocodingClient, geocode_pending


def _feature(lat: float = 48.8566, lon: float = 2.3522, label: str = "1 Rue de la Paix 75002 Paris", **extra) -> dict:
    properties = {"label": label, "score": 0.92, "postcode": "75002", "city": "Paris"}
    properties.update(extra)
    return {"type": "Feature", "geometry": {"type": "Point", "coordinates": [lon, lat]}, "properties": properties}


class AddressApi:
    """MockTransport handler answering per ``type`` query parameter."""

    def __init__(self, responses: dict[str, list[dict]] | None = None, errors: int = 0, status_code: int = 200) -> None:
        self.responses = responses if responses is not None else {"housenumber": [_feature()]}
        self.errors = errors
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.errors:
            self.errors -= 1
            raise httpx.ConnectError("connection refused", request=request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"message": "unavailable"})
        kind = request.url.params.get("type", "")
        return httpx.Response(200, json={"type": "FeatureCollection", "features": self.responses.get(kind, [])})

    @property
    def types(self) -> list[str]:
        return [request.url.params.get("type", "") for request in self.requests]


def _client(api: AddressApi, tmp_path: Path, **kwargs) -> GeocodingClient:
    return GeocodingClient(
        base_url="https://api-adresse.test/search/",
        max_retries=kwargs.pop("max_retries", 3),
        retry_delay_seconds=0,
        request_delay_seconds=0,
        cache=GeocodeCache(tmp_path / "geocoding_cache.json"),
        transport=httpx.MockTransport(api),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_resolve_address_uses_house_number_search_and_caches(tmp_path: Path) -> None:
    api = AddressApi()
    async with _client(api, tmp_path) as client:
        result = await client.resolve_address("1 rue de la Paix, 75002 Paris")
        again = await client.resolve_address("  1 RUE DE LA PAIX, 75002 Paris ")

    assert result.ok
    assert (result.latitude, result.longitude) == (48.8566, 2.3522)
    assert result.score == 0.92
    assert again == result
    assert api.types == ["housenumber"]
    assert api.requests[0].url.params["q"] == "1 rue de la Paix, 75002 Paris"


@pytest.mark.asyncio
async def test_resolve_address_falls_back_to_municipality(tmp_path: Path) -> None:
    api = AddressApi({"housenumber": [], "municipality": [_feature(45.76, 4.83, "Lyon")]})
    async with _client(api, tmp_path) as client:
        result = await client.resolve_address("69001 Lyon")

    assert result.ok
    assert result.label == "Lyon"
    assert api.types == ["housenumber", "municipality"]


@pytest.mark.asyncio
async def test_unknown_and_empty_addresses_return_errors(tmp_path: Path) -> None:
    api = AddressApi({})
    async with _client(api, tmp_path) as client:
        missing = await client.resolve_address("nowhere at all")
        empty = await client.resolve_address("   ")

    assert missing == GeocodeResult(error="Address not found")
    assert empty.error == "Empty address"
    assert len(api.requests) == 2
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_invalid_coordinates_are_rejected(tmp_path: Path) -> None:
    api = AddressApi({"housenumber": [_feature(lat=123.0)]})
    async with _client(api, tmp_path) as client:
        result = await client.resolve_address("1 rue de la Paix, 75002 Paris")

    assert result.error == "Invalid coordinates"


@pytest.mark.asyncio
async def test_network_errors_are_retried(tmp_path: Path) -> None:
    api = AddressApi(errors=2)
    async with _client(api, tmp_path) as client:
        result = await client.resolve_address("1 rue de la Paix, 75002 Paris")

    assert result.ok
    assert len(api.requests) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_and_http_errors_become_error_results(tmp_path: Path) -> None:
    flaky = AddressApi(errors=10)
    async with _client(flaky, tmp_path, max_retries=2) as client:
        result = await client.resolve_address("1 rue de la Paix, 75002 Paris")
    assert not result.ok
    assert len(flaky.requests) == 3

    broken = AddressApi(status_code=503)
    async with _client(broken, tmp_path) as client:
        result = await client.resolve_address("1 rue de la Paix, 75002 Paris")
    assert not result.ok
    assert len(broken.requests) == 1


@pytest.mark.asyncio
async def test_search_addresses(tmp_path: Path) -> None:
    api = AddressApi({"housenumber": [_feature(), _feature(48.87, 2.33, "3 Rue de la Paix 75002 Paris")]})
    async with _client(api, tmp_path) as client:
        assert await client.search_addresses("1 ") == []
        suggestions = await client.search_addresses("rue de la paix", limit=2)

    assert [item.label for item in suggestions] == ["1 Rue de la Paix 75002 Paris", "3 Rue de la Paix 75002 Paris"]
    assert suggestions[0].postcode == "75002"
    assert suggestions[1].latitude == 48.87
    assert api.requests[0].url.params["limit"] == "2"


@pytest.mark.asyncio
async def test_geocode_record_appends_history(tmp_path: Path) -> None:
    record = make_record(street="1 rue de la Paix", postal_code="75002", city="Paris", needs_geocoding=True)
    async with _client(AddressApi(), tmp_path) as client:
        updated = await client.geocode_record(record)

    assert (updated.latitude, updated.longitude) == (48.8566, 2.3522)
    assert updated.geocode_status is GeocodeStatus.SUCCESS
    assert updated.needs_geocoding is False
    assert updated.geocode_score == 0.92
    assert len(updated.geocode_history) == 1
    assert updated.geocode_history[0].address == "1 rue de la Paix, 75002 Paris"


@pytest.mark.asyncio
async def test_failed_geocode_keeps_previous_coordinates(tmp_path: Path) -> None:
    record = make_record(street="nulle part", latitude=45.0, longitude=5.0)
    async with _client(AddressApi({}), tmp_path) as client:
        updated = await client.geocode_record(record)

    assert (updated.latitude, updated.longitude) == (45.0, 5.0)
    assert updated.geocode_status is GeocodeStatus.ERROR
    assert updated.geocode_history[-1].success is False


@pytest.mark.asyncio
async def test_geocode_pending_updates_the_store(tmp_path: Path) -> None:
    remote = FakeRemoteStore(
        record_rows=[
            record_row("r1"),
            record_row("r2", city="Lyon", postal_code="69001"),
            record_row("r3", street="", postal_code="", city=""),
        ]
    )
    store = await loaded_store(remote)
    api = AddressApi()

    async with _client(api, tmp_path) as client:
        summary = await geocode_pending(store, client)

    assert summary == {"processed": 2, "succeeded": 2, "failed": 0, "skipped": 1}
    assert store.get_record_by_id("r1").has_coordinates
    assert store.get_record_by_id("r2").geocode_status is GeocodeStatus.SUCCESS
    assert not store.get_record_by_id("r3").has_coordinates
    assert sorted(remote.write_ranges) == ["Notaires!A2:T2", "Notaires!A3:T3"]


def test_cache_survives_restart_and_prunes_expired_entries(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    cache = GeocodeCache(path, ttl_days=30)
    cache.put("1 rue de la Paix, 75002 Paris", {"latitude": 48.8, "longitude": 2.3, "label": "x", "score": 0.9})

    stale = (datetime.now(timezone.utc) - timedelta(days=31)).isoformat()
    content = json.loads(path.read_text(encoding="utf-8"))
    content["old address"] = {"result": {"latitude": 1.0, "longitude": 1.0}, "timestamp": stale}
    path.write_text(json.dumps(content), encoding="utf-8")

    reloaded = GeocodeCache(path, ttl_days=30)

    assert len(reloaded) == 1
    assert reloaded.get("1 RUE DE LA PAIX, 75002 PARIS")["latitude"] == 48.8
    assert reloaded.get("old address") is None
    assert "old address" not in json.loads(path.read_text(encoding="utf-8"))
