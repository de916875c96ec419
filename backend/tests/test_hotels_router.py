from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from voyage.config import settings
from voyage.main import app
from voyage.routers import hotels, photos
from voyage.services.cache_service import CacheService
from voyage.services.hotel_search import HotelSearchService
from voyage.services.photo_service import PhotoService

from conftest import FakeAmadeus, make_bundle


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, service: HotelSearchService) -> TestClient:
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    monkeypatch.setattr(hotels, "hotel_search_service", service)
    with TestClient(app) as c:
        yield c


def test_dates_are_required(client: TestClient) -> None:
    resp = client.get("/api/hotels/search", params={"cityCode": "PAR", "checkOutDate": "2026-05-03"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "checkInDate_required"

    resp = client.get("/api/hotels/search", params={"cityCode": "PAR", "checkInDate": "2026-05-01"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "checkOutDate_required"


def test_location_or_ids_are_required(client: TestClient, stay) -> None:
    check_in, check_out = stay
    resp = client.get("/api/hotels/search", params={"checkInDate": check_in, "checkOutDate": check_out})
    assert resp.status_code == 400


def test_search_with_explicit_ids(client: TestClient, fake_amadeus: FakeAmadeus, stay) -> None:
    check_in, check_out = stay
    fake_amadeus.dateless_offers = {"AAAAAAAA": make_bundle("AAAAAAAA")}

    resp = client.get(
        "/api/hotels/search",
        params={"hotelIds": "aaaaaaaa, BBBBBBBB", "checkInDate": check_in, "checkOutDate": check_out, "adults": 2},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["via"] == "v3:explicit-ids"
    assert body["usedNearestDates"] is True
    assert body["fromCache"] is False
    assert [s["name"] for s in body["meta"]["stage"]] == ["offers_explicit_dated", "offers_explicit_minimal"]
    sent = fake_amadeus.requests[-1].url.params
    assert sent["hotelIds"] == "AAAAAAAA,BBBBBBBB"
    assert sent["adults"] == "2"


def test_large_parties_are_accepted(client: TestClient, fake_amadeus: FakeAmadeus, stay) -> None:
    check_in, check_out = stay
    resp = client.get(
        "/api/hotels/search",
        params={"hotelIds": "AAAAAAAA", "checkInDate": check_in, "checkOutDate": check_out, "adults": 12},
    )
    assert resp.status_code == 200
    assert fake_amadeus.requests[-1].url.params["adults"] == "12"

    resp = client.get(
        "/api/hotels/search",
        params={"hotelIds": "AAAAAAAA", "checkInDate": check_in, "checkOutDate": check_out, "adults": 0},
    )
    assert resp.status_code == 422


def test_repeated_search_is_served_from_cache(client: TestClient, fake_amadeus: FakeAmadeus, stay) -> None:
    check_in, check_out = stay
    fake_amadeus.city_ids = {"PAR": ["RTPAR001"]}
    fake_amadeus.dated_offers = {"RTPAR001": make_bundle("RTPAR001")}
    params = {"cityCode": "par", "checkInDate": check_in, "checkOutDate": check_out}

    first = client.get("/api/hotels/search", params=params)
    calls = len(fake_amadeus.requests)
    second = client.get("/api/hotels/search", params=params)

    assert first.content == second.content
    assert len(fake_amadeus.requests) == calls


def test_strict_city_flag(client: TestClient, fake_amadeus: FakeAmadeus, stay) -> None:
    check_in, check_out = stay
    resp = client.get(
        "/api/hotels/search",
        params={"cityCode": "GOI", "lat": 15.4, "lon": 73.8, "strictCity": "1", "checkInDate": check_in, "checkOutDate": check_out},
    )
    assert resp.json()["via"] == "v3-empty:strict-city"


def test_upstream_errors_still_return_200(client: TestClient, fake_amadeus: FakeAmadeus, stay) -> None:
    check_in, check_out = stay
    fake_amadeus.token_status = 401

    resp = client.get("/api/hotels/search", params={"cityCode": "PAR", "checkInDate": check_in, "checkOutDate": check_out})

    assert resp.status_code == 200
    body = resp.json()
    assert body["via"] == "error"
    assert body["meta"]["api"] == {"error": "invalid_client"}


def test_offer_detail(client: TestClient, fake_amadeus: FakeAmadeus) -> None:
    fake_amadeus.offer_details["OFF1"] = {"data": {"id": "OFF1"}}

    assert client.get("/api/hotels/offer/OFF1").json() == {"fromCache": False, "data": {"data": {"id": "OFF1"}}}
    assert client.get("/api/hotels/offer/OFF1").json()["fromCache"] is True
    missing = client.get("/api/hotels/offer/NOPE")
    assert missing.status_code == 200
    assert missing.json()["data"] is None


def test_ping_and_health(client: TestClient) -> None:
    assert client.get("/api/hotels/ping").json() == {"ok": True, "route": "/api/hotels"}
    assert client.get("/api/health").json()["status"] == "ok"


def test_photo_proxy_requires_configuration(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(photos, "photo_service", PhotoService(api_key="", cache=CacheService()))
    assert client.get("/api/photo", params={"ref": "abc"}).status_code == 503


def test_photo_proxy_streams_image(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.params["photo_reference"] == "bad":
            return httpx.Response(403)
        return httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"})

    service = PhotoService(api_key="key", cache=CacheService(), transport=httpx.MockTransport(handler))
    monkeypatch.setattr(photos, "photo_service", service)

    resp = client.get("/api/photo", params={"ref": "abc", "w": "99999"})
    assert resp.status_code == 200
    assert resp.content == b"\xff\xd8jpeg"
    assert resp.headers["content-type"] == "image/jpeg"
    assert resp.headers["cache-control"] == "public, max-age=86400"
    assert seen[0].url.params["maxwidth"] == "1600"

    assert client.get("/api/photo", params={"ref": ""}).status_code == 400
    assert client.get("/api/photo", params={"ref": "bad"}).status_code == 502
