from __future__ import annotations

from datetime import date, timedelta

import httpx
import pytest

from voyage.services.amadeus_client import TOKEN_PATH, AmadeusClient
from voyage.services.cache_service import CacheService
from voyage.services.hotel_directory import BY_CITY_PATH, BY_GEOCODE_PATH, OFFERS_PATH, HotelDirectory
from voyage.services.hotel_search import HotelSearchService
from voyage.services.market_resolver import MarketResolver
from voyage.services.photo_service import PhotoService

BASE_URL = "https://test.api.amadeus.com"


def make_bundle(hotel_id: str, name: str | None = None, offer_id: str | None = None, city: str = "GOI") -> dict:
    return {
        "type": "hotel-offers",
        "hotel": {"hotelId": hotel_id, "name": name or f"Hotel {hotel_id}", "cityCode": city},
        "available": True,
        "offers": [
            {
                "id": offer_id or f"OFFER{hotel_id}",
                "price": {"currency": "EUR", "total": "120.00"},
            }
        ],
    }


def hotel_ids(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i:0{8 - len(prefix)}d}" for i in range(count)]


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAmadeus:
    """Scripted hotel directory served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.city_ids: dict[str, list[str]] = {}
        self.geo_ids: dict[int, list[str]] = {}
        self.dated_offers: dict[str, dict] = {}
        self.dateless_offers: dict[str, dict] = {}
        self.offer_details: dict[str, dict] = {}
        self.reject_hotel_source = False
        self.discovery_status: int | None = None
        self.failing_paths: set[str] = set()
        self.token_status = 200
        self.expires_in = 1799
        self.requests: list[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path in self.failing_paths:
            raise httpx.ConnectError("connection refused", request=request)

        if path == TOKEN_PATH:
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": f"tok-{len(self.token_requests)}", "expires_in": self.expires_in})

        if path in (BY_CITY_PATH, BY_GEOCODE_PATH):
            if self.discovery_status is not None:
                return httpx.Response(self.discovery_status, json={"errors": [{"status": self.discovery_status}]})
            if self.reject_hotel_source and "hotelSource" in params:
                return httpx.Response(400, json={"errors": [{"code": 477, "title": "INVALID FORMAT"}]})
            if path == BY_CITY_PATH:
                ids = self.city_ids.get(params["cityCode"], [])
            else:
                ids = self.geo_ids.get(int(params["radius"]), [])
            return httpx.Response(200, json={"data": [{"hotelId": i} for i in ids]})

        if path == OFFERS_PATH:
            table = self.dated_offers if "checkInDate" in params else self.dateless_offers
            wanted = params["hotelIds"].split(",")
            return httpx.Response(200, json={"data": [table[i] for i in wanted if i in table]})

        if path.startswith(OFFERS_PATH + "/"):
            offer_id = path.rsplit("/", 1)[-1]
            if offer_id in self.offer_details:
                return httpx.Response(200, json=self.offer_details[offer_id])
            return httpx.Response(404, json={"errors": [{"status": 404, "title": "NOT FOUND"}]})

        return httpx.Response(404)

    def to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return self.to(TOKEN_PATH)

    @property
    def directory_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != TOKEN_PATH]

    def cities_requested(self) -> list[str]:
        """City codes in the order they were first asked for (one per adaptive lookup)."""
        return [r.url.params["cityCode"] for r in self.to(BY_CITY_PATH) if "hotelSource" in r.url.params]


@pytest.fixture
def fake_amadeus() -> FakeAmadeus:
    return FakeAmadeus()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def amadeus(fake_amadeus: FakeAmadeus, clock: FakeClock) -> AmadeusClient:
    return AmadeusClient(
        base_url=BASE_URL,
        client_id="client-id",
        client_secret="client-secret",
        retries=2,
        retry_backoff=0,
        transport=fake_amadeus.transport(),
        clock=clock,
    )


@pytest.fixture
def cache(clock: FakeClock) -> CacheService:
    return CacheService(clock=clock)


@pytest.fixture
def directory(amadeus: AmadeusClient) -> HotelDirectory:
    return HotelDirectory(amadeus, page_limit=50)


@pytest.fixture
def photos(cache: CacheService) -> PhotoService:
    return PhotoService(api_key="", cache=cache, public_base="http://localhost:5050")


@pytest.fixture
def service(directory: HotelDirectory, photos: PhotoService, cache: CacheService) -> HotelSearchService:
    return HotelSearchService(
        directory=directory,
        photos=photos,
        cache=cache,
        markets=MarketResolver(),
        city_ids_cap=20,
        expanded_ids_cap=50,
    )


@pytest.fixture
def stay() -> tuple[str, str]:
    check_in = date.today() + timedelta(days=10)
    return check_in.isoformat(), (check_in + timedelta(days=3)).isoformat()
