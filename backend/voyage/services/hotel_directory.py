"""Hotel directory operations — ID discovery by city/geocode and batched offer search."""

import logging
import re
from dataclasses import dataclass, field

import httpx

from voyage.config import settings
from voyage.services.amadeus_client import AmadeusClient, amadeus_client, is_success, response_payload
from voyage.services.stage_trace import StageTrace

logger = logging.getLogger(__name__)

BY_CITY_PATH = "/v1/reference-data/locations/hotels/by-city"
BY_GEOCODE_PATH = "/v1/reference-data/locations/hotels/by-geocode"
OFFERS_PATH = "/v3/shopping/hotel-offers"

HOTEL_ID_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


@dataclass
class DiscoveryResult:
    status: int
    ids: list[str] = field(default_factory=list)


@dataclass
class OfferSearchResult:
    data: list[dict] = field(default_factory=list)
    used_nearest_dates: bool = False


def _rows(payload) -> list[dict]:
    """Object rows of a response's ``data`` list; anything else is dropped."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return [row for row in payload["data"] if isinstance(row, dict)]
    return []


def extract_hotel_ids(payload) -> list[str]:
    """Valid, unique hotel IDs from a discovery response, in upstream order."""
    ids = (str(row.get("hotelId") or "").strip().upper() for row in _rows(payload))
    return list(dict.fromkeys(i for i in ids if HOTEL_ID_PATTERN.match(i)))


class HotelDirectory:
    """Discovery and availability calls on top of the Amadeus client."""

    def __init__(self, client: AmadeusClient = amadeus_client, page_limit: int | None = None):
        self.client = client
        self.page_limit = page_limit or settings.hotel_page_limit

    async def _adaptive_lookup(self, path: str, params: dict) -> httpx.Response:
        """Ask for all hotel sources; environments that reject it get a plain retry."""
        resp = await self.client.get(path, {**params, "hotelSource": "ALL"})
        if not is_success(resp):
            logger.info(f"{path} rejected hotelSource=ALL ({resp.status_code}), retrying without it")
            resp = await self.client.get(path, params)
        return resp

    async def ids_by_city(self, city_code: str, trace: StageTrace) -> DiscoveryResult:
        city = str(city_code).strip().upper()
        resp = await self._adaptive_lookup(BY_CITY_PATH, {"cityCode": city})
        ids = extract_hotel_ids(response_payload(resp)) if is_success(resp) else []
        trace.record(f"ids_city_{city}", resp.status_code, len(ids))
        return DiscoveryResult(status=resp.status_code, ids=ids)

    async def ids_by_geo(
        self, latitude: float, longitude: float, radius_km: int, trace: StageTrace
    ) -> DiscoveryResult:
        resp = await self._adaptive_lookup(
            BY_GEOCODE_PATH,
            {
                "latitude": latitude,
                "longitude": longitude,
                "radius": str(radius_km),
                "radiusUnit": "KM",
            },
        )
        ids = extract_hotel_ids(response_payload(resp)) if is_success(resp) else []
        trace.record(f"ids_geo_{radius_km}km", resp.status_code, len(ids))
        return DiscoveryResult(status=resp.status_code, ids=ids)

    async def search_offers(
        self,
        ids: list[str],
        check_in: str,
        check_out: str,
        adults: int,
        trace: StageTrace,
        tag: str,
    ) -> OfferSearchResult:
        """Dated offer search, then a dateless probe when nothing is available.

        Data from the probe is flagged ``used_nearest_dates`` so the caller can
        tell the user the prices are not for the exact dates requested.
        """
        if not ids:
            return OfferSearchResult()
        csv = ",".join(ids)

        resp = await self.client.get(
            OFFERS_PATH,
            {
                "hotelIds": csv,
                "checkInDate": check_in,
                "checkOutDate": check_out,
                "adults": str(adults),
                "page[limit]": str(self.page_limit),
            },
        )
        data = _rows(response_payload(resp)) if is_success(resp) else []
        trace.record(f"offers_{tag}_dated", resp.status_code, len(data))
        if data:
            return OfferSearchResult(data=data)

        resp = await self.client.get(OFFERS_PATH, {"hotelIds": csv, "adults": str(adults)})
        data = _rows(response_payload(resp)) if is_success(resp) else []
        trace.record(f"offers_{tag}_minimal", resp.status_code, len(data))
        if data:
            return OfferSearchResult(data=data, used_nearest_dates=True)

        return OfferSearchResult()

    async def get_offer(self, offer_id: str) -> httpx.Response:
        return await self.client.get(f"{OFFERS_PATH}/{offer_id}")


hotel_directory = HotelDirectory()
