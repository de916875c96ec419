"""Google Places client — representative hotel photos and the photo proxy upstream."""

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from voyage.config import settings
from voyage.services.cache_service import TTL_PHOTO_LOOKUP, CacheService, cache_service

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
MIN_PHOTO_WIDTH = 200
MAX_PHOTO_WIDTH = 1600


@dataclass
class PlacePhoto:
    photo_ref: str | None
    place_id: str | None


def clamp_width(width: int | str | None, default: int = 1200) -> int:
    try:
        w = int(width) if width not in (None, "") else default
    except (TypeError, ValueError):
        w = default
    return max(MIN_PHOTO_WIDTH, min(MAX_PHOTO_WIDTH, w))


class PhotoService:
    """Finds a photo reference per hotel and serves the bytes through our proxy."""

    def __init__(
        self,
        api_key: str | None = None,
        cache: CacheService = cache_service,
        public_base: str | None = None,
        enrich_limit: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_places_key
        self.cache = cache
        self.public_base = (public_base or settings.public_base_url).rstrip("/")
        self.enrich_limit = enrich_limit or settings.hotel_photo_enrich_limit
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=PLACES_BASE_URL,
                timeout=settings.places_timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def text_search(self, query: str) -> PlacePhoto | None:
        """First lodging match for a free-text query. Hits are cached for an hour."""
        if not self.enabled:
            return None
        key = self.cache.photo_key(query)
        cached = self.cache.photos.get(key)
        if cached is not None:
            return cached

        client = await self._get_client()
        resp = await client.get(
            "/textsearch/json",
            params={"query": query, "type": "lodging", "key": self.api_key},
        )
        if resp.status_code != 200:
            return None
        results = resp.json().get("results") or []
        if not results:
            return None

        first = results[0]
        photos = first.get("photos") or []
        hit = PlacePhoto(
            photo_ref=photos[0].get("photo_reference") if photos else None,
            place_id=first.get("place_id"),
        )
        self.cache.photos.set(key, hit, TTL_PHOTO_LOOKUP)
        return hit

    def build_proxy_url(self, photo_ref: str | None, max_width: int | None = None) -> str | None:
        if not photo_ref:
            return None
        width = max_width or settings.photo_max_width
        return f"{self.public_base}/api/photo?ref={quote(photo_ref, safe='')}&w={width}"

    async def _enrich_one(self, bundle: dict, city_label: str):
        hotel = bundle.get("hotel")
        if not isinstance(hotel, dict) or hotel.get("image"):
            return
        name = hotel.get("name")
        if not name:
            return
        city = (hotel.get("address") or {}).get("cityName") or city_label or ""

        try:
            hit = await self.text_search(f"{name} {city}".strip())
        except Exception as e:
            logger.debug(f"Photo lookup failed for {name!r}: {e}")
            return
        url = self.build_proxy_url(hit.photo_ref if hit else None)
        if url:
            hotel["image"] = url

    async def enrich(self, bundles: list[dict], city_label: str = "") -> list[dict]:
        """Attach ``hotel.image`` to the leading bundles in place.

        Lookups run concurrently; a failed one leaves its bundle untouched.
        """
        if not self.enabled or not bundles:
            return bundles

        results = await asyncio.gather(
            *(self._enrich_one(b, city_label) for b in bundles[: self.enrich_limit] if isinstance(b, dict)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"Photo enrichment skipped: {result}")
        return bundles

    async def fetch_photo(self, photo_ref: str, width: int) -> httpx.Response:
        client = await self._get_client()
        return await client.get(
            "/photo",
            params={"maxwidth": str(width), "photo_reference": photo_ref, "key": self.api_key},
            timeout=settings.photo_timeout,
        )

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


photo_service = PhotoService()
