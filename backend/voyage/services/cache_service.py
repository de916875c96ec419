"""In-process TTL cache for hotel IDs, search responses, offers, and place photos."""

import json
import logging
import time
from datetime import date
from typing import Any, Callable, NamedTuple

from cachetools import TLRUCache

from voyage.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_HOTEL_IDS = 60 * 60           # 1 hour: discovery results
TTL_EMPTY_IDS = 5 * 60            # 5 minutes: discoveries that found nothing
TTL_OFFER = 15 * 60               # 15 minutes: offer details
TTL_MARKET_FALLBACK = 5 * 60      # 5 minutes: substitute-market responses
TTL_PHOTO_LOOKUP = 60 * 60        # 1 hour: place text search hits
TTL_SEARCH_DEFAULT = 5 * 60       # 5 minutes: unparseable check-in


def ttl_from_check_in(check_in: str | date, today: date | None = None) -> int:
    """Search-result TTL; near-term availability changes faster."""
    today = today or date.today()
    try:
        if not isinstance(check_in, date):
            check_in = date.fromisoformat(str(check_in).strip())
    except ValueError:
        return TTL_SEARCH_DEFAULT

    days = (check_in - today).days
    if days <= 3:
        return 2 * 60
    if days <= 14:
        return 5 * 60
    return 15 * 60


def _ids_ttl(ids: list[str]) -> int:
    return TTL_HOTEL_IDS if ids else TTL_EMPTY_IDS


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _entry_expiry(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class TTLCache:
    """Named key/value store with per-entry expiry, backed by ``cachetools.TLRUCache``.

    Expired entries are never returned. ``sweep()`` drops them in bulk and is
    run by the app scheduler; the least recently used entry goes first when
    the cache is full.
    """

    def __init__(
        self,
        name: str,
        default_ttl: int,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int | None = None,
    ):
        self.name = name
        self.default_ttl = default_ttl
        self._store = TLRUCache(
            maxsize=maxsize or settings.cache_max_entries,
            ttu=_entry_expiry,
            timer=clock,
        )

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            self._store.pop(key, None)
            return
        self._store[key] = _Entry(value, ttl)

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were dropped."""
        return len(self._store.expire())

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        self._store.expire()
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store


class CacheService:
    """The hotel pipeline's caches and their key conventions."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.ids = TTLCache("hotel_ids", TTL_HOTEL_IDS, clock)
        self.searches = TTLCache("hotel_search", TTL_SEARCH_DEFAULT, clock)
        self.offers = TTLCache("hotel_offer", TTL_OFFER, clock)
        self.photos = TTLCache("place_photo", TTL_PHOTO_LOOKUP, clock)

    @property
    def caches(self) -> list[TTLCache]:
        return [self.ids, self.searches, self.offers, self.photos]

    # Key helpers

    def city_ids_key(self, city_code: str) -> str:
        return f"ids:city:{city_code}"

    def geo_ids_key(self, city_code: str, latitude: float, longitude: float) -> str:
        return f"ids:geo:{city_code}:{latitude}:{longitude}"

    def search_key(
        self,
        city_code: str,
        check_in: str,
        check_out: str,
        adults: int,
        strict_city: bool,
        latitude: float | None,
        longitude: float | None,
        hotel_ids: list[str],
    ) -> str:
        return "search:" + json.dumps(
            {
                "city": city_code,
                "checkIn": check_in,
                "checkOut": check_out,
                "adults": adults,
                "strict": strict_city,
                "lat": latitude,
                "lon": longitude,
                "ids": list(hotel_ids),
            },
            sort_keys=True,
            separators=(",", ":"),
        )

    def photo_key(self, query: str) -> str:
        return f"txt:{query}"

    # Typed helpers

    def get_city_ids(self, city_code: str) -> list[str] | None:
        return self.ids.get(self.city_ids_key(city_code))

    def set_city_ids(self, city_code: str, ids: list[str]):
        self.ids.set(self.city_ids_key(city_code), list(ids), _ids_ttl(ids))

    def get_geo_ids(self, city_code: str, latitude: float, longitude: float) -> list[str] | None:
        return self.ids.get(self.geo_ids_key(city_code, latitude, longitude))

    def set_geo_ids(self, city_code: str, latitude: float, longitude: float, ids: list[str]):
        self.ids.set(self.geo_ids_key(city_code, latitude, longitude), list(ids), _ids_ttl(ids))

    def get_offer(self, offer_id: str) -> dict | None:
        return self.offers.get(offer_id)

    def set_offer(self, offer_id: str, payload: dict, ttl: int = TTL_OFFER):
        self.offers.set(offer_id, payload, ttl)

    def remember_offers(self, bundles: list[dict]) -> int:
        """Store every offer of every bundle under its offer id."""
        stored = 0
        for bundle in bundles:
            if not isinstance(bundle, dict):
                continue
            for offer in bundle.get("offers") or []:
                offer_id = offer.get("id") if isinstance(offer, dict) else None
                if offer_id:
                    self.set_offer(offer_id, {"offer": offer, "hotel": bundle.get("hotel")})
                    stored += 1
        return stored

    def sweep(self) -> dict[str, int]:
        removed = {cache.name: cache.sweep() for cache in self.caches}
        if any(removed.values()):
            logger.debug(f"Cache sweep removed {removed}")
        return removed

    def clear(self):
        for cache in self.caches:
            cache.clear()


cache_service = CacheService()
