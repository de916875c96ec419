"""Hotel search orchestrator — staged discovery, availability search, and market fallback."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from voyage.config import settings
from voyage.schemas.hotels import HotelSearchRequest
from voyage.services.amadeus_client import AmadeusError, UpstreamTransportError, is_success, response_payload
from voyage.services.cache_service import (
    TTL_MARKET_FALLBACK,
    TTL_OFFER,
    CacheService,
    cache_service,
    ttl_from_check_in,
)
from voyage.services.hotel_directory import HotelDirectory, OfferSearchResult, hotel_directory
from voyage.services.market_resolver import MarketResolver, market_resolver
from voyage.services.photo_service import PhotoService, photo_service
from voyage.services.stage_trace import StageTrace

logger = logging.getLogger(__name__)

GEO_RADII_KM = (10, 25, 50)

VIA_EXPLICIT = "v3:explicit-ids"
VIA_CITY = "v3:v1-city"
VIA_CITY_GEO = "v3:v1-city+geo"
VIA_EMPTY_EXPLICIT = "v3-empty:explicit"
VIA_EMPTY_STRICT = "v3-empty:strict-city"
VIA_EMPTY_STAGED = "v3-empty:staged"
VIA_ERROR = "error"


def via_market(market: str) -> str:
    return f"v3-market({market})"


class Stage(str, Enum):
    EXPLICIT_IDS = "explicit_ids"
    CITY_LOOKUP = "city_lookup"
    STRICT_SHORT_CIRCUIT = "strict_short_circuit"
    GEO_EXPANSION = "geo_expansion"
    MARKET_FALLBACK = "market_fallback"
    TERMINAL_EMPTY = "terminal_empty"


TERMINAL_STAGES = {Stage.STRICT_SHORT_CIRCUIT, Stage.TERMINAL_EMPTY}


class Outcome(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    TRANSPORT_ERROR = "transport_error"


def initial_stage(*, has_ids: bool, has_city: bool, has_coords: bool) -> Stage:
    if has_ids:
        return Stage.EXPLICIT_IDS
    if has_city:
        return Stage.CITY_LOOKUP
    if has_coords:
        return Stage.GEO_EXPANSION
    return Stage.TERMINAL_EMPTY


def next_stage(
    stage: Stage,
    outcome: Outcome,
    *,
    has_city: bool,
    strict: bool,
    has_coords: bool,
) -> Stage | None:
    """Where the search goes after ``stage`` ends with ``outcome``.

    ``None`` means the run is over: a stage succeeded, a transport error
    aborted it, or a terminal stage was reached.
    """
    if outcome is not Outcome.EMPTY or stage in TERMINAL_STAGES:
        return None
    if stage is Stage.EXPLICIT_IDS:
        return Stage.CITY_LOOKUP if has_city else Stage.TERMINAL_EMPTY
    if stage is Stage.CITY_LOOKUP:
        if strict:
            return Stage.STRICT_SHORT_CIRCUIT
        return Stage.GEO_EXPANSION if has_coords else Stage.MARKET_FALLBACK
    if stage is Stage.GEO_EXPANSION:
        return Stage.MARKET_FALLBACK
    return Stage.TERMINAL_EMPTY


@dataclass
class StageResult:
    outcome: Outcome
    data: list[dict] = field(default_factory=list)
    used_nearest_dates: bool = False
    via: str | None = None
    resolved_city: str | None = None
    ttl: int | None = None
    error: AmadeusError | None = None

    @classmethod
    def empty(cls) -> "StageResult":
        return cls(Outcome.EMPTY)

    @classmethod
    def from_offers(cls, found: OfferSearchResult, via: str, resolved_city: str | None, ttl: int | None = None) -> "StageResult":
        if not found.data:
            return cls.empty()
        return cls(
            Outcome.SUCCESS,
            data=found.data,
            used_nearest_dates=found.used_nearest_dates,
            via=via,
            resolved_city=resolved_city,
            ttl=ttl,
        )


@dataclass
class SearchResult:
    via: str
    data: list[dict]
    resolved_city: str | None
    used_nearest_dates: bool
    meta: dict
    from_cache: bool = False

    def to_dict(self) -> dict:
        return {
            "fromCache": self.from_cache,
            "via": self.via,
            "data": self.data,
            "resolvedCity": self.resolved_city,
            "usedNearestDates": self.used_nearest_dates,
            "meta": self.meta,
        }


@dataclass
class _SearchRun:
    request: HotelSearchRequest
    city: str
    trace: StageTrace
    city_ids: list[str] = field(default_factory=list)


class HotelSearchService:
    """Runs the staged hotel search state machine.

    Stages run one at a time in a fixed order and the first one that yields
    offers wins. Every run carries a StageTrace returned in ``meta.stage``.
    """

    def __init__(
        self,
        directory: HotelDirectory = hotel_directory,
        photos: PhotoService = photo_service,
        cache: CacheService = cache_service,
        markets: MarketResolver = market_resolver,
        city_ids_cap: int | None = None,
        expanded_ids_cap: int | None = None,
        geo_radii_km: tuple[int, ...] = GEO_RADII_KM,
    ):
        self.directory = directory
        self.photos = photos
        self.cache = cache
        self.markets = markets
        self.city_ids_cap = city_ids_cap or settings.hotel_city_ids_cap
        self.expanded_ids_cap = expanded_ids_cap or settings.hotel_expanded_ids_cap
        self.geo_radii_km = geo_radii_km
        self._handlers = {
            Stage.EXPLICIT_IDS: self._explicit_ids,
            Stage.CITY_LOOKUP: self._city_lookup,
            Stage.GEO_EXPANSION: self._geo_expansion,
            Stage.MARKET_FALLBACK: self._market_fallback,
        }

    def search_key(self, request: HotelSearchRequest) -> str:
        return self.cache.search_key(
            city_code=request.city_code or "",
            check_in=request.check_in,
            check_out=request.check_out,
            adults=request.adults,
            strict_city=request.strict_city,
            latitude=request.latitude,
            longitude=request.longitude,
            hotel_ids=request.hotel_ids,
        )

    async def search(self, request: HotelSearchRequest) -> dict:
        key = self.search_key(request)
        cached = self.cache.searches.get(key)
        if cached is not None:
            logger.debug(f"Hotel search cache hit: {key}")
            return cached

        run = _SearchRun(request=request, city=request.city_code or "", trace=StageTrace())
        try:
            await self.directory.client.authenticate()
            return await self._run(run, key)
        except AmadeusError as e:
            logger.error(f"Hotel search for {run.city or 'coordinates'} failed: {e}")
            return self._error_result(run, e)
        except Exception as e:
            logger.error(f"Hotel search for {run.city or 'coordinates'} crashed: {e}")
            return self._error_result(run, e)

    async def _run(self, run: _SearchRun, key: str) -> dict:
        request = run.request
        stage = initial_stage(
            has_ids=bool(request.hotel_ids),
            has_city=request.has_city,
            has_coords=request.has_coords,
        )
        previous: Stage | None = None

        while stage is not None:
            if stage in TERMINAL_STAGES:
                return self._empty_result(run, stage, previous)

            try:
                result = await self._handlers[stage](run)
            except UpstreamTransportError as e:
                run.trace.record(stage.value, Outcome.TRANSPORT_ERROR.value, 0)
                result = StageResult(Outcome.TRANSPORT_ERROR, error=e)

            if result.outcome is Outcome.SUCCESS:
                return await self._finish(run, key, result)
            if result.outcome is Outcome.TRANSPORT_ERROR:
                return self._error_result(run, result.error)

            previous, stage = stage, next_stage(
                stage,
                result.outcome,
                has_city=request.has_city,
                strict=request.strict_city,
                has_coords=request.has_coords,
            )

        return self._empty_result(run, Stage.TERMINAL_EMPTY, previous)

    # --- Stages ---

    async def _search(self, run: _SearchRun, ids: list[str], tag: str) -> OfferSearchResult:
        r = run.request
        return await self.directory.search_offers(ids, r.check_in, r.check_out, r.adults, run.trace, tag)

    async def _explicit_ids(self, run: _SearchRun) -> StageResult:
        found = await self._search(run, run.request.hotel_ids, "explicit")
        return StageResult.from_offers(found, VIA_EXPLICIT, run.city or None)

    async def _city_lookup(self, run: _SearchRun) -> StageResult:
        run.city_ids = await self._city_ids(run)
        if not run.city_ids:
            return StageResult.empty()
        found = await self._search(run, run.city_ids[: self.city_ids_cap], "city")
        return StageResult.from_offers(found, VIA_CITY, run.city)

    async def _city_ids(self, run: _SearchRun) -> list[str]:
        """Union of discovery results across the city's aliases."""
        cached = self.cache.get_city_ids(run.city)
        if cached is not None:
            run.trace.record("ids_city_cache_hit", "hit", len(cached))
            return cached

        union: dict[str, None] = {}
        for code in self.markets.aliases_of(run.city):
            found = await self.directory.ids_by_city(code, run.trace)
            union.update(dict.fromkeys(found.ids))

        ids = list(union)
        self.cache.set_city_ids(run.city, ids)
        return ids

    async def _geo_expansion(self, run: _SearchRun) -> StageResult:
        r = run.request
        geo_ids = self.cache.get_geo_ids(run.city, r.latitude, r.longitude)
        if geo_ids is not None:
            run.trace.record("ids_geo_cache_hit", "hit", len(geo_ids))
        else:
            union: dict[str, None] = {}
            for radius in self.geo_radii_km:
                found = await self.directory.ids_by_geo(r.latitude, r.longitude, radius, run.trace)
                union.update(dict.fromkeys(found.ids))
            geo_ids = list(union)
            self.cache.set_geo_ids(run.city, r.latitude, r.longitude, geo_ids)

        merged = list(dict.fromkeys([*run.city_ids, *geo_ids]))[: self.expanded_ids_cap]
        if not merged:
            return StageResult.empty()
        found = await self._search(run, merged, "city+geo")
        return StageResult.from_offers(found, VIA_CITY_GEO, run.city or None)

    async def _market_fallback(self, run: _SearchRun) -> StageResult:
        for market in self.markets.fallback_markets(run.city):
            discovered = await self.directory.ids_by_city(market, run.trace)
            ids = discovered.ids[: self.city_ids_cap]
            if not ids:
                continue
            found = await self._search(run, ids, f"market_{market}")
            if found.data:
                logger.info(f"Hotel search for {run.city or 'coordinates'} fell back to market {market}")
                return StageResult.from_offers(found, via_market(market), market, ttl=TTL_MARKET_FALLBACK)
        return StageResult.empty()

    # --- Results ---

    async def _finish(self, run: _SearchRun, key: str, result: StageResult) -> dict:
        self.cache.remember_offers(result.data)
        try:
            await self.photos.enrich(result.data, run.city)
        except Exception as e:
            logger.warning(f"Photo enrichment failed: {e}")

        response = SearchResult(
            via=result.via,
            data=result.data,
            resolved_city=result.resolved_city,
            used_nearest_dates=result.used_nearest_dates,
            meta={"stage": run.trace.to_list()},
        ).to_dict()

        ttl = result.ttl if result.ttl is not None else ttl_from_check_in(run.request.check_in)
        self.cache.searches.set(key, response, ttl)
        logger.info(f"Hotel search {run.city or 'coordinates'}: {len(result.data)} hotels via {result.via}")
        return response

    def _empty_result(self, run: _SearchRun, stage: Stage, previous: Stage | None) -> dict:
        if stage is Stage.STRICT_SHORT_CIRCUIT:
            via, resolved = VIA_EMPTY_STRICT, run.city or None
        elif previous is Stage.EXPLICIT_IDS:
            via, resolved = VIA_EMPTY_EXPLICIT, None
        else:
            via, resolved = VIA_EMPTY_STAGED, run.city or None
        logger.info(f"Hotel search {run.city or 'coordinates'}: no hotels ({via})")
        return SearchResult(
            via=via,
            data=[],
            resolved_city=resolved,
            used_nearest_dates=False,
            meta={"stage": run.trace.to_list()},
        ).to_dict()

    def _error_result(self, run: _SearchRun, error: Exception) -> dict:
        return SearchResult(
            via=VIA_ERROR,
            data=[],
            resolved_city=None,
            used_nearest_dates=False,
            meta={"api": getattr(error, "payload", None), "message": str(error), "stage": run.trace.to_list()},
        ).to_dict()

    # --- Offer detail ---

    async def get_offer(self, offer_id: str) -> dict:
        """Offer detail, from the offer cache when a search already listed it."""
        cached = self.cache.get_offer(offer_id)
        if cached is not None:
            return {"fromCache": True, "data": cached}

        try:
            resp = await self.directory.get_offer(offer_id)
        except AmadeusError as e:
            logger.error(f"Offer detail {offer_id} failed: {e}")
            return {"fromCache": False, "data": None, "meta": {"api": e.payload, "message": str(e)}}

        payload = response_payload(resp)
        if not is_success(resp):
            return {"fromCache": False, "data": None, "meta": {"api": payload, "status": resp.status_code}}

        self.cache.set_offer(offer_id, payload, TTL_OFFER)
        return {"fromCache": False, "data": payload}


hotel_search_service = HotelSearchService()
