"""Hotel router — staged availability search and offer details."""

import logging

from fastapi import APIRouter, HTTPException, Query

from voyage.schemas.hotels import HotelSearchRequest
from voyage.services.hotel_search import hotel_search_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ping")
async def ping():
    return {"ok": True, "route": "/api/hotels"}


@router.get("/search")
async def search_hotels(
    checkInDate: str | None = Query(None),
    checkOutDate: str | None = Query(None),
    cityCode: str | None = Query(None),
    lat: float | None = Query(None),
    lon: float | None = Query(None),
    adults: int = Query(1, ge=1),
    strictCity: str = Query("0"),
    hotelId: str | None = Query(None),
    hotelIds: str | None = Query(None),
):
    """Search priced hotel offers by city, coordinates, or explicit hotel IDs.

    Upstream failures still return 200; the cause is reported in ``meta``.
    """
    if not checkInDate:
        raise HTTPException(status_code=400, detail="checkInDate_required")
    if not checkOutDate:
        raise HTTPException(status_code=400, detail="checkOutDate_required")

    req = HotelSearchRequest.from_query(
        check_in=checkInDate,
        check_out=checkOutDate,
        city_code=cityCode,
        lat=lat,
        lon=lon,
        adults=adults,
        hotel_ids=hotelIds or hotelId,
        strict_city=strictCity,
    )
    if not (req.hotel_ids or req.has_city or req.has_coords):
        raise HTTPException(status_code=400, detail="cityCode_required")

    logger.info(f"Hotel search city={req.city_code} lat={req.latitude} lon={req.longitude} "
                f"{req.check_in}..{req.check_out} adults={req.adults} ids={len(req.hotel_ids)}")
    return await hotel_search_service.search(req)


@router.get("/offer/{offer_id}")
async def get_offer(offer_id: str):
    """Single offer detail, served from the offer cache when available."""
    return await hotel_search_service.get_offer(offer_id)
