"""Photo proxy router — forwards Places photo references with long-lived caching."""

import logging

import httpx
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, Response

from voyage.config import settings
from voyage.services.photo_service import clamp_width, photo_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/photo")
async def get_photo(
    ref: str = Query(""),
    w: str | None = Query(None),
):
    if not photo_service.enabled:
        return PlainTextResponse("Photo service not configured", status_code=503)
    ref = ref.strip()
    if not ref:
        return PlainTextResponse("Missing ref", status_code=400)

    width = clamp_width(w, default=settings.photo_max_width)
    try:
        resp = await photo_service.fetch_photo(ref, width)
    except httpx.HTTPError as e:
        logger.error(f"Photo proxy error: {e}")
        return PlainTextResponse("Photo proxy failed", status_code=500)

    if not (200 <= resp.status_code < 300):
        return PlainTextResponse("Upstream error", status_code=502)

    return Response(
        content=resp.content,
        media_type=resp.headers.get("content-type", "image/jpeg"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
