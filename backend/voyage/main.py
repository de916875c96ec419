import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voyage.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "voyage.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

from voyage.routers import hotels, photos
from voyage.services.amadeus_client import amadeus_client
from voyage.services.cache_service import cache_service
from voyage.services.photo_service import photo_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: periodic sweep of expired cache entries
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = AsyncIOScheduler()

        async def _sweep_caches():
            cache_service.sweep()

        scheduler.add_job(
            _sweep_caches,
            IntervalTrigger(seconds=settings.cache_sweep_interval_seconds),
            id="cache_sweep",
        )
        scheduler.start()
        logger.info("Background scheduler started")

    if not amadeus_client.tokens.configured:
        logger.warning("Amadeus credentials missing — hotel search will return error results")
    if not photo_service.enabled:
        logger.info("Google Places key not set — photo enrichment disabled")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    await amadeus_client.close()
    await photo_service.close()


app = FastAPI(
    title="Voyage API",
    description="Hotel search for the Voyage trip planner",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hotels.router, prefix="/api/hotels", tags=["hotels"])
app.include_router(photos.router, prefix="/api", tags=["photos"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "voyage", "amadeusBase": amadeus_client.base_url}
