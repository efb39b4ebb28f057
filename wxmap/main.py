import os
import logging
from datetime import datetime, timezone
from typing import List, Optional, Union

from wxmap.config import Settings, configure_logging

settings = Settings()

# Configure logging
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

logger.info("🔧 Environment Check:")
logger.info(f"   Snapshot: {settings.snapshot_path} {'✅' if settings.snapshot_path.exists() else '❌ MISSING'}")
logger.info(f"   Pireps:   {settings.pireps_path} {'✅' if settings.pireps_path.exists() else '❌ MISSING'}")

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from wxmap.models.response import WeatherPoint
from wxmap.models.weather import Pirep
from wxmap.services.snapshot import load_store
from wxmap.services.spatial import filter_pireps, parse_bounds, query_airports
from wxmap.services.store import StationStore

# Get allowed origins from environment
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")

app = FastAPI(
    title="Aviation Weather Map Service",
    description="METAR, TAF, PIREP and winds aloft for the stations inside a map bounding box",
    version="1.0.0",
    docs_url="/docs" if os.getenv("ENVIRONMENT") != "production" else None,
    redoc_url="/redoc" if os.getenv("ENVIRONMENT") != "production" else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
)


def get_settings() -> Settings:
    return settings


def get_store(config: Settings = Depends(get_settings)) -> StationStore:
    """Fresh read of the persisted snapshot; the writers live in other processes."""
    store, problems = load_store(config.snapshot_path, config.pireps_path)
    for problem in problems:
        logger.warning(f"⚠️ Serving without full data: {problem}")
    return store


@app.get("/")
@app.head("/")
def health():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "Aviation Weather Map Service",
        "version": "1.0.0",
    }


@app.get("/health")
def detailed_health(config: Settings = Depends(get_settings)):
    """Detailed health check for monitoring"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "files": {
            "snapshot": "present" if config.snapshot_path.exists() else "missing",
            "pireps": "present" if config.pireps_path.exists() else "missing",
        }
    }


@app.get("/airports", response_model=List[WeatherPoint])
def airports(bounds: Optional[str] = None, store: StationStore = Depends(get_store)):
    """Stations strictly inside ``bounds`` (minLng,minLat,maxLng,maxLat).

    Malformed bounds give an empty list, never an error.
    """
    box = parse_bounds(bounds)
    if box is None:
        logger.info(f"Ignoring airports request with bounds {bounds!r}")
        return []
    points = query_airports(store.all(), box)
    logger.info(f"✅ {len(points)} stations inside {bounds}")
    return points


@app.get("/pireps", response_model=List[Pirep], response_model_exclude_none=True)
def pireps(bounds: Optional[str] = None, store: StationStore = Depends(get_store)):
    box = parse_bounds(bounds)
    if box is None:
        logger.info(f"Ignoring pireps request with bounds {bounds!r}")
        return []
    return filter_pireps(store.pireps(), box)


@app.get("/wx")
def wx(req: Optional[str] = None, bounds: Optional[str] = None, store: StationStore = Depends(get_store)):
    """Single entry point taking the map client's ``req`` and ``bounds`` parameters."""
    results: List[Union[WeatherPoint, Pirep]] = []
    if req == "airports":
        results = airports(bounds, store)
    elif req == "pireps":
        results = pireps(bounds, store)
    return [r.model_dump(by_alias=True, exclude_none=True) for r in results]
