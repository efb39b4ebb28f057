"""Batch refresh: download the bulk caches, merge them into a store, persist it.

Each download and each file load stands on its own; a failure is logged and
the remaining files are still processed. The run fails only when the merged
snapshot cannot be written.
"""
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
import requests

from wxmap.config import METARS_URL, PIREPS_URL, TAFS_URL, Settings, configure_logging
from wxmap.models.airport import Airport
from wxmap.models.weather import Pirep
from wxmap.services.airports import in_region, load_airports, to_float
from wxmap.services.snapshot import SnapshotError, read_snapshot, save_store
from wxmap.services.store import StationStore, normalize_station_id

logger = logging.getLogger(__name__)

CACHE_FILES = (
    ("metars.csv", METARS_URL),
    ("tafs.csv", TAFS_URL),
    ("pireps.csv", PIREPS_URL),
)

# The caches open with a few lines of status text before the real header
HEADER_PREFIXES = ("raw_text", "receipt_time")

LOAD_ERRORS = (OSError, ValueError, KeyError, pd.errors.ParserError)


def download_file(path: Path, url: str, timeout: int = 30):
    """Fetch ``url`` into ``path``. Raises ``requests.RequestException`` on failure."""
    logger.info(f"🌐 Downloading {path.name} from {url}")
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(response.text)


def read_cache_csv(path: Path) -> pd.DataFrame:
    header_row = None
    with open(path, "r", encoding="utf-8") as f:
        for i, line in enumerate(f):
            if line.startswith(HEADER_PREFIXES):
                header_row = i
                break
    if header_row is None:
        raise ValueError(f"no header row in {path}")
    return pd.read_csv(
        path,
        skiprows=header_row,
        dtype=str,
        keep_default_na=False,
        on_bad_lines="skip",
    )


def load_metars(store: StationStore, path: Path) -> int:
    df = read_cache_csv(path)
    count = 0
    for row in df[["raw_text", "station_id", "latitude", "longitude", "flight_category"]].itertuples(index=False):
        station_id = normalize_station_id(row.station_id)
        if not station_id or not row.raw_text:
            continue
        store.upsert_metar(
            station_id,
            row.raw_text,
            row.flight_category.strip(),
            lat=to_float(row.latitude),
            lng=to_float(row.longitude),
        )
        count += 1
    return count


def load_tafs(store: StationStore, path: Path) -> int:
    df = read_cache_csv(path)
    count = 0
    for row in df[["raw_text", "station_id"]].itertuples(index=False):
        station_id = normalize_station_id(row.station_id)
        if not station_id or not row.raw_text:
            continue
        store.upsert_taf(station_id, row.raw_text)
        count += 1
    return count


def load_pireps(store: StationStore, path: Path, region: Optional[Tuple[float, float, float, float]] = None) -> int:
    df = read_cache_csv(path)
    count = 0
    for row in df[["raw_text", "latitude", "longitude"]].itertuples(index=False):
        lat, lng = to_float(row.latitude), to_float(row.longitude)
        if not row.raw_text or lat is None or lng is None:
            continue
        if region is not None and not in_region(lat, lng, region):
            continue
        store.add_pirep(Pirep(report=row.raw_text, lat=row.latitude.strip(), lng=row.longitude.strip()))
        count += 1
    return count


def locate_stations(store: StationStore, airports: List[Airport]) -> int:
    """Give stations that arrived without coordinates their airport's location."""
    located = 0
    for airport in airports:
        report = store.get(airport.icao)
        if report is None or (report.lat is not None and report.lng is not None):
            continue
        lat, lng = to_float(airport.lat), to_float(airport.lng)
        if lat is not None and lng is not None and store.set_location(airport.icao, lat, lng):
            located += 1
    return located


def run_batch(settings: Settings) -> int:
    """One full refresh. Returns a process exit code."""
    if settings.merge_snapshot:
        # Station fields carry over; pireps are rebuilt from the fresh cache
        store, problem = read_snapshot(settings.snapshot_path)
        if problem:
            logger.warning(f"Previous snapshot not merged: {problem}")
    else:
        store = StationStore()

    airports, problem = load_airports(settings.airports_path, settings.region)
    if problem:
        logger.warning(f"Airport reference list unavailable: {problem}")

    if settings.download:
        for name, url in CACHE_FILES:
            try:
                download_file(settings.cache_path(name), url)
            except requests.RequestException as e:
                logger.error(f"❌ Download of {name} failed, using any cached copy: {e}")
            except OSError as e:
                logger.error(f"❌ Cannot save {name}: {e}")

    loaders = (
        ("metars.csv", lambda p: load_metars(store, p)),
        ("tafs.csv", lambda p: load_tafs(store, p)),
        ("pireps.csv", lambda p: load_pireps(store, p, settings.region)),
    )
    for name, loader in loaders:
        path = settings.cache_path(name)
        try:
            count = loader(path)
        except LOAD_ERRORS as e:
            logger.error(f"❌ Skipping {name}: {e}")
            continue
        logger.info(f"✅ Loaded {count} records from {name}")

    located = locate_stations(store, airports)
    if located:
        logger.info(f"📍 Located {located} stations from the airport list")

    try:
        save_store(store, settings.snapshot_path, settings.pireps_path)
    except SnapshotError as e:
        logger.error(f"💥 Snapshot not written: {e}")
        return 1

    logger.info(f"Batch complete: {len(store)} stations, {len(store.pireps())} pireps, {len(airports)} airports in region")
    return 0


def main():
    settings = Settings()
    configure_logging(settings.log_level)
    logger.info(f"Launching batch refresh. Download is {'On' if settings.download else 'Off'}")
    sys.exit(run_batch(settings))


if __name__ == "__main__":
    main()
