from wxmap.models.airport import Airport
from wxmap.services.store import normalize_station_id
from typing import List, Optional, Tuple
from pathlib import Path
import csv
import logging

logger = logging.getLogger(__name__)


def to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except Exception:
        return None


def in_region(lat: float, lng: float, region: Tuple[float, float, float, float]) -> bool:
    lat_min, lat_max, lng_min, lng_max = region
    return lat_min <= lat <= lat_max and lng_min <= lng <= lng_max


def load_airports(path, region: Optional[Tuple[float, float, float, float]] = None) -> Tuple[List[Airport], Optional[str]]:
    """Load the airport reference list (``ident, lat, lng, elevation`` rows, no header).

    Identifiers are normalized ('ORD' -> 'KORD'). Rows with unreadable
    coordinates, or outside ``region`` when given, are skipped. A missing
    file yields an empty list and the reason.
    """
    path = Path(path)
    airports: List[Airport] = []
    skipped = 0
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            for row in csv.reader(f):
                if len(row) < 3 or not row[0].strip():
                    skipped += 1
                    continue
                lat_s, lng_s = row[1].strip(), row[2].strip()
                lat, lng = to_float(lat_s), to_float(lng_s)
                if lat is None or lng is None:
                    skipped += 1
                    continue
                if region is not None and not in_region(lat, lng, region):
                    continue
                airports.append(Airport(
                    icao=normalize_station_id(row[0]),
                    lat=lat_s,
                    lng=lng_s,
                    elevation=row[3].strip() if len(row) > 3 else None,
                ))
    except OSError as e:
        return [], f"cannot read {path}: {e}"

    if skipped:
        logger.warning(f"Skipped {skipped} unreadable rows in {path}")
    logger.info(f"✅ Loaded {len(airports)} airports from {path}")
    return airports, None
