import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from wxmap.models.station import StationReport
from wxmap.models.weather import Pirep

logger = logging.getLogger(__name__)

# Identifiers starting with one of these already carry their country code
RECOGNIZED_PREFIXES = ("K", "C")
DEFAULT_PREFIX = "K"


def normalize_station_id(ident: str, always_prefix: bool = False) -> str:
    """Canonical station identifier: 'ORD' -> 'KORD', 'CYYZ' stays 'CYYZ'.

    ``always_prefix`` is used for feed messages (PIREP, WINDS) whose location
    is always a bare three-letter identifier.
    """
    ident = (ident or "").strip().upper()
    if not ident:
        return ident
    if always_prefix or not ident.startswith(RECOGNIZED_PREFIXES):
        return DEFAULT_PREFIX + ident
    return ident


class StationStore:
    """Merged station reports plus the flat pirep list.

    Every upsert replaces one field group of one station and leaves the rest
    untouched, so whichever source touched a field last wins for that field.
    A single store-wide lock guards all access; readers always get copies.
    """

    def __init__(self, reports: Optional[Dict[str, StationReport]] = None,
                 pireps: Optional[Iterable[Pirep]] = None, max_pireps: Optional[int] = None):
        self._lock = threading.RLock()
        self._reports: Dict[str, StationReport] = dict(reports or {})
        self._pireps: List[Pirep] = list(pireps or [])
        self.max_pireps = max_pireps
        self._trim_pireps()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)

    def __contains__(self, station_id: str) -> bool:
        with self._lock:
            return station_id in self._reports

    # -- upserts ---------------------------------------------------------
    def _upsert(self, station_id: str, changes: Dict[str, object]) -> StationReport:
        changes = {k: v for k, v in changes.items() if v is not None}
        changes["last_updated"] = datetime.now(timezone.utc)
        with self._lock:
            current = self._reports.get(station_id)
            if current is None:
                logger.debug(f"Adding new report for {station_id}")
                current = StationReport(id=station_id)
            # Replace rather than mutate so copies handed out earlier stay intact
            updated = current.model_copy(update=changes)
            self._reports[station_id] = updated
            return updated.model_copy()

    def upsert_metar(self, station_id: str, raw_text: str, category: str = "",
                     lat: Optional[float] = None, lng: Optional[float] = None,
                     time: Optional[str] = None) -> StationReport:
        return self._upsert(station_id, {
            "metar": raw_text, "category": category or "", "lat": lat, "lng": lng, "time": time,
        })

    def upsert_taf(self, station_id: str, raw_text: str, lat: Optional[float] = None,
                   lng: Optional[float] = None, time: Optional[str] = None) -> StationReport:
        return self._upsert(station_id, {"taf": raw_text, "lat": lat, "lng": lng, "time": time})

    def upsert_winds(self, station_id: str, raw_text: str, lat: Optional[float] = None,
                     lng: Optional[float] = None, time: Optional[str] = None) -> StationReport:
        return self._upsert(station_id, {"winds": raw_text, "lat": lat, "lng": lng, "time": time})

    def upsert_pirep(self, station_id: str, raw_text: str, lat: Optional[float] = None,
                     lng: Optional[float] = None, time: Optional[str] = None) -> Pirep:
        """Append a pirep reported at ``station_id`` and remember it as that station's latest.

        The pirep takes the station's location when none is given.
        """
        with self._lock:
            report = self._upsert(station_id, {"pirep": raw_text, "lat": lat, "lng": lng, "time": time})
            pirep = Pirep(
                report=raw_text,
                lat=None if report.lat is None else str(report.lat),
                lng=None if report.lng is None else str(report.lng),
                station=station_id,
            )
            self.add_pirep(pirep)
            return pirep

    def add_pirep(self, pirep: Pirep):
        with self._lock:
            self._pireps.append(pirep)
            self._trim_pireps()

    def _trim_pireps(self):
        if self.max_pireps is not None and len(self._pireps) > self.max_pireps:
            del self._pireps[:len(self._pireps) - self.max_pireps]

    def set_location(self, station_id: str, lat: float, lng: float) -> bool:
        """Attach coordinates to an existing station without touching its bulletins."""
        with self._lock:
            current = self._reports.get(station_id)
            if current is None:
                return False
            self._reports[station_id] = current.model_copy(update={"lat": lat, "lng": lng})
            return True

    # -- reads -----------------------------------------------------------
    def get(self, station_id: str) -> Optional[StationReport]:
        with self._lock:
            report = self._reports.get(station_id)
            return None if report is None else report.model_copy()

    def all(self) -> List[StationReport]:
        """Point-in-time copies of every station, ordered by identifier."""
        with self._lock:
            return [self._reports[k].model_copy() for k in sorted(self._reports)]

    def pireps(self) -> List[Pirep]:
        with self._lock:
            return [p.model_copy() for p in self._pireps]

    def snapshot(self) -> Tuple[Dict[str, StationReport], List[Pirep]]:
        """Consistent copy of both collections taken under one lock acquisition."""
        with self._lock:
            reports = {k: v.model_copy() for k, v in self._reports.items()}
            return reports, [p.model_copy() for p in self._pireps]
