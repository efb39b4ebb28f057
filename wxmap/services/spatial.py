from typing import Iterable, List, Optional, Sequence, TypeVar

from wxmap.models.response import BoundingBox, WeatherPoint
from wxmap.models.station import StationReport
from wxmap.models.weather import Pirep
from wxmap.services import bulletin
from wxmap.services.airports import to_float as _to_float

T = TypeVar("T")


def parse_bounds(text: Optional[str]) -> Optional[BoundingBox]:
    """Parse ``minLng,minLat,maxLng,maxLat``. Anything else gives ``None``."""
    if not text:
        return None
    parts = text.split(",")
    if len(parts) != 4:
        return None
    values = [_to_float(p.strip()) for p in parts]
    if any(v is None for v in values):
        return None
    return BoundingBox(*values)


def _within(items: Iterable[T], box: BoundingBox) -> List[T]:
    found = []
    for item in items:
        lng = _to_float(getattr(item, "lng", None))
        lat = _to_float(getattr(item, "lat", None))
        if lng is None or lat is None:
            continue
        if box.contains(lng, lat):
            found.append(item)
    return found


def filter_airports(stations: Sequence[T], min_lng: float, min_lat: float,
                    max_lng: float, max_lat: float) -> List[T]:
    """Stations strictly inside the box, in input order.

    Works on anything with ``lng``/``lat`` attributes (``StationReport``,
    ``WeatherPoint``); records whose coordinates are missing or not numeric
    are skipped.
    """
    return _within(stations, BoundingBox(min_lng, min_lat, max_lng, max_lat))


def filter_pireps(pireps: Sequence[Pirep], box: BoundingBox) -> List[Pirep]:
    return _within(pireps, box)


def render_station(report: StationReport) -> WeatherPoint:
    """Turn a merged station into the row the map client consumes."""
    point = WeatherPoint(
        icao=report.id,
        lng="" if report.lng is None else str(report.lng),
        lat="" if report.lat is None else str(report.lat),
        taf=report.taf,
        up_winds=report.winds,
    )
    if not report.metar:
        return point

    parsed = bulletin.parse_metar(report.metar, report.category)
    return point.model_copy(update={
        "wind_dir": str(parsed.wind_dir),
        "wind_speed": str(parsed.wind_speed),
        "wind_barb": str(bulletin.wind_barb(parsed.wind_speed)),
        "wind_gust": str(parsed.wind_gust),
        "metar": report.metar,
        "cond": parsed.category,
        "cond_color": parsed.color,
        "precip": parsed.precip,
        "temperature": parsed.temperature,
        "lightning": "1" if parsed.lightning else "0",
    })


def query_airports(stations: Sequence[StationReport], box: BoundingBox) -> List[WeatherPoint]:
    return [render_station(s) for s in filter_airports(stations, *box)]
