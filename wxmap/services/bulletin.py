"""Parsing of raw METAR text into the handful of fields the map displays.

Every function here is pure and never raises on malformed input: a missing or
garbled group yields the documented zero/unknown value instead.
"""
import re
from typing import List, Optional, Tuple

from wxmap.models.station import ParsedMetar

# Colours the map uses for each flight category
CONDITION_COLORS = {
    "VFR": "#60FF60",
    "MVFR": "#4040FF",
    "IFR": "#FF3030",
    "LIFR": "#FF60FF",
}
UNKNOWN_COLOR = "white"

# Checked in this order against each token
PRECIP_CODES = ("SN", "TS", "RA", "BR", "FG")

CEILING_RE = re.compile(r'^(BKN|OVC|VV)(\d{3})')


def _words(text: Optional[str]) -> List[str]:
    return (text or "").split()


def parse_wind(text: str) -> Tuple[int, int, int]:
    """Return (direction, speed, gust) from the first ``...KT`` group.

    Gust equals speed when no ``G`` group is present. ``(0, 0, 0)`` covers
    both a calm report and a report with no readable wind group.
    """
    for word in _words(text):
        if not (word.endswith("KT") and len(word) >= 5):
            continue
        try:
            direction = int(word[0:3])
            speed = int(word[3:5])
            if len(word) > 5 and word[5] == "G":
                gust = int(word[6:8])
            else:
                gust = speed
        except ValueError:
            return 0, 0, 0
        return direction, speed, gust
    return 0, 0, 0


def classify_condition(category: Optional[str]) -> str:
    return CONDITION_COLORS.get(category or "", UNKNOWN_COLOR)


def extract_precip(text: str) -> str:
    """First weather token (snow, thunder, rain, mist, fog) before the remarks."""
    for word in _words(text)[1:]:
        for code in PRECIP_CODES:
            if code in word:
                return word
        if "RMK" in word:
            return ""
    return ""


def extract_temperature(text: str) -> str:
    """Temperature in whole degrees Fahrenheit from the ``TT/DD`` group.

    ``M`` marks a negative Celsius value. Tokens that look like the group but
    do not parse are passed over; an empty string means no temperature.
    """
    for word in _words(text)[1:]:
        if "RMK" in word:
            break
        if "/" not in word or word.endswith("SM"):
            continue
        tpart = word.replace("M", "-").split("/", 1)[0]
        try:
            celsius = int(tpart)
        except ValueError:
            continue
        if celsius > 99:
            celsius = -(celsius - 1000)
        return str(int(round(celsius * 9 / 5 + 32)))
    return ""


def has_lightning(text: str) -> bool:
    return any("LTG" in word for word in _words(text)[1:])


def wind_barb(speed: int) -> int:
    """Barb index drawn by the map: one step per 5 knots, -1 for calm."""
    if speed == 0:
        return -1
    return speed // 5


def _visibility_sm(words: List[str]) -> Optional[float]:
    for i, word in enumerate(words):
        if word == "CAVOK":
            return 10.0
        if not word.endswith("SM"):
            continue
        vis = word[:-2].lstrip("PM")
        try:
            if "/" in vis:
                num, den = vis.split("/", 1)
                value = float(num) / float(den)
                # "1 1/2SM" is split across two tokens
                if i > 0 and words[i - 1].isdigit():
                    value += float(words[i - 1])
                return value
            return float(vis)
        except (ValueError, ZeroDivisionError):
            return None
    return None


def _ceiling_ft(words: List[str]) -> Optional[int]:
    ceilings = []
    for word in words:
        match = CEILING_RE.match(word)
        if match:
            ceilings.append(int(match.group(2)) * 100)
    return min(ceilings) if ceilings else None


def flight_category(text: str) -> str:
    """Derive VFR/MVFR/IFR/LIFR from the visibility and ceiling groups.

    Used for METARs that arrive without a category (the streaming feed).
    Returns an empty string when neither group can be read.
    """
    words = []
    for word in _words(text)[1:]:
        if word == "RMK":
            break
        words.append(word)

    vis = _visibility_sm(words)
    ceiling = _ceiling_ft(words)
    if vis is None and ceiling is None:
        return ""

    if (ceiling is not None and ceiling < 500) or (vis is not None and vis < 1):
        return "LIFR"
    if (ceiling is not None and ceiling < 1000) or (vis is not None and vis < 3):
        return "IFR"
    if (ceiling is not None and ceiling <= 3000) or (vis is not None and vis <= 5):
        return "MVFR"
    return "VFR"


def parse_metar(text: str, category: Optional[str] = None) -> ParsedMetar:
    """Bundle every displayed field of one METAR.

    ``category`` is the flight category delivered with the bulletin; when it
    is missing the category is derived from the text itself.
    """
    direction, speed, gust = parse_wind(text)
    cond = category if category else flight_category(text)
    return ParsedMetar(
        wind_dir=direction,
        wind_speed=speed,
        wind_gust=gust,
        category=cond,
        color=classify_condition(cond),
        precip=extract_precip(text),
        temperature=extract_temperature(text),
        lightning=has_lightning(text),
    )
