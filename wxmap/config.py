import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# aviationweather.gov bulk caches
METARS_URL = "https://aviationweather.gov/data/cache/metars.cache.csv"
TAFS_URL = "https://aviationweather.gov/data/cache/tafs.cache.csv"
PIREPS_URL = "https://aviationweather.gov/data/cache/aircraftreports.cache.csv"

# Region kept from the airport reference list and the pirep cache (CONUS + Alaska)
REGION_LAT_MIN = 20.0001576517236
REGION_LAT_MAX = 55.4189882586259
REGION_LNG_MIN = -179.0008962332189
REGION_LNG_MAX = -53.7449437099231


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _data_dir() -> Path:
    return Path(os.getenv("WXMAP_DATA_DIR", "."))


@dataclass
class Settings:
    data_dir: Path = field(default_factory=_data_dir)
    snapshot_file: str = field(default_factory=lambda: os.getenv("WXMAP_SNAPSHOT_FILE", "dump.json"))
    pireps_file: str = field(default_factory=lambda: os.getenv("WXMAP_PIREPS_FILE", "pireps.json"))
    airports_file: str = field(default_factory=lambda: os.getenv("WXMAP_AIRPORTS_FILE", "airports.txt"))
    feed_url: str = field(default_factory=lambda: os.getenv("WXMAP_FEED_URL", "ws://192.168.1.8/weather"))
    checkpoint_seconds: float = field(default_factory=lambda: float(os.getenv("WXMAP_CHECKPOINT_SECONDS", "10")))
    max_pireps: int = field(default_factory=lambda: int(os.getenv("WXMAP_MAX_PIREPS", "5000")))
    download: bool = field(default_factory=lambda: _env_bool("WXMAP_DOWNLOAD"))
    merge_snapshot: bool = field(default_factory=lambda: _env_bool("WXMAP_MERGE_SNAPSHOT"))
    log_level: str = field(default_factory=lambda: os.getenv("WXMAP_LOG_LEVEL", "INFO"))
    region: Tuple[float, float, float, float] = (REGION_LAT_MIN, REGION_LAT_MAX, REGION_LNG_MIN, REGION_LNG_MAX)

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / self.snapshot_file

    @property
    def pireps_path(self) -> Path:
        return self.data_dir / self.pireps_file

    @property
    def airports_path(self) -> Path:
        return self.data_dir / self.airports_file

    def cache_path(self, name: str) -> Path:
        """Local path of a downloaded bulk cache (metars.csv, tafs.csv, pireps.csv)."""
        return self.data_dir / name


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
