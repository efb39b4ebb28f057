import pytest

from wxmap.config import Settings
from wxmap.services.store import StationStore



@pytest.fixture
def store():
    return StationStore()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        snapshot_file="dump.json",
        pireps_file="pireps.json",
        airports_file="airports.txt",
        checkpoint_seconds=10,
        max_pireps=100,
        download=False,
        merge_snapshot=False,
    )
