"""Station snapshot and pirep file persistence.

Writes go to a temporary file in the target directory and are moved into
place with ``os.replace``, so a reader in another process sees either the old
document or the new one. Reads never raise: a missing or damaged file gives
an empty result plus a ``SnapshotError`` describing what was wrong.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from wxmap.models.station import StationReport
from wxmap.models.weather import Pirep
from wxmap.services.store import StationStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class SnapshotError(Exception):
    """A snapshot or pirep file could not be read or written."""

    def __init__(self, path: PathLike, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


def _atomic_write(path: PathLike, document: object):
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise SnapshotError(path, f"write failed: {e}") from e


def _load_json(path: PathLike) -> object:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        raise SnapshotError(path, "file does not exist")
    except OSError as e:
        raise SnapshotError(path, f"read failed: {e}") from e
    if not content.strip():
        raise SnapshotError(path, "file is empty")
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise SnapshotError(path, f"invalid JSON: {e}") from e


def dump_reports(reports: Dict[str, StationReport]) -> Dict[str, dict]:
    return {
        station_id: report.model_dump(mode="json", by_alias=True)
        for station_id, report in sorted(reports.items())
    }


def write_snapshot(store: StationStore, path: PathLike):
    """Persist every station of ``store``. Raises ``SnapshotError`` on I/O failure."""
    reports, _ = store.snapshot()
    _atomic_write(path, dump_reports(reports))
    logger.info(f"💾 Saved {len(reports)} station reports to {path}")


def read_snapshot(path: PathLike, max_pireps: Optional[int] = None) -> Tuple[StationStore, Optional[SnapshotError]]:
    """Load a snapshot into a fresh store.

    Returns the store and, when the file was unusable, the condition. The
    store is empty in that case.
    """
    try:
        document = _load_json(path)
        if not isinstance(document, dict):
            raise SnapshotError(path, "expected a JSON object keyed by station")
        reports = {}
        for station_id, fields in document.items():
            if not isinstance(fields, dict):
                raise SnapshotError(path, f"entry {station_id!r} is not an object")
            fields = dict(fields)
            fields.setdefault("Location", station_id)
            reports[station_id] = StationReport.model_validate(fields)
    except SnapshotError as e:
        return StationStore(max_pireps=max_pireps), e
    except ValidationError as e:
        return StationStore(max_pireps=max_pireps), SnapshotError(path, f"invalid station entry: {e}")

    logger.info(f"📂 Read in {len(reports)} station reports from {path}")
    return StationStore(reports, max_pireps=max_pireps), None


def write_pireps(pireps: Iterable[Pirep], path: PathLike):
    """Persist the pirep list as a JSON array. Raises ``SnapshotError`` on I/O failure."""
    document = [p.model_dump(by_alias=True, exclude_none=True) for p in pireps]
    _atomic_write(path, document)
    logger.info(f"💾 Saved {len(document)} pireps to {path}")


def read_pireps(path: PathLike) -> Tuple[List[Pirep], Optional[SnapshotError]]:
    try:
        document = _load_json(path)
        if not isinstance(document, list):
            raise SnapshotError(path, "expected a JSON array of pireps")
        # Older pirep files close the array with an empty object
        pireps = [Pirep.model_validate(item) for item in document if item]
    except SnapshotError as e:
        return [], e
    except ValidationError as e:
        return [], SnapshotError(path, f"invalid pirep entry: {e}")
    return pireps, None


def save_store(store: StationStore, snapshot_path: PathLike, pireps_path: PathLike):
    """Write both files from one consistent copy of the store."""
    reports, pireps = store.snapshot()
    _atomic_write(snapshot_path, dump_reports(reports))
    write_pireps(pireps, pireps_path)
    logger.info(f"💾 Saved {len(reports)} station reports to {snapshot_path}")


def load_store(snapshot_path: PathLike, pireps_path: PathLike,
               max_pireps: Optional[int] = None) -> Tuple[StationStore, List[SnapshotError]]:
    """Read both files into one store, collecting any conditions met on the way."""
    problems = []
    store, problem = read_snapshot(snapshot_path, max_pireps=max_pireps)
    if problem:
        problems.append(problem)
    pireps, problem = read_pireps(pireps_path)
    if problem:
        problems.append(problem)
    for pirep in pireps:
        store.add_pirep(pirep)
    return store, problems
