"""Tests for the batch refresh pipeline."""
import json
from unittest.mock import patch

import requests

from wxmap.models.weather import UpdateMessage
from wxmap.services import batch
from wxmap.services.airports import load_airports
from wxmap.services.ingest import StreamIngestor
from wxmap.services.snapshot import read_pireps, read_snapshot
from wxmap.services.store import StationStore

PREAMBLE = "No errors\nNo warnings\n12 ms\ndata source=metars\n2 results\n"

METARS_CSV = PREAMBLE + (
    "raw_text,station_id,observation_time,latitude,longitude,flight_category\n"
    "KORD 191651Z 18012G20KT 10SM FEW250 12/08 A3000,KORD,2026-10-19T16:51:00Z,41.98,-87.9,VFR\n"
    "KMDW 191651Z 09005KT 2SM -RA BR BKN008 M05/M10 A2992,KMDW,2026-10-19T16:51:00Z,41.78,-87.75,IFR\n"
    ",KNUL,2026-10-19T16:51:00Z,41.0,-87.0,VFR\n"
)

TAFS_CSV = PREAMBLE + (
    "raw_text,station_id,issue_time\n"
    "TAF KORD 191720Z 1918/2100 18012KT P6SM SCT250,KORD,2026-10-19T17:20:00Z\n"
    "TAF KCID 191720Z 1918/2018 VRB03KT P6SM SKC,KCID,2026-10-19T17:20:00Z\n"
)

PIREPS_CSV = PREAMBLE + (
    "receipt_time,observation_time,aircraft_ref,latitude,longitude,altitude_ft_msl,raw_text,report_type\n"
    "2026-10-19T16:40:00Z,2026-10-19T16:38:00Z,B737,41.9,-88.2,35000,ORD UA /OV DPA/TM 1638/FL350/TB LGT,PIREP\n"
    "2026-10-19T16:41:00Z,2026-10-19T16:39:00Z,A320,51.47,-0.45,30000,LHR UA /OV LON,PIREP\n"
    "2026-10-19T16:42:00Z,2026-10-19T16:40:00Z,C172,,,5500,UA /OV NOWHERE,PIREP\n"
)


def _write(settings, name, text):
    path = settings.cache_path(name)
    path.write_text(text)
    return path


class TestCacheLoaders:
    def test_header_found_after_preamble(self, settings):
        df = batch.read_cache_csv(_write(settings, "metars.csv", METARS_CSV))
        assert list(df["station_id"]) == ["KORD", "KMDW", "KNUL"]

    def test_no_header(self, settings):
        path = _write(settings, "metars.csv", "No errors\n")
        try:
            batch.read_cache_csv(path)
        except ValueError as e:
            assert "no header" in str(e)
        else:
            raise AssertionError("expected ValueError")

    def test_load_metars(self, settings, store):
        count = batch.load_metars(store, _write(settings, "metars.csv", METARS_CSV))
        assert count == 2
        report = store.get("KORD")
        assert report.category == "VFR"
        assert (report.lat, report.lng) == (41.98, -87.9)
        assert "KNUL" not in store

    def test_load_pireps_region_and_coordinates(self, settings, store):
        count = batch.load_pireps(store, _write(settings, "pireps.csv", PIREPS_CSV), settings.region)
        assert count == 1
        pirep = store.pireps()[0]
        assert pirep.lat == "41.9"
        assert pirep.lng == "-88.2"


class TestStationIds:
    def test_metar_ids_normalized(self, settings, store):
        csv_text = PREAMBLE + (
            "raw_text,station_id,observation_time,latitude,longitude,flight_category\n"
            "PANC 191653Z 36008KT 10SM FEW050 M02/M08 A2990,PANC,2026-10-19T16:53:00Z,61.17,-150.0,VFR\n"
        )
        batch.load_metars(store, _write(settings, "metars.csv", csv_text))
        assert [r.id for r in store.all()] == ["KPANC"]

    def test_batch_metar_and_streamed_taf_share_a_station(self, settings, store):
        csv_text = PREAMBLE + (
            "raw_text,station_id,observation_time,latitude,longitude,flight_category\n"
            "PANC 191653Z 36008KT 10SM FEW050 M02/M08 A2990,PANC,2026-10-19T16:53:00Z,61.17,-150.0,VFR\n"
        )
        batch.load_metars(store, _write(settings, "metars.csv", csv_text))
        ingestor = StreamIngestor(store, settings.snapshot_path, settings.pireps_path)
        ingestor.apply(UpdateMessage(type="TAF", location="PANC", data="191720Z 1918/2018 36010KT P6SM"))

        reports = store.all()
        assert [r.id for r in reports] == ["KPANC"]
        assert reports[0].metar.startswith("PANC 191653Z")
        assert reports[0].taf == "KPANC 191720Z 1918/2018 36010KT P6SM"

    def test_tafs_located_from_airport_list(self, settings, store):
        csv_text = PREAMBLE + (
            "raw_text,station_id,issue_time\n"
            "TAF PHNL 191720Z 1918/2100 06012KT P6SM,PHNL,2026-10-19T17:20:00Z\n"
        )
        batch.load_tafs(store, _write(settings, "tafs.csv", csv_text))
        settings.airports_path.write_text("PHNL,21.32,-157.92,13\n")
        airports, _ = load_airports(settings.airports_path)

        assert batch.locate_stations(store, airports) == 1
        assert store.get("KPHNL").lat == 21.32


def test_locate_stations_from_airports(store):
    from wxmap.models.airport import Airport

    store.upsert_taf("KCID", "TAF KCID")
    store.upsert_metar("KORD", "m", lat=41.98, lng=-87.9)
    airports = [
        Airport(icao="KCID", lat="41.88", lng="-91.71"),
        Airport(icao="KORD", lat="0", lng="0"),
        Airport(icao="KDSM", lat="41.53", lng="-93.66"),
    ]
    assert batch.locate_stations(store, airports) == 1
    assert store.get("KCID").lat == 41.88
    assert store.get("KORD").lat == 41.98
    assert "KDSM" not in store


class TestRunBatch:
    def test_full_refresh(self, settings):
        _write(settings, "metars.csv", METARS_CSV)
        _write(settings, "tafs.csv", TAFS_CSV)
        _write(settings, "pireps.csv", PIREPS_CSV)
        settings.airports_path.write_text("CID,41.88,-91.71,869\n")

        assert batch.run_batch(settings) == 0

        store, problem = read_snapshot(settings.snapshot_path)
        assert problem is None
        assert [r.id for r in store.all()] == ["KCID", "KMDW", "KORD"]
        assert store.get("KORD").metar.startswith("KORD 191651Z")
        assert store.get("KORD").taf.startswith("TAF KORD")
        assert store.get("KCID").lat == 41.88

        pireps, problem = read_pireps(settings.pireps_path)
        assert problem is None
        assert len(pireps) == 1

    def test_missing_file_does_not_stop_others(self, settings):
        _write(settings, "metars.csv", METARS_CSV)
        _write(settings, "pireps.csv", "garbage only\n")

        assert batch.run_batch(settings) == 0

        store, _ = read_snapshot(settings.snapshot_path)
        assert len(store) == 2
        assert store.get("KORD").taf == ""

    def test_fresh_run_replaces_snapshot(self, settings):
        settings.snapshot_path.write_text(json.dumps({"KOLD": {"Metar": "old"}}))
        _write(settings, "metars.csv", METARS_CSV)

        batch.run_batch(settings)

        store, _ = read_snapshot(settings.snapshot_path)
        assert "KOLD" not in store

    def test_repeated_merge_runs_do_not_duplicate_pireps(self, settings):
        settings.merge_snapshot = True
        _write(settings, "pireps.csv", PIREPS_CSV)

        counts = []
        for _ in range(3):
            assert batch.run_batch(settings) == 0
            pireps, problem = read_pireps(settings.pireps_path)
            assert problem is None
            counts.append(len(pireps))

        assert counts == [1, 1, 1]

    def test_merge_keeps_streamed_stations(self, settings):
        settings.merge_snapshot = True
        settings.snapshot_path.write_text(json.dumps({"KORD": {"Winds": "3000 2714"}, "KOLD": {"Metar": "old"}}))
        _write(settings, "metars.csv", METARS_CSV)

        batch.run_batch(settings)

        store, _ = read_snapshot(settings.snapshot_path)
        assert store.get("KOLD").metar == "old"
        assert store.get("KORD").winds == "3000 2714"
        assert store.get("KORD").metar.startswith("KORD 191651Z")

    def test_failed_download_falls_back_to_cached_copy(self, settings):
        settings.download = True
        _write(settings, "metars.csv", METARS_CSV)

        with patch("wxmap.services.batch.requests.get", side_effect=requests.ConnectionError("offline")) as get:
            assert batch.run_batch(settings) == 0

        assert get.call_count == len(batch.CACHE_FILES)
        store, _ = read_snapshot(settings.snapshot_path)
        assert "KORD" in store

    def test_download_writes_cache(self, settings):
        settings.download = True

        class FakeResponse:
            text = METARS_CSV

            def raise_for_status(self):
                pass

        with patch("wxmap.services.batch.requests.get", return_value=FakeResponse()):
            assert batch.run_batch(settings) == 0

        assert settings.cache_path("metars.csv").read_text() == METARS_CSV

    def test_unwritable_snapshot_fails_run(self, settings, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        settings.snapshot_file = "blocker/dump.json"
        assert batch.run_batch(settings) == 1


def test_store_fixture_is_empty(store):
    assert isinstance(store, StationStore)
    assert len(store) == 0
