import json
import math

import gpxpy

from gpmf_merge.processing.export import (
    build_gpx,
    build_metadata,
    track_dataframe,
    write_gpx,
    write_meta_json,
)
from gpmf_merge.processing.telemetry_data import GPSFix, MergedTelemetry


def merged_fixture(capture_start="2024-01-01T00:00:00.000Z"):
    return MergedTelemetry(
        frame_timestamps=[0.0, 1.0, 2.0],
        gps_epochs=[1704067200.0],
        gps_fixes=[
            GPSFix(latitude=52.1, longitude=20.9, elevation=120.0,
                   timestamp="2024-01-01T00:00:00.500Z"),
            GPSFix(latitude=52.2, longitude=21.0, elevation=121.5),
        ],
        frame_rate=29.97,
        capture_start=capture_start,
        speed_factor=10,
        clip_count=1,
        start_offset_ms=0.0,
        end_offset_ms=2000.0,
    )


def test_build_metadata():
    meta = build_metadata(merged_fixture())
    assert meta["creation_time"] == "2024-01-01T00:00:00.000Z"
    assert meta["frame_rate"] == 29.97
    assert meta["pts_times"] == [0.0, 1.0, 2.0]
    assert meta["gpsu_epochs"] == [1704067200.0]
    assert meta["gps_point_count"] == 2
    assert meta["speed_factor"] == 10
    assert meta["end_ms"] == 2000.0


def test_unknown_capture_start_is_written_as_sentinel(tmp_path):
    path = write_meta_json(merged_fixture(capture_start=None), tmp_path / "meta.json")
    assert json.loads(path.read_text())["creation_time"] == "1970-01-01T00:00:00"


def test_gpx_round_trip(tmp_path):
    path = write_gpx(merged_fixture(), tmp_path / "track.gpx")
    gpx = gpxpy.parse(path.read_text())

    points = gpx.tracks[0].segments[0].points
    assert len(points) == 2
    assert points[0].latitude == 52.1
    assert points[0].elevation == 120.0
    assert points[0].time.timestamp() == 1704067200.5
    assert points[1].time is None


def test_build_gpx_empty():
    gpx = build_gpx(MergedTelemetry.empty())
    assert gpx.tracks[0].segments[0].points == []


def test_track_dataframe():
    df = track_dataframe(merged_fixture())
    assert list(df.columns) == [
        "timestamp_utc", "time_epoch_s", "gps_lat_deg", "gps_lon_deg", "gps_alt_m",
    ]
    assert df["time_epoch_s"].iloc[0] == 1704067200.5
    assert math.isnan(df["time_epoch_s"].iloc[1])
    assert df["gps_alt_m"].tolist() == [120.0, 121.5]
