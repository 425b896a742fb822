import logging
import os

import numpy as np
import pytest

from gpmf_merge.processing.clip_builder import (
    DecodedPayload,
    build_clip_telemetry,
    estimate_gps_rate,
    place_samples,
)


def gps5(*elevations: float) -> np.ndarray:
    rows = [
        [52.27 + i * 1e-4, 20.90 + i * 1e-4, ele, 0.0, 0.0]
        for i, ele in enumerate(elevations)
    ]
    return np.array(rows, dtype=np.float64)


@pytest.fixture
def payloads():
    return [
        DecodedPayload(0.0, "240101000000.000", 2.0, gps5(1902.0, 1902.0)),
        DecodedPayload(1.001, "240101000001.000", 2.0, gps5(1910.0, 1911.0)),
        DecodedPayload(2.002, "240101000002.000", 2.0, gps5(1912.0, 1913.0)),
    ]


def test_build_clip_telemetry(payloads, tmp_path):
    clip = build_clip_telemetry(
        payloads, tmp_path / "GX010001.MP4", frame_rate=29.97, speed_factor=10
    )

    assert clip.source_name == "GX010001.MP4"
    assert clip.source_path == tmp_path / "GX010001.MP4"
    assert clip.frame_rate == 29.97
    assert clip.speed_factor == 10
    assert clip.frame_timestamps == pytest.approx([0.0, 10.01, 20.02])
    assert clip.gps_epochs == [1704067200.0, 1704067201.0, 1704067202.0]
    assert clip.capture_start == "2024-01-01T00:00:00.000Z"

    # the static-altitude samples of the first payload precede GPS lock
    assert [f.elevation for f in clip.gps_fixes] == [1910.0, 1911.0, 1912.0, 1913.0]
    assert [f.timestamp for f in clip.gps_fixes] == [
        "2024-01-01T00:00:01.000Z",
        "2024-01-01T00:00:01.500Z",
        "2024-01-01T00:00:02.000Z",
        "2024-01-01T00:00:02.500Z",
    ]


def test_default_speed_factor(payloads, tmp_path):
    clip = build_clip_telemetry(payloads, tmp_path / "GX010001.MP4", frame_rate=30.0)
    assert clip.speed_factor == 10
    assert clip.frame_timestamps[1] == pytest.approx(10.01)


def test_malformed_gpsu_is_discarded(tmp_path, caplog):
    payloads = [
        DecodedPayload(0.0, "garbage", 18.0, gps5(100.0, 105.0)),
        DecodedPayload(1.0, None, 18.0, gps5(106.0)),
    ]
    with caplog.at_level(logging.WARNING):
        clip = build_clip_telemetry(payloads, tmp_path / "missing.MP4", frame_rate=30.0)

    assert clip.gps_epochs == []
    assert [f.timestamp for f in clip.gps_fixes] == [None, None]
    assert clip.capture_start is None
    assert "Malformed capture timestamp" in caplog.text


def test_file_time_fallback(tmp_path):
    source = tmp_path / "GX010002.MP4"
    source.write_bytes(b"")
    os.utime(source, (1700000000, 1700000000))

    clip = build_clip_telemetry([DecodedPayload(0.0)], source, frame_rate=30.0)

    assert clip.capture_start == "2023-11-14T22:13:20.000Z"
    assert clip.frame_timestamps == [0.0]
    assert clip.gps_fixes == []


def test_payloads_without_gps(tmp_path):
    payloads = [DecodedPayload(float(i), gps5=np.empty((0, 5))) for i in range(3)]
    clip = build_clip_telemetry(payloads, tmp_path / "x.MP4", frame_rate=30.0, speed_factor=1)
    assert clip.frame_timestamps == [0.0, 1.0, 2.0]
    assert clip.gps_fixes == []


def test_estimate_gps_rate():
    assert estimate_gps_rate(10.0, [], 0) == 10.0
    assert estimate_gps_rate(None, [100.0, 102.0], 36) == 18.0
    assert estimate_gps_rate(0.0, [100.0, 104.0], 40) == 10.0
    assert estimate_gps_rate(None, [100.0], 10) == 18.0
    assert estimate_gps_rate(None, [100.0, 100.0], 10) == 18.0


def test_place_samples():
    assert place_samples(1704067200.0, 4.0, 3) == [
        "2024-01-01T00:00:00.000Z",
        "2024-01-01T00:00:00.250Z",
        "2024-01-01T00:00:00.500Z",
    ]
    assert place_samples(0.0, 18.0, 2) == [None, None]
    assert place_samples(1704067200.0, 0.0, 1) == [None]
