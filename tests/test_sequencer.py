import pytest

from gpmf_merge.processing.sequencer import repair_capture_start, sequence_clips
from gpmf_merge.processing.timestamps import format_epoch_to_iso


def test_repair_fills_blank_start_from_gps(make_clip):
    clip = make_clip(capture_start="", gps_epochs=[1700000000.0])
    repaired = repair_capture_start(clip)
    assert repaired.capture_start == format_epoch_to_iso(1700000000.0)


def test_repair_replaces_start_far_from_gps_time(make_clip):
    clip = make_clip(capture_start="2015-01-01T00:00:00Z", gps_epochs=[1700000000.0])
    repaired = repair_capture_start(clip)
    assert repaired.capture_start == "2023-11-14T22:13:20.000Z"


def test_repair_keeps_plausible_start(make_clip):
    clip = make_clip(capture_start="2023-11-14T20:00:00Z", gps_epochs=[1700000000.0])
    assert repair_capture_start(clip) is clip


def test_repair_keeps_start_without_gps(make_clip):
    clip = make_clip(capture_start="2024-01-01T00:00:00Z")
    assert repair_capture_start(clip) is clip


def test_repair_unknown_without_gps(make_clip):
    clip = make_clip(capture_start="garbage")
    repaired = repair_capture_start(clip)
    assert repaired.capture_start is None
    assert repaired.model_dump(mode="json")["capture_start"] == "1970-01-01T00:00:00"


def test_repair_tolerance_override(make_clip):
    clip = make_clip(capture_start="2023-11-14T20:00:00Z", gps_epochs=[1700000000.0])
    repaired = repair_capture_start(clip, tolerance_s=60.0)
    assert repaired.capture_start == "2023-11-14T22:13:20.000Z"


def test_sequence_orders_by_start_not_by_name(make_clip):
    late = make_clip(source_name="A.MP4", capture_start="2024-01-01T01:00:00Z")
    early = make_clip(source_name="B.MP4", capture_start="2024-01-01T00:00:00Z")
    assert [c.source_name for c in sequence_clips([late, early])] == ["B.MP4", "A.MP4"]


@pytest.mark.parametrize("reverse", [False, True])
def test_sequence_tie_break_by_source_name(make_clip, reverse):
    clips = [
        make_clip(source_name="GX020001.MP4"),
        make_clip(source_name="GX010001.MP4"),
        make_clip(source_name="GX030001.MP4"),
    ]
    if reverse:
        clips.reverse()
    ordered = sequence_clips(clips)
    assert [c.source_name for c in ordered] == [
        "GX010001.MP4",
        "GX020001.MP4",
        "GX030001.MP4",
    ]


def test_unknown_starts_sort_first_by_name(make_clip):
    known = make_clip(source_name="A.MP4", capture_start="2024-01-01T00:00:00Z")
    unknown_b = make_clip(source_name="C.MP4", capture_start=None)
    unknown_a = make_clip(source_name="B.MP4", capture_start="not a time")
    ordered = sequence_clips([known, unknown_b, unknown_a])
    assert [c.source_name for c in ordered] == ["B.MP4", "C.MP4", "A.MP4"]


def test_sequence_repairs_before_sorting(make_clip):
    # mis-tagged far in the past, but GPS says it was recorded last
    mistagged = make_clip(
        source_name="A.MP4",
        capture_start="2015-01-01T00:00:00Z",
        gps_epochs=[1704070800.0],
    )
    first = make_clip(source_name="B.MP4", capture_start="2024-01-01T00:00:00Z")
    ordered = sequence_clips([mistagged, first])
    assert [c.source_name for c in ordered] == ["B.MP4", "A.MP4"]
    assert ordered[1].capture_start == "2024-01-01T01:00:00.000Z"
