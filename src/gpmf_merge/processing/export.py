"""
Serialization of merged telemetry.

Three documents are produced per composition:

1. `{tag}_combined_gpmf_meta.json` — timeline metadata
2. `{tag}_combined_gpmf_gps.gpx` — GPS track, one point per fix
3. `{tag}_combined_gpmf_gps.csv` — the same track as a flat table

#### Metadata JSON

| Key | Description |
|-----|-------------|
| `creation_time` | capture start of the first clip; `"1970-01-01T00:00:00"` when unknown |
| `frame_rate` | frames per second of the first clip |
| `pts_times` | merged frame timestamps, seconds |
| `gpsu_epochs` | merged GPSU epochs, seconds |
| `gps_point_count` | number of GPS fixes |
| `speed_factor` | TimeWarp scale applied to `pts_times` |
| `start_ms` / `end_ms` | first / last merged frame timestamp in ms, `null` without frames |
| `clip_count` | number of merged clips |
| `source_files` | one entry per merged clip, in merge order: media file name, else the clip's `source_name` |

#### Track CSV

| Column | Units | Description |
|--------|-------|-------------|
| `timestamp_utc` | — | ISO-8601 fix time, empty when unknown |
| `time_epoch_s` | s | fix time as epoch seconds, NaN when unknown |
| `gps_lat_deg` | deg | latitude WGS 84 |
| `gps_lon_deg` | deg | longitude WGS 84 |
| `gps_alt_m` | m | altitude WGS 84 |
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import gpxpy.gpx
import numpy as np
import pandas as pd
import pandera.pandas as pa

from gpmf_merge.processing.telemetry_data import MergedTelemetry
from gpmf_merge.processing.timestamps import iso_to_datetime, parse_iso_to_epoch

logger = logging.getLogger(__name__)

GPX_CREATOR = "gpmf_merge"

# ---------------------------------------------------------------------------
# Track dataframe schema
# ---------------------------------------------------------------------------

track_schema = pa.DataFrameSchema(
    columns={
        "time_epoch_s": pa.Column(float, nullable=True),
        "gps_lat_deg": pa.Column(float, nullable=False),
        "gps_lon_deg": pa.Column(float, nullable=False),
        "gps_alt_m": pa.Column(float, nullable=False),
    },
    # timestamp_utc is carried as-is next to the validated numeric columns
    strict=False,
    coerce=True,
)


# ---------------------------------------------------------------------------
# Metadata JSON
# ---------------------------------------------------------------------------


def build_metadata(merged: MergedTelemetry) -> dict[str, Any]:
    creation_time = merged.model_dump(mode="json", include={"capture_start"})[
        "capture_start"
    ]
    return {
        "creation_time": creation_time,
        "frame_rate": merged.frame_rate,
        "pts_times": merged.frame_timestamps,
        "gpsu_epochs": merged.gps_epochs,
        "gps_point_count": len(merged.gps_fixes),
        "speed_factor": merged.speed_factor,
        "start_ms": merged.start_offset_ms,
        "end_ms": merged.end_offset_ms,
        "clip_count": merged.clip_count,
        "source_files": [
            path.name if path is not None else name
            for name, path in zip(merged.source_names, merged.source_paths)
        ],
    }


def write_meta_json(merged: MergedTelemetry, path: Path) -> Path:
    path.write_text(json.dumps(build_metadata(merged), indent=2) + "\n")
    logger.info("Wrote JSON metadata: %s", path.name)
    return path


# ---------------------------------------------------------------------------
# GPX
# ---------------------------------------------------------------------------


def build_gpx(merged: MergedTelemetry) -> gpxpy.gpx.GPX:
    """One track with a single segment; untimed fixes get no ``<time>``."""
    gpx = gpxpy.gpx.GPX()
    gpx.creator = GPX_CREATOR

    track = gpxpy.gpx.GPXTrack()
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)

    for fix in merged.gps_fixes:
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                fix.latitude,
                fix.longitude,
                elevation=fix.elevation,
                time=iso_to_datetime(fix.timestamp),
            )
        )
    return gpx


def write_gpx(merged: MergedTelemetry, path: Path) -> Path:
    path.write_text(build_gpx(merged).to_xml(version="1.1"), encoding="utf-8")
    logger.info("Wrote GPX: %s (%d points)", path.name, len(merged.gps_fixes))
    return path


# ---------------------------------------------------------------------------
# Track CSV
# ---------------------------------------------------------------------------


def track_dataframe(merged: MergedTelemetry) -> pd.DataFrame:
    fixes = merged.gps_fixes
    df = pd.DataFrame(
        {
            "timestamp_utc": [f.timestamp for f in fixes],
            "time_epoch_s": [
                parse_iso_to_epoch(f.timestamp) if f.timestamp else np.nan
                for f in fixes
            ],
            "gps_lat_deg": [f.latitude for f in fixes],
            "gps_lon_deg": [f.longitude for f in fixes],
            "gps_alt_m": [f.elevation for f in fixes],
        }
    )
    return track_schema.validate(df)


def write_track_csv(merged: MergedTelemetry, path: Path) -> Path:
    df = track_dataframe(merged)
    df.to_csv(path, index=False)
    logger.info("Wrote track CSV: %s (%d rows)", path.name, len(df))
    return path
