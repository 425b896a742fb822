"""
End-to-end composition of back-to-back clips.

    per-clip telemetry → trim GPSU jumps → repair & sort → merge → bounds

followed, optionally, by writing the output documents and concatenating the
source media in the same order. Nothing here is fatal: an empty batch gives
an empty result and a failed ffmpeg run does not stop the telemetry output.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from gpmf_merge.config import config
from gpmf_merge.errors import EmptyBatch, TranscodeFailure
from gpmf_merge.processing.anomaly import trim_gps_jump
from gpmf_merge.processing.concat_videos import concat_videos
from gpmf_merge.processing.export import write_gpx, write_meta_json, write_track_csv
from gpmf_merge.processing.merge import OffsetStrategy, derive_bounds, merge_clips
from gpmf_merge.processing.sequencer import sequence_clips
from gpmf_merge.processing.telemetry_data import ClipTelemetry, MergedTelemetry

logger = logging.getLogger(__name__)


@dataclass
class CompositionResult:
    merged: MergedTelemetry
    written: list[Path] = field(default_factory=list)
    video_path: Path | None = None
    transcode_error: TranscodeFailure | None = None


def compose_clips(
    clips: Sequence[ClipTelemetry],
    strategy: OffsetStrategy | str | None = None,
) -> MergedTelemetry:
    """Run the full temporal reconciliation over *clips* (any order)."""
    trimmed = [trim_gps_jump(clip) for clip in clips]
    ordered = sequence_clips(trimmed)

    try:
        merged = merge_clips(ordered, strategy)
    except EmptyBatch as exc:
        logger.warning("%s — returning empty telemetry", exc)
        return MergedTelemetry.empty()

    return derive_bounds(merged)


def compose_and_export(
    clips: Sequence[ClipTelemetry],
    tag: str,
    output_dir: Path | None = None,
    strategy: OffsetStrategy | str | None = None,
    concat_output: Path | None = None,
    transcode_timeout: float | None = None,
) -> CompositionResult:
    """Compose *clips* and write ``{tag}_combined_gpmf_*`` documents to *output_dir*.

    If *concat_output* is given the source clips are also joined into one
    video there, in merge order. A :class:`TranscodeFailure` is logged and
    recorded on the result.
    """
    t_total = time.monotonic()
    if output_dir is None:
        output_dir = config.DIR.OUTPUT
    output_dir.mkdir(parents=True, exist_ok=True)

    merged = compose_clips(clips, strategy)
    result = CompositionResult(merged=merged)

    result.written.append(
        write_meta_json(merged, output_dir / f"{tag}_combined_gpmf_meta.json")
    )
    result.written.append(write_gpx(merged, output_dir / f"{tag}_combined_gpmf_gps.gpx"))
    result.written.append(
        write_track_csv(merged, output_dir / f"{tag}_combined_gpmf_gps.csv")
    )

    if concat_output is not None:
        missing = merged.clips_without_path
        if merged.is_empty:
            logger.warning("No source media paths known — skipping video concatenation")
        elif missing:
            # The joined video must cover every merged clip
            logger.warning(
                "No media path for %d of %d clip(s) (%s) — skipping video concatenation",
                len(missing),
                merged.clip_count,
                ", ".join(missing),
            )
        else:
            try:
                result.video_path = concat_videos(
                    merged.source_paths, concat_output, timeout=transcode_timeout
                )
            except TranscodeFailure as exc:
                logger.error("%s", exc)
                result.transcode_error = exc

    logger.info(
        "Combined %d clip(s) — %d files in %.1f s",
        merged.clip_count,
        len(result.written),
        time.monotonic() - t_total,
    )
    return result
