"""
Offset & merge engine.

Places every sequenced clip on one timeline and concatenates its series.
Each clip gets a single *time shift* that is added to its frame timestamps,
to its GPSU epochs and to every GPS fix timestamp.

Two shift strategies exist:

``duration_chain`` (default)
    First clip shift 0; every following clip is shifted so that its first
    frame lands on the last merged frame so far. A clip without frames
    advances the timeline by its GPSU span. For clips whose frames start at
    zero this is the summed duration of the clips before it. Merged frame
    timestamps are gap-free and non-decreasing whatever the camera clocks
    or the clips' own frame origins say.

``absolute_anchor``
    Each clip is shifted by ``capture_start - base_epoch``, base being the
    first clip's start. Gaps between recordings are preserved, but wrong
    capture-start metadata can make the merged series go backwards at a
    clip boundary. That is logged, never repaired by re-sorting samples.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Sequence

import numpy as np

from gpmf_merge.config import config
from gpmf_merge.errors import EmptyBatch
from gpmf_merge.processing.telemetry_data import (
    ClipTelemetry,
    GPSFix,
    MergedTelemetry,
)
from gpmf_merge.processing.timestamps import format_epoch_to_iso, parse_iso_to_epoch
from gpmf_merge.utils import format_duration

logger = logging.getLogger(__name__)


class OffsetStrategy(StrEnum):
    DURATION_CHAIN = "duration_chain"
    ABSOLUTE_ANCHOR = "absolute_anchor"


# ---------------------------------------------------------------------------
# Time shifts
# ---------------------------------------------------------------------------


def clip_duration(clip: ClipTelemetry) -> float:
    """Span of the clip's frame timestamps, falling back to its GPSU span."""
    if clip.frame_timestamps:
        return clip.frame_timestamps[-1] - clip.frame_timestamps[0]
    if clip.gps_epochs:
        return clip.gps_epochs[-1] - clip.gps_epochs[0]
    return 0.0


def compute_time_shifts(
    clips: Sequence[ClipTelemetry], strategy: OffsetStrategy
) -> list[float]:
    """Return one shift (seconds) per clip, in the order given."""
    if not clips:
        return []

    if strategy == OffsetStrategy.ABSOLUTE_ANCHOR:
        base_epoch = parse_iso_to_epoch(clips[0].capture_start)
        return [parse_iso_to_epoch(c.capture_start) - base_epoch for c in clips]

    # Each shift depends on every earlier clip; keep this a sequential loop.
    # accumulated_offset is where the merged timeline currently ends.
    shifts: list[float] = []
    accumulated_offset = 0.0
    for clip in clips:
        frames = clip.frame_timestamps
        if not shifts:
            shift = 0.0
        elif frames:
            shift = accumulated_offset - frames[0]
        else:
            shift = accumulated_offset
        shifts.append(shift)

        if frames:
            accumulated_offset = frames[-1] + shift
        else:
            accumulated_offset += max(clip_duration(clip), 0.0)
    return shifts


def shift_fix(fix: GPSFix, shift: float) -> GPSFix:
    """Move a fix's timestamp by *shift* seconds; fixes without time stay without."""
    if fix.timestamp is None:
        return fix

    epoch = parse_iso_to_epoch(fix.timestamp)
    if epoch <= 0.0:
        return fix.model_copy(update={"timestamp": None})
    return fix.model_copy(update={"timestamp": format_epoch_to_iso(epoch + shift)})


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_clips(
    clips: Sequence[ClipTelemetry],
    strategy: OffsetStrategy | str | None = None,
) -> MergedTelemetry:
    """Concatenate already-sequenced *clips* onto one timeline.

    Parameters
    ----------
    clips:
        Clips in chronological order, as returned by
        :func:`~gpmf_merge.processing.sequencer.sequence_clips`.
    strategy:
        Offset strategy; defaults to ``config.OFFSET_STRATEGY``.

    Returns
    -------
    MergedTelemetry
        ``capture_start``, ``frame_rate`` and ``speed_factor`` come from the
        first clip. Bounds are not derived here (see :func:`derive_bounds`).

    Raises
    ------
    EmptyBatch
        If *clips* is empty.
    """
    if not clips:
        raise EmptyBatch()

    strategy = OffsetStrategy(strategy or config.OFFSET_STRATEGY)
    shifts = compute_time_shifts(clips, strategy)
    first = clips[0]

    frame_parts: list[np.ndarray] = []
    epoch_parts: list[np.ndarray] = []
    fixes: list[GPSFix] = []
    last_frame: float | None = None

    for i, (clip, shift) in enumerate(zip(clips, shifts), start=1):
        logger.info(
            "Clip %d (%s) start=%s shift=%.3f s dur=%s",
            i,
            clip.source_name,
            clip.capture_start or config.UNKNOWN_CAPTURE_START,
            shift,
            format_duration(clip_duration(clip)),
        )

        if clip.frame_rate != first.frame_rate:
            logger.warning(
                "%s: frame rate %.3f differs from first clip (%.3f)",
                clip.source_name,
                clip.frame_rate,
                first.frame_rate,
            )

        frames = np.asarray(clip.frame_timestamps, dtype=np.float64) + shift
        if frames.size:
            if last_frame is not None and frames[0] < last_frame:
                logger.warning(
                    "%s: merged timeline goes back %.3f s at clip boundary "
                    "(capture start metadata is inconsistent)",
                    clip.source_name,
                    last_frame - frames[0],
                )
            last_frame = float(frames[-1])
        frame_parts.append(frames)

        epoch_parts.append(np.asarray(clip.gps_epochs, dtype=np.float64) + shift)
        fixes.extend(shift_fix(fix, shift) for fix in clip.gps_fixes)

    merged = MergedTelemetry(
        frame_timestamps=np.concatenate(frame_parts).tolist(),
        gps_epochs=np.concatenate(epoch_parts).tolist(),
        gps_fixes=fixes,
        frame_rate=first.frame_rate,
        capture_start=first.capture_start,
        speed_factor=first.speed_factor,
        clip_count=len(clips),
        source_names=[c.source_name for c in clips],
        source_paths=[c.source_path for c in clips],
    )
    logger.info(
        "Merged %d clips (%s): %d frames, %d GPSU epochs, %d GPS fixes",
        len(clips),
        strategy,
        len(merged.frame_timestamps),
        len(merged.gps_epochs),
        len(merged.gps_fixes),
    )
    return merged


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------


def derive_bounds(merged: MergedTelemetry) -> MergedTelemetry:
    """Set start/end offsets (ms) from the merged frame timestamps.

    Without frames both bounds stay *None*; GPS data is never used here.
    """
    if not merged.frame_timestamps:
        return merged.model_copy(update={"start_offset_ms": None, "end_offset_ms": None})

    return merged.model_copy(
        update={
            "start_offset_ms": merged.frame_timestamps[0] * 1000.0,
            "end_offset_ms": merged.frame_timestamps[-1] * 1000.0,
        }
    )
