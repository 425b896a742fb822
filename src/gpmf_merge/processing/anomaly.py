"""
GPS clock anomalies.

Two failure modes of the GoPro GPS receiver are handled here:

1. **GPSU jumps.** Before the receiver has a stable lock its clock may be
   anchored at a default date (often somewhere in 2015). Once lock is
   acquired the GPSU readings leap forward by years, e.g.

       [1.42e9, 1.43e9, 1.73e9, 1.731e9]
                        ^ jump

   Everything before the jump is discarded and the first good reading
   becomes the clip's capture start.

2. **Static pre-lock altitude.** Early GPS5 samples repeat a bogus altitude
   (~1902 m) until the fix settles. :class:`GPSLockDetector` drops samples
   until consecutive elevations start to move.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from gpmf_merge.config import config
from gpmf_merge.processing.telemetry_data import ClipTelemetry
from gpmf_merge.processing.timestamps import format_epoch_to_iso

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# GPSU jump trimming
# ---------------------------------------------------------------------------


def find_jump_index(
    gps_epochs: Sequence[float], threshold: float | None = None
) -> int | None:
    """Return the index *j* of the first reading that jumps forward past *threshold*.

    Only positive deltas count; a backward step is never treated as a jump.
    """
    if threshold is None:
        threshold = config.JUMP_THRESHOLD_S
    if len(gps_epochs) < 2:
        return None

    deltas = np.diff(np.asarray(gps_epochs, dtype=np.float64))
    hits = np.flatnonzero(deltas > threshold)
    if hits.size == 0:
        return None
    return int(hits[0]) + 1


def trim_gps_jump(
    clip: ClipTelemetry, threshold: float | None = None
) -> ClipTelemetry:
    """Drop the pre-lock prefix of *clip*'s GPS data if its GPSU clock jumps.

    Returns a copy with ``gps_epochs[:j]`` and the matching leading fixes
    removed and ``capture_start`` reset to the first good epoch. Frame
    timestamps and frame rate are left alone. Clips without a jump (or
    without GPS epochs) come back unchanged.
    """
    if not clip.gps_epochs:
        logger.debug("%s: no GPSU epochs, nothing to trim", clip.source_name)
        return clip

    jump_index = find_jump_index(clip.gps_epochs, threshold)
    if jump_index is None:
        return clip

    good_epoch = clip.gps_epochs[jump_index]
    delta = good_epoch - clip.gps_epochs[jump_index - 1]
    capture_start = format_epoch_to_iso(good_epoch)
    fix_cut = min(jump_index, len(clip.gps_fixes))

    logger.warning(
        "%s: detected large GPSU jump (%.1f h). Trimming first %d samples "
        "and resetting capture start to %s",
        clip.source_name,
        delta / 3600.0,
        jump_index,
        capture_start,
    )

    return clip.model_copy(
        update={
            "gps_epochs": clip.gps_epochs[jump_index:],
            "gps_fixes": clip.gps_fixes[fix_cut:],
            "capture_start": capture_start,
        }
    )


# ---------------------------------------------------------------------------
# GPS lock detection
# ---------------------------------------------------------------------------


@dataclass
class GPSLockDetector:
    """One-way ``locked = False → True`` state machine over GPS5 elevations.

    Create one detector per clip. Until lock, every sample is rejected and
    becomes the new reference elevation; the first sample differing from the
    reference by more than ``elevation_delta`` flips the detector to locked
    and is itself accepted, as is everything after it.
    """

    elevation_delta: float = config.GPS_LOCK_ELEVATION_DELTA_M
    last_elevation: float | None = None
    locked: bool = False
    rejected: int = 0

    def reset_reference(self, elevation: float) -> None:
        """Re-anchor the comparison elevation (start of a clip's first payload)."""
        if not self.locked:
            self.last_elevation = elevation

    def accept(self, elevation: float) -> bool:
        if self.locked:
            return True

        if (
            self.last_elevation is not None
            and abs(elevation - self.last_elevation) > self.elevation_delta
        ):
            self.locked = True
            logger.debug(
                "GPS lock detected after %d samples (alt=%.1f)",
                self.rejected,
                elevation,
            )
            return True

        self.last_elevation = elevation
        self.rejected += 1
        return False
