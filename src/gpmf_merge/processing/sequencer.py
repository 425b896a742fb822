"""Chronological ordering of clips by their (validated) capture start."""

from __future__ import annotations

import logging
from typing import Iterable

from gpmf_merge.config import config
from gpmf_merge.processing.telemetry_data import ClipTelemetry
from gpmf_merge.processing.timestamps import format_epoch_to_iso, parse_iso_to_epoch

logger = logging.getLogger(__name__)


def repair_capture_start(
    clip: ClipTelemetry, tolerance_s: float | None = None
) -> ClipTelemetry:
    """Replace a missing or implausible ``capture_start`` with the first GPSU time.

    The declared start is rejected when it does not parse, or when it
    disagrees with the clip's first GPS epoch by more than *tolerance_s*
    (365 days by default). Without any GPS epoch the start becomes unknown.
    """
    if tolerance_s is None:
        tolerance_s = config.CAPTURE_START_TOLERANCE_S

    start_epoch = parse_iso_to_epoch(clip.capture_start)
    gps_epoch = clip.first_gps_epoch

    if start_epoch == 0.0:
        reason = "unparseable"
    elif gps_epoch is not None and abs(start_epoch - gps_epoch) > tolerance_s:
        reason = f"{abs(start_epoch - gps_epoch) / 86400.0:.0f} days off GPS time"
    else:
        return clip

    repaired = format_epoch_to_iso(gps_epoch) if gps_epoch is not None else None
    logger.warning(
        "%s: capture start %r is %s, using %s",
        clip.source_name,
        clip.capture_start,
        reason,
        repaired or config.UNKNOWN_CAPTURE_START,
    )
    return clip.model_copy(update={"capture_start": repaired})


def sequence_key(clip: ClipTelemetry) -> tuple[float, str]:
    return parse_iso_to_epoch(clip.capture_start), clip.source_name


def sequence_clips(clips: Iterable[ClipTelemetry]) -> list[ClipTelemetry]:
    """Repair every clip's capture start, then sort ascending by it.

    Ties (including several unknown starts, which all sort first) are
    broken by ``source_name``.
    """
    repaired = [repair_capture_start(clip) for clip in clips]
    ordered = sorted(repaired, key=sequence_key)

    for position, clip in enumerate(ordered, start=1):
        logger.debug(
            "  #%d  %-24s  start=%s",
            position,
            clip.source_name,
            clip.capture_start or config.UNKNOWN_CAPTURE_START,
        )
    return ordered
