"""
Assemble a :class:`ClipTelemetry` from decoded GPMF payloads.

Container parsing and KLV decoding happen upstream; this module receives
one :class:`DecodedPayload` per MP4 metadata packet and turns the sequence
into the per-clip record the merge pipeline consumes.

Per payload:

- The payload start time is scaled by the TimeWarp ``speed_factor`` and
  becomes one frame timestamp.
- A ``GPSU`` reference, if present and well formed, is appended to
  ``gps_epochs``. Malformed references are discarded.
- GPS5 samples are placed linearly after the payload's GPSU time at the
  stream's sampling rate, and filtered through one
  :class:`~gpmf_merge.processing.anomaly.GPSLockDetector` per clip.

The capture start is the first GPSU time, else the file's modification
time, else unknown.
"""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from gpmf_merge.config import config
from gpmf_merge.errors import MalformedTimestamp
from gpmf_merge.processing.anomaly import GPSLockDetector
from gpmf_merge.processing.telemetry_data import ClipTelemetry, GPSFix
from gpmf_merge.processing.timestamps import (
    format_epoch_to_iso,
    parse_capture_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass
class DecodedPayload:
    """GPS-relevant content of one GPMF payload (≈1 s of data)."""

    pts_time: float  # seconds — MP4 track PTS of the payload start
    gpsu: str | None = None  # raw GPSU string, e.g. "250508104822.180"
    gps_rate_hz: float | None = None  # sampling rate reported by the stream
    gps5: np.ndarray = field(
        default_factory=lambda: np.empty((0, 3))
    )  # shape (N, C>=3) — lat, lon, ele after SCAL


def estimate_gps_rate(
    reported_hz: float | None, gps_epochs: Sequence[float], sample_count: int
) -> float:
    """Return the GPS5 sampling rate to use for linear placement.

    Order of preference: the reported rate, samples collected so far over
    the elapsed GPSU time, ``config.DEFAULT_GPS_RATE_HZ``.
    """
    if reported_hz is not None and reported_hz > 0.0:
        return reported_hz

    if len(gps_epochs) >= 2:
        span = gps_epochs[-1] - gps_epochs[0]
        if span > 0.0 and sample_count > 0:
            return sample_count / span

    return config.DEFAULT_GPS_RATE_HZ


def place_samples(gpsu_epoch: float, rate_hz: float, count: int) -> list[str | None]:
    """ISO timestamps for *count* samples starting at *gpsu_epoch*.

    Without a usable epoch or rate every sample is left untimed.
    """
    if gpsu_epoch <= 0.0 or rate_hz <= 0.0:
        return [None] * count
    interval = 1.0 / rate_hz
    return [format_epoch_to_iso(gpsu_epoch + s * interval) for s in range(count)]


def _file_time_iso(path: pathlib.Path) -> str | None:
    try:
        mtime = path.stat().st_mtime
    except OSError as exc:
        logger.warning("Could not read modification time of %s: %s", path, exc)
        return None
    return format_epoch_to_iso(mtime)


def build_clip_telemetry(
    payloads: Sequence[DecodedPayload],
    source: pathlib.Path | str,
    frame_rate: float,
    speed_factor: int | None = None,
) -> ClipTelemetry:
    """Build the per-clip telemetry record for *source*.

    Parameters
    ----------
    payloads:
        Decoded payloads in track order.
    source:
        Path of the originating media file.
    frame_rate:
        Video frame rate reported by the container.
    speed_factor:
        TimeWarp factor; defaults to ``config.SPEED_FACTOR``.
    """
    if speed_factor is None:
        speed_factor = config.SPEED_FACTOR

    source_path = pathlib.Path(source).absolute()
    name = source_path.name

    frame_timestamps: list[float] = []
    gps_epochs: list[float] = []
    fixes: list[GPSFix] = []
    lock = GPSLockDetector()

    for index, payload in enumerate(payloads):
        frame_timestamps.append(payload.pts_time * speed_factor)

        gpsu_epoch = 0.0
        if payload.gpsu is not None:
            try:
                gpsu_epoch = parse_capture_timestamp(payload.gpsu)
            except MalformedTimestamp as exc:
                logger.warning("%s: payload %d: %s", name, index, exc)
            if gpsu_epoch > 0.0:
                gps_epochs.append(gpsu_epoch)

        samples = np.asarray(payload.gps5, dtype=np.float64)
        if samples.ndim != 2 or samples.shape[0] == 0 or samples.shape[1] < 3:
            continue

        rate = estimate_gps_rate(payload.gps_rate_hz, gps_epochs, len(fixes))
        times = place_samples(gpsu_epoch, rate, samples.shape[0])
        if index == 0:
            lock.reset_reference(float(samples[0, 2]))

        for (lat, lon, ele), timestamp in zip(samples[:, :3], times):
            if not lock.accept(float(ele)):
                continue
            fixes.append(
                GPSFix(
                    latitude=float(lat),
                    longitude=float(lon),
                    elevation=float(ele),
                    timestamp=timestamp,
                )
            )

    if lock.rejected:
        logger.info(
            "%s: discarded %d GPS samples before lock", name, lock.rejected
        )

    if gps_epochs:
        capture_start = format_epoch_to_iso(gps_epochs[0])
    else:
        capture_start = _file_time_iso(source_path)
        logger.warning(
            "%s: no GPSU reference, falling back to file time %s",
            name,
            capture_start or config.UNKNOWN_CAPTURE_START,
        )

    logger.info(
        "%s: %d payloads (real-time seconds), %d GPSU epochs, %d GPS samples",
        name,
        len(frame_timestamps),
        len(gps_epochs),
        len(fixes),
    )

    return ClipTelemetry(
        frame_timestamps=frame_timestamps,
        gps_epochs=gps_epochs,
        gps_fixes=fixes,
        frame_rate=frame_rate,
        capture_start=capture_start,
        speed_factor=speed_factor,
        source_name=name,
        source_path=source_path,
    )
