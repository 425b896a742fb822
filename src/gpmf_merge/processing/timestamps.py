"""
Timestamp codec for GoPro telemetry.

Three representations are in play:

- **GPSU strings** — the compact digit encoding found in the GPMF ``GPSU``
  stream, either ``YYMMDDhhmmss.sss`` (e.g. ``"250508104822.180"``) or the
  long form ``YYYYMMDDhhmmss.sss``.
- **Epoch seconds** — ``float`` with millisecond resolution, always UTC.
- **ISO-8601 strings** — ``YYYY-MM-DDThh:mm:ss.mmmZ`` on output; on input
  only the ``YYYY-MM-DDThh:mm:ss`` prefix is required.

Everything here is pure. The lenient ISO parser returns ``0.0`` for unknown
times, which downstream stages treat as "sorts first".
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta, timezone

from gpmf_merge.errors import MalformedTimestamp, TimestampParseFailure

logger = logging.getLogger(__name__)

EPOCH_ZERO_ISO = "1970-01-01T00:00:00.000Z"

_NON_TIMESTAMP_CHARS = re.compile(r"[^0-9.]")
_LEADING_DIGITS = re.compile(r"\d*")
_ISO_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
)


def _millis(fraction: str) -> int:
    """Truncate or right-pad a fractional-second digit string to milliseconds."""
    digits = _LEADING_DIGITS.match(fraction).group()
    return int(digits[:3].ljust(3, "0"))


def _utc_epoch(
    raw: str, year: int, month: int, day: int, hour: int, minute: int, second: int
) -> float:
    try:
        dt = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError as exc:
        raise MalformedTimestamp(raw, str(exc)) from exc
    return dt.timestamp()


# ---------------------------------------------------------------------------
# GPSU → epoch
# ---------------------------------------------------------------------------


def parse_capture_timestamp(raw: str) -> float:
    """Decode a GPSU-style timestamp into epoch seconds.

    Parameters
    ----------
    raw:
        ``YYMMDDhhmmss[.fff]`` or ``YYYYMMDDhhmmss[.fff]``. Any character
        other than digits and dots is stripped first, so NUL padding and
        stray whitespace from the GPMF payload are harmless.

    Returns
    -------
    float
        UTC epoch seconds, with the fraction truncated to milliseconds.

    Raises
    ------
    MalformedTimestamp
        If the integer part is not 12 or 14 digits long, or the fields do
        not form a valid calendar date and time.
    """
    cleaned = _NON_TIMESTAMP_CHARS.sub("", raw)
    int_part, _, fraction = cleaned.partition(".")

    if len(int_part) == 14:
        year = int(int_part[:4])
        fields = int_part[4:]
    elif len(int_part) == 12:
        year = 2000 + int(int_part[:2])
        fields = int_part[2:]
    else:
        raise MalformedTimestamp(
            raw, f"expected 12 or 14 digits, got {len(int_part)}"
        )

    month, day, hour, minute, second = (
        int(fields[i : i + 2]) for i in range(0, 10, 2)
    )
    seconds = _utc_epoch(raw, year, month, day, hour, minute, second)
    return seconds + _millis(fraction) / 1000.0


# ---------------------------------------------------------------------------
# epoch ↔ ISO-8601
# ---------------------------------------------------------------------------


def format_epoch_to_iso(epoch: float) -> str:
    """Render *epoch* as ``YYYY-MM-DDThh:mm:ss.mmmZ`` (UTC).

    Rounding to the nearest millisecond carries into the seconds field, so
    ``…:59.9996`` becomes the next second rather than ``.1000``. Non-positive
    epochs return :data:`EPOCH_ZERO_ISO`, and so do NaN, infinite or
    past-year-9999 epochs (with a warning).
    """
    if not math.isfinite(epoch):
        logger.warning("Cannot render non-finite epoch %r as ISO time", epoch)
        return EPOCH_ZERO_ISO
    if epoch <= 0.0:
        return EPOCH_ZERO_ISO

    total_ms = int(math.floor(epoch * 1000.0 + 0.5))
    seconds, millis = divmod(total_ms, 1000)
    try:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning("Epoch %.3f is out of the representable date range", epoch)
        return EPOCH_ZERO_ISO
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


def parse_iso_strict(iso: str) -> float:
    """Parse an ISO-8601 UTC string into epoch seconds.

    Fractional seconds are honoured to millisecond precision; anything after
    them (``Z``, ``+00:00``) is ignored and the value is always taken as UTC.

    Raises
    ------
    TimestampParseFailure
        If *iso* does not start with ``YYYY-MM-DDThh:mm:ss`` or the fields
        are out of range.
    """
    m = _ISO_RE.match(iso.strip())
    if m is None:
        raise TimestampParseFailure(iso)

    year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
    fraction = m.group(7) or ""
    try:
        dt = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError as exc:
        raise TimestampParseFailure(iso) from exc
    return dt.timestamp() + _millis(fraction) / 1000.0


def parse_iso_to_epoch(iso: str | None) -> float:
    """Lenient :func:`parse_iso_strict`: unknown or unparseable input gives ``0.0``."""
    if not iso:
        return 0.0
    try:
        return parse_iso_strict(iso)
    except TimestampParseFailure as exc:
        logger.warning("%s", exc)
        return 0.0


def iso_to_datetime(iso: str | None) -> datetime | None:
    """Return an aware UTC datetime for *iso*, or *None* when it is unknown."""
    epoch = parse_iso_to_epoch(iso)
    if epoch <= 0.0:
        return None
    return datetime.fromtimestamp(0, tz=timezone.utc) + timedelta(
        milliseconds=round(epoch * 1000.0)
    )
