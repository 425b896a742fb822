"""Telemetry models shared by every stage of the merge pipeline.

A :class:`ClipTelemetry` is produced once per source clip by the extraction
collaborator. Stages never mutate it in place; they hand back a modified
copy via ``model_copy(update=...)``. :class:`MergedTelemetry` is the terminal
artifact given to the exporters.

An unknown capture start is held as ``None`` and only rendered as the
legacy sentinel text when the model is serialized.
"""

from __future__ import annotations

import pathlib

import numpy as np
import pydantic

from gpmf_merge.config import config

# ---------------------------------------------------------------------------
# GPS samples
# ---------------------------------------------------------------------------


class GPSFix(pydantic.BaseModel):
    """One decoded GPS sample (degrees + metres)."""

    model_config = pydantic.ConfigDict(frozen=True)

    latitude: float
    longitude: float
    elevation: float

    timestamp: str | None = None
    """ISO-8601 UTC time, or *None* when the sample had no absolute reference."""

    @pydantic.field_validator("timestamp", mode="before")
    @classmethod
    def _blank_timestamp(cls, value):
        return value or None


# ---------------------------------------------------------------------------
# Per-clip telemetry
# ---------------------------------------------------------------------------


class ClipTelemetry(pydantic.BaseModel):
    frame_timestamps: list[float] = pydantic.Field(default_factory=list)
    """Clip-local presentation times (seconds), already multiplied by ``speed_factor``."""

    gps_epochs: list[float] = pydantic.Field(default_factory=list)
    """Absolute epoch seconds of each GPSU reference, in discovery order."""

    gps_fixes: list[GPSFix] = pydantic.Field(default_factory=list)

    frame_rate: float = 0.0
    capture_start: str | None = None
    speed_factor: int = pydantic.Field(default=1, ge=0)

    source_name: str
    source_path: pathlib.Path | None = None

    @pydantic.field_validator("capture_start", mode="before")
    @classmethod
    def _unknown_capture_start(cls, value):
        if value in ("", config.UNKNOWN_CAPTURE_START):
            return None
        return value

    @pydantic.field_validator("frame_timestamps")
    @classmethod
    def _frames_non_decreasing(cls, value: list[float]) -> list[float]:
        if len(value) > 1 and np.any(np.diff(np.asarray(value, dtype=np.float64)) < 0):
            raise ValueError("frame_timestamps must be non-decreasing")
        return value

    @pydantic.field_serializer("capture_start")
    def _serialize_capture_start(self, value: str | None) -> str:
        return value if value is not None else config.UNKNOWN_CAPTURE_START

    @property
    def first_gps_epoch(self) -> float | None:
        return self.gps_epochs[0] if self.gps_epochs else None


# ---------------------------------------------------------------------------
# Merged telemetry
# ---------------------------------------------------------------------------


class MergedTelemetry(ClipTelemetry):
    """Concatenation of all clips on one timeline."""

    source_name: str = "merged"

    clip_count: int = 0

    start_offset_ms: float | None = None
    """First merged frame timestamp in milliseconds; *None* when there are no frames."""

    end_offset_ms: float | None = None
    """Last merged frame timestamp in milliseconds; *None* when there are no frames."""

    source_names: list[str] = pydantic.Field(default_factory=list)
    """``source_name`` of every merged clip, in sequenced order."""

    source_paths: list[pathlib.Path | None] = pydantic.Field(default_factory=list)
    """Source media file per merged clip, aligned with ``source_names``; *None* where unknown."""

    @pydantic.field_validator("frame_timestamps")
    @classmethod
    def _frames_non_decreasing(cls, value: list[float]) -> list[float]:
        # Absolute-anchor merges may step back at a clip boundary; merge_clips logs it.
        return value

    @classmethod
    def empty(cls) -> MergedTelemetry:
        return cls(speed_factor=config.SPEED_FACTOR)

    @property
    def is_empty(self) -> bool:
        return self.clip_count == 0

    @property
    def clips_without_path(self) -> list[str]:
        return [
            name
            for name, path in zip(self.source_names, self.source_paths)
            if path is None
        ]
