import pathlib

import pydantic_settings


class GpmfMergeDirs(pydantic_settings.BaseSettings):
    PROJECT_ROOT: pathlib.Path = pathlib.Path(__file__).parents[2]

    OUTPUT: pathlib.Path = PROJECT_ROOT / "MergedData"


class GpmfMergeConfig(pydantic_settings.BaseSettings):
    DIR: GpmfMergeDirs = GpmfMergeDirs()

    # --- GPS clock anomalies ---
    # Units: Seconds

    # One Julian year; larger forward steps between GPSU readings are pre-lock garbage
    JUMP_THRESHOLD_S: float = 31_556_952.0
    # Max disagreement between a clip's declared start and its first GPSU reading
    CAPTURE_START_TOLERANCE_S: float = 365 * 24 * 3600.0

    # --- GPS lock detection ---
    # Units: Meters
    GPS_LOCK_ELEVATION_DELTA_M: float = 1.0

    # --- Sampling ---
    # Units: Hz
    DEFAULT_GPS_RATE_HZ: float = 18.0

    # TimeWarp factor applied to payload timestamps
    SPEED_FACTOR: int = 10

    # "duration_chain" or "absolute_anchor"
    OFFSET_STRATEGY: str = "duration_chain"

    # Serialized form of an unknown capture start
    UNKNOWN_CAPTURE_START: str = "1970-01-01T00:00:00"

    # --- External tools ---
    FFMPEG_BINARY: str = "ffmpeg"


config = GpmfMergeConfig()
