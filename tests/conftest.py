import pytest

from gpmf_merge.processing.telemetry_data import ClipTelemetry, GPSFix


@pytest.fixture
def make_clip():
    def _make_clip(
        source_name: str = "GX010001.MP4",
        capture_start: str | None = "2024-01-01T00:00:00Z",
        frame_timestamps=(),
        gps_epochs=(),
        gps_fixes=(),
        frame_rate: float = 29.97,
        speed_factor: int = 10,
        source_path=None,
    ) -> ClipTelemetry:
        return ClipTelemetry(
            frame_timestamps=list(frame_timestamps),
            gps_epochs=list(gps_epochs),
            gps_fixes=list(gps_fixes),
            frame_rate=frame_rate,
            capture_start=capture_start,
            speed_factor=speed_factor,
            source_name=source_name,
            source_path=source_path,
        )

    return _make_clip


@pytest.fixture
def make_fix():
    def _make_fix(timestamp: str | None = None, elevation: float = 120.0) -> GPSFix:
        return GPSFix(
            latitude=52.2797, longitude=20.9089, elevation=elevation, timestamp=timestamp
        )

    return _make_fix
