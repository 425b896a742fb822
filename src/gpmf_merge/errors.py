"""Exception hierarchy for gpmf_merge.

None of these are fatal to a batch. Each one is raised where the condition
is detected and caught at the seam where a fallback exists.
"""

from __future__ import annotations


class GpmfMergeError(Exception):
    """Base class for all gpmf_merge errors."""


class MalformedTimestamp(GpmfMergeError, ValueError):
    """A compact GPSU-style timestamp could not be decoded."""

    def __init__(self, raw: str, reason: str):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed capture timestamp {raw!r}: {reason}")


class TimestampParseFailure(GpmfMergeError, ValueError):
    """An ISO-8601 string could not be parsed."""

    def __init__(self, iso: str):
        self.iso = iso
        super().__init__(f"Failed to parse ISO time: {iso!r}")


class EmptyBatch(GpmfMergeError):
    """No clips were handed to the merge engine."""

    def __init__(self):
        super().__init__("No clips supplied for merging")


class TranscodeFailure(GpmfMergeError, RuntimeError):
    """The external transcoder exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        message = f"ffmpeg failed with code {returncode}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)
