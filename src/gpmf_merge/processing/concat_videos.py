"""Lossless concatenation of the source clips with ``ffmpeg``'s concat demuxer."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Sequence

from gpmf_merge.config import config
from gpmf_merge.errors import TranscodeFailure

logger = logging.getLogger(__name__)

CONCAT_LIST_NAME = "concat_list.txt"


def write_concat_list(paths: Sequence[Path], list_file: Path) -> Path:
    """Write an ffmpeg concat list with one ``file '<path>'`` line per clip."""
    lines = []
    for path in paths:
        quoted = str(Path(path).absolute()).replace("'", r"'\''")
        lines.append(f"file '{quoted}'\n")
    list_file.write_text("".join(lines), encoding="utf-8")
    return list_file


def concat_videos(
    paths: Sequence[Path],
    output_path: Path,
    timeout: float | None = None,
) -> Path:
    """Join *paths* (already in chronological order) into *output_path* without re-encoding.

    The call blocks until ffmpeg exits. Only the exit status is inspected.

    Raises
    ------
    TranscodeFailure
        If ffmpeg exits with a non-zero status.
    """
    output_path = Path(output_path)
    folder = output_path.parent
    folder.mkdir(parents=True, exist_ok=True)
    list_file = write_concat_list(paths, folder / CONCAT_LIST_NAME)

    command = [
        config.FFMPEG_BINARY,
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_file),
        "-c",
        "copy",
        str(output_path),
    ]
    logger.info("Combining %d videos into %s", len(paths), output_path.name)
    logger.debug("Running %s", " ".join(command))

    t0 = time.monotonic()
    result = subprocess.run(
        command,
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
    )
    if result.returncode != 0:
        stderr_tail = "\n".join((result.stderr or "").strip().splitlines()[-5:])
        raise TranscodeFailure(result.returncode, stderr_tail)

    logger.info(
        "Combined video written to %s (%.1f s)", output_path, time.monotonic() - t0
    )
    return output_path
