"""Utility helpers for the gpmf_merge package."""

from __future__ import annotations

import logging
import math

import rich.console
import rich.logging

PACKAGE_LOGGER = "gpmf_merge"


def setup_logging(
    verbose: bool = False, console: rich.console.Console | None = None
) -> logging.Logger:
    """Route the package's log records to a rich console.

    The library itself never calls this; host applications do, once, before
    composing. Only the ``gpmf_merge`` logger gets the handler; the host's own
    root configuration is left alone. Calling it again replaces the handler.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for old in [
        h for h in package_logger.handlers if isinstance(h, rich.logging.RichHandler)
    ]:
        package_logger.removeHandler(old)

    handler = rich.logging.RichHandler(
        console=console or rich.console.Console(stderr=True),
        show_path=verbose,
        markup=True,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(logging.Formatter(r"\[[dim]%(name)s[/dim]] %(message)s"))
    package_logger.addHandler(handler)
    return package_logger


def format_duration(seconds: float) -> str:
    """Convert *seconds* to a human-readable duration string.

    Examples: ``"6m 23s"``, ``"1h 15m"``, ``"0m 0s"``.
    """
    total = int(math.floor(max(seconds, 0.0)))
    h, remainder = divmod(total, 3600)
    m, s = divmod(remainder, 60)

    if h > 0:
        return f"{h}h {m:02d}m"
    return f"{m}m {s:02d}s" if m else f"0m {s}s"
