"""Clock helpers.

Wire timestamps are integer milliseconds since the Unix epoch; import
:func:`epoch_ms` everywhere instead of multiplying ``time.time()`` inline.
"""

import time


def epoch_ms() -> int:  # noqa: D401 – simple utility
    """Return the current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


def monotonic_seconds() -> float:  # noqa: D401 – simple utility
    """Return a monotonic clock reading, used for uptime reporting."""

    return time.monotonic()


__all__ = ["epoch_ms", "monotonic_seconds"]
