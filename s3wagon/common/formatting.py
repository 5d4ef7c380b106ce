"""Human readable sizes, rates and durations for transfer log lines."""

from __future__ import annotations

SIZE_UNITS: tuple[str, ...] = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")

SECOND = 1000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE


def format_size(num_bytes: int) -> str:
    """Render a byte count with binary units, e.g. ``1.5 MiB``."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    value = float(num_bytes)
    unit = SIZE_UNITS[0]
    for unit in SIZE_UNITS[1:]:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.1f} {unit}"


def format_rate(millis: int, num_bytes: int) -> str:
    """Transfer rate for ``num_bytes`` moved in ``millis`` milliseconds."""
    if millis <= 0:
        # Anything finishing below clock resolution counts as one millisecond
        millis = 1
    per_second = int(num_bytes * SECOND / millis)
    return f"{format_size(per_second)}/s"


def format_duration(millis: int) -> str:
    if millis < SECOND:
        return f"{millis}ms"
    if millis < MINUTE:
        return f"{millis / SECOND:.1f}s"
    if millis < HOUR:
        return f"{millis / MINUTE:.1f}m"
    return f"{millis / HOUR:.1f}h"
