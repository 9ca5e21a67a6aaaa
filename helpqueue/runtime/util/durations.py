"""Human-readable elapsed-time formatting."""

from __future__ import annotations

from datetime import timedelta


def format_duration(elapsed: timedelta | float) -> str:
    """Return ``"1 hour, 5 minutes and 3 seconds"`` style text.

    Negative inputs are clamped to zero.
    """
    seconds = elapsed.total_seconds() if isinstance(elapsed, timedelta) else elapsed
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    parts: list[str] = []
    for value, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if value:
            parts.append(f"{value} {unit}{'' if value == 1 else 's'}")
    if not parts:
        return "0 seconds"
    if len(parts) == 1:
        return parts[0]
    return ", ".join(parts[:-1]) + " and " + parts[-1]
