"""Uptime formatting."""

from __future__ import annotations


def format_uptime(seconds: float) -> str:
    """Render a duration as ``"1d 2h 3m 4s"``, skipping zero units (``"0s"`` for nothing)."""
    remaining = max(0, int(seconds))
    days, remaining = divmod(remaining, 86_400)
    hours, remaining = divmod(remaining, 3_600)
    minutes, secs = divmod(remaining, 60)

    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
