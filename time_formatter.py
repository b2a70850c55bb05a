"""Duration formatting helpers."""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """MM:SS below one hour, H:MM:SS above."""
    try:
        total = int(round(float(seconds or 0)))
    except (TypeError, ValueError):
        total = 0
    total = max(total, 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_duration_concise(seconds: float) -> str:
    """e.g. 30.5s, 1.2m, 1.0h"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_elapsed(seconds: float) -> str:
    """Stopwatch display, HH:MM:SS.cc"""
    seconds = max(float(seconds or 0), 0.0)
    whole = int(seconds)
    hours = whole // 3600
    minutes = (whole % 3600) // 60
    secs = whole % 60
    centis = int((seconds - whole) * 100)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{centis:02d}"
