"""Text rendering of sleep history."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Iterable

from .storage.models import NO_QUALITY, SleepNight

HISTORY_TITLE = "Here is your sleep data"

_QUALITY_LABELS = {
    NO_QUALITY: "--",
    0: "Very bad",
    1: "Poor",
    2: "So-so",
    3: "OK",
    4: "Pretty good",
    5: "Excellent",
}


def quality_to_string(quality: int) -> str:
    return _QUALITY_LABELS.get(quality, "--")


def format_timestamp(milli: int, tz: tzinfo | None = None) -> str:
    moment = datetime.fromtimestamp(milli / 1000, tz=tz)
    return moment.strftime("%A %b-%d-%Y Time: %H:%M")


def format_duration(milli: int) -> str:
    total_seconds = max(milli, 0) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def format_nights(nights: Iterable[SleepNight], tz: tzinfo | None = None) -> str:
    """Render nights, newest first as given, for display.

    Nights still in progress show only their start time.
    """

    lines = [HISTORY_TITLE]
    for night in nights:
        lines.append("")
        lines.append(f"Start:\t{format_timestamp(night.start_time_milli, tz)}")
        if night.in_progress:
            continue
        lines.append(f"End:\t{format_timestamp(night.end_time_milli, tz)}")
        lines.append(f"Quality:\t{quality_to_string(night.sleep_quality)}")
        lines.append(f"Hours:Minutes:Seconds:\t{format_duration(night.duration_millis)}")
    return "\n".join(lines)


__all__ = [
    "HISTORY_TITLE",
    "format_duration",
    "format_nights",
    "format_timestamp",
    "quality_to_string",
]
