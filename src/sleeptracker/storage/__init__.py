"""Storage abstractions for SleepTracker."""

from .chroma import ChromaSleepStore, ChromaUnavailableError, SleepNightNotFoundError
from .models import MAX_QUALITY, MIN_QUALITY, NO_QUALITY, SleepDatabase, SleepNight

__all__ = [
    "ChromaSleepStore",
    "ChromaUnavailableError",
    "SleepNightNotFoundError",
    "SleepDatabase",
    "SleepNight",
    "MAX_QUALITY",
    "MIN_QUALITY",
    "NO_QUALITY",
]
