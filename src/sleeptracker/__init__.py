"""SleepTracker: record sleep sessions and expose tracker state."""

__version__ = "0.1.0"

__all__ = ["__version__"]
