"""Data models for persisted sleep nights."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol

NO_QUALITY = -1
MIN_QUALITY = 0
MAX_QUALITY = 5


@dataclass(slots=True)
class SleepNight:
    """One tracked sleep interval.

    A night is in progress while its end time still equals its start time.
    """

    night_id: str
    start_time_milli: int
    end_time_milli: int
    sleep_quality: int = NO_QUALITY

    @classmethod
    def begin(cls, now_milli: int) -> SleepNight:
        return cls(
            night_id=uuid.uuid4().hex,
            start_time_milli=now_milli,
            end_time_milli=now_milli,
        )

    @property
    def in_progress(self) -> bool:
        return self.end_time_milli == self.start_time_milli

    @property
    def duration_millis(self) -> int:
        return self.end_time_milli - self.start_time_milli

    def finish(self, now_milli: int) -> SleepNight:
        """Return a copy of this night ended at ``now_milli``.

        The end time is kept strictly after the start time so that a finished
        night never reads back as in progress.
        """

        return replace(self, end_time_milli=max(now_milli, self.start_time_milli + 1))

    def with_quality(self, quality: int) -> SleepNight:
        return replace(self, sleep_quality=quality)

    def to_dict(self) -> dict[str, Any]:
        return {
            "night_id": self.night_id,
            "start_time_milli": self.start_time_milli,
            "end_time_milli": self.end_time_milli,
            "sleep_quality": self.sleep_quality,
        }


class SleepDatabase(Protocol):
    """Storage contract used by the tracker and the quality recorder.

    All methods may block; callers run them off the event loop thread.
    """

    def insert(self, night: SleepNight) -> None:
        ...

    def update(self, night: SleepNight) -> None:
        ...

    def clear(self) -> None:
        ...

    def get(self, night_id: str) -> SleepNight | None:
        ...

    def get_tonight(self) -> SleepNight | None:
        ...

    def get_all_nights(self) -> list[SleepNight]:
        ...

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        ...


__all__ = ["MAX_QUALITY", "MIN_QUALITY", "NO_QUALITY", "SleepDatabase", "SleepNight"]
