"""Sleep tracker state and operations."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Executor
from typing import Callable, Sequence

from .formatting import format_nights
from .observable import LiveValue, OneShotEvent
from .scope import BackgroundScope
from .storage.models import SleepDatabase, SleepNight

logger = logging.getLogger(__name__)


def current_time_millis() -> int:
    return time.time_ns() // 1_000_000


class SleepTracker(BackgroundScope):
    """Coordinate tonight's sleep night with the database.

    ``tonight`` holds the night currently in progress, if any, and
    ``nights`` mirrors the stored history. The control flags and
    ``history_text`` are derived from those two values and recompute on every
    change. ``navigate_to_sleep_quality`` and ``show_snackbar_event`` are
    one-shot signals that stay pending until acknowledged.

    Must be constructed inside a running event loop; the initial load of
    tonight's night is launched immediately.
    """

    def __init__(
        self,
        database: SleepDatabase,
        *,
        clock: Callable[[], int] | None = None,
        formatter: Callable[[Sequence[SleepNight]], str] | None = None,
        executor: Executor | None = None,
    ) -> None:
        super().__init__(executor=executor)
        self._database = database
        self._clock = clock or current_time_millis
        self._refresh_issued = 0
        self._refresh_applied = 0

        self.tonight: LiveValue[SleepNight | None] = LiveValue(None)
        self.nights: LiveValue[list[SleepNight]] = LiveValue([])
        self.navigate_to_sleep_quality: OneShotEvent[SleepNight] = OneShotEvent()
        self.show_snackbar_event: OneShotEvent[bool] = OneShotEvent()

        self.history_text = self.nights.map(formatter or format_nights)
        self.start_control_enabled = self.tonight.map(lambda night: night is None)
        self.stop_control_enabled = self.tonight.map(lambda night: night is not None)
        self.clear_control_enabled = self.nights.map(lambda nights: len(nights) > 0)

        self._unsubscribe_database = database.add_listener(self._on_database_changed)
        self.initialization: asyncio.Task[None] = self.launch(self._initialize_tonight())

    def done_showing_snackbar(self) -> None:
        self.show_snackbar_event.acknowledge()

    def done_navigating(self) -> None:
        self.navigate_to_sleep_quality.acknowledge()

    def on_start_tracking(self) -> asyncio.Task[None]:
        return self.launch(self._start_tracking())

    def on_stop_tracking(self) -> asyncio.Task[None]:
        return self.launch(self._stop_tracking())

    def on_clear(self) -> asyncio.Task[None]:
        return self.launch(self._clear())

    async def _initialize_tonight(self) -> None:
        self.tonight.set(await self._get_tonight_from_database())
        await self._refresh_nights()
        logger.debug(
            "Initialized sleep tracker",
            extra={"tracking": self.tonight.value is not None, "nights": len(self.nights.value)},
        )

    async def _get_tonight_from_database(self) -> SleepNight | None:
        night = await self.run_io(self._database.get_tonight)
        if night is not None and not night.in_progress:
            return None
        return night

    async def _refresh_nights(self) -> None:
        # Reads may finish out of order; only the most recently issued one is applied.
        self._refresh_issued += 1
        generation = self._refresh_issued
        nights = await self.run_io(self._database.get_all_nights)
        if generation > self._refresh_applied:
            self._refresh_applied = generation
            self.nights.set(nights)

    async def _start_tracking(self) -> None:
        new_night = SleepNight.begin(self._clock())
        await self.run_io(self._database.insert, new_night)
        logger.info("Started sleep tracking", extra={"night_id": new_night.night_id})

        self.tonight.set(await self._get_tonight_from_database())
        await self._refresh_nights()

    async def _stop_tracking(self) -> None:
        old_night = self.tonight.value
        if old_night is None:
            return

        finished = old_night.finish(self._clock())
        await self.run_io(self._database.update, finished)
        logger.info(
            "Stopped sleep tracking",
            extra={"night_id": finished.night_id, "duration_millis": finished.duration_millis},
        )

        self.navigate_to_sleep_quality.fire(finished)
        self.tonight.set(await self._get_tonight_from_database())
        await self._refresh_nights()

    async def _clear(self) -> None:
        await self.run_io(self._database.clear)
        logger.info("Cleared sleep history")

        self.tonight.set(None)
        self.show_snackbar_event.fire(True)
        await self._refresh_nights()

    def _on_database_changed(self) -> None:
        # Called from the executor thread that performed the mutation.
        if self.closed or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        if not self.closed:
            self.launch(self._refresh_nights())

    def _on_close(self) -> None:
        self._unsubscribe_database()


__all__ = ["SleepTracker", "current_time_millis"]
