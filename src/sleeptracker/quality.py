"""Sleep quality rating for a finished night."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor

from .observable import OneShotEvent
from .scope import BackgroundScope
from .storage.models import MAX_QUALITY, MIN_QUALITY, SleepDatabase

logger = logging.getLogger(__name__)


class SleepQualityRecorder(BackgroundScope):
    """Store the quality rating for one night, then signal navigation back."""

    def __init__(
        self,
        database: SleepDatabase,
        night_id: str,
        *,
        executor: Executor | None = None,
    ) -> None:
        super().__init__(executor=executor)
        self._database = database
        self.night_id = night_id
        self.navigate_to_sleep_tracker: OneShotEvent[bool] = OneShotEvent()

    def done_navigating(self) -> None:
        self.navigate_to_sleep_tracker.acknowledge()

    def on_set_sleep_quality(self, quality: int) -> asyncio.Task[None]:
        if isinstance(quality, bool) or not MIN_QUALITY <= quality <= MAX_QUALITY:
            raise ValueError(f"Sleep quality must be between {MIN_QUALITY} and {MAX_QUALITY}")
        return self.launch(self._set_sleep_quality(quality))

    async def _set_sleep_quality(self, quality: int) -> None:
        night = await self.run_io(self._database.get, self.night_id)
        if night is None:
            logger.warning("Cannot rate unknown sleep night", extra={"night_id": self.night_id})
        elif night.in_progress:
            raise ValueError(f"Sleep night {self.night_id} is still in progress")
        else:
            await self.run_io(self._database.update, night.with_quality(quality))
            logger.info("Rated sleep night", extra={"night_id": self.night_id, "quality": quality})

        self.navigate_to_sleep_tracker.fire(True)


__all__ = ["SleepQualityRecorder"]
