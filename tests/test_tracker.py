from __future__ import annotations

import asyncio

import pytest

from sleeptracker.formatting import HISTORY_TITLE
from sleeptracker.scope import ScopeClosedError
from sleeptracker.storage import ChromaSleepStore, SleepNight
from sleeptracker.tracker import SleepTracker


async def _ready_tracker(store: ChromaSleepStore, clock) -> SleepTracker:
    tracker = SleepTracker(store, clock=clock)
    await tracker.initialization
    await tracker.join()
    return tracker


def test_fresh_store_starts_idle(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)

        assert tracker.tonight.value is None
        assert tracker.start_control_enabled.value is True
        assert tracker.stop_control_enabled.value is False
        assert tracker.clear_control_enabled.value is False
        assert tracker.history_text.value == HISTORY_TITLE
        await tracker.close()

    asyncio.run(scenario())


def test_start_tracking_populates_tonight(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)

        await tracker.on_start_tracking()
        await tracker.join()

        tonight = tracker.tonight.value
        assert tonight is not None
        assert tonight.night_id
        assert tonight.start_time_milli == tonight.end_time_milli == clock.now
        assert tracker.start_control_enabled.value is False
        assert tracker.stop_control_enabled.value is True
        assert tracker.clear_control_enabled.value is True
        assert store.get_all_nights() == [tonight]
        assert "Start:" in tracker.history_text.value
        await tracker.close()

    asyncio.run(scenario())


def test_stop_tracking_records_end_and_signals_rating(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        await tracker.on_start_tracking()
        started = tracker.tonight.value
        assert started is not None

        stop_time = clock.advance(8 * 3_600_000)
        await tracker.on_stop_tracking()
        await tracker.join()

        persisted = store.get(started.night_id)
        assert persisted is not None
        assert persisted.end_time_milli == stop_time
        assert persisted.end_time_milli > persisted.start_time_milli

        assert tracker.navigate_to_sleep_quality.value == persisted
        assert tracker.tonight.value is None
        assert tracker.start_control_enabled.value is True
        assert tracker.stop_control_enabled.value is False
        assert "End:" in tracker.history_text.value

        tracker.done_navigating()
        assert tracker.navigate_to_sleep_quality.value is None
        assert not tracker.navigate_to_sleep_quality.pending
        await tracker.close()

    asyncio.run(scenario())


def test_stop_without_active_night_is_noop(store: ChromaSleepStore, clock, collection) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        before = [record.metadata for record in collection.records]

        await tracker.on_stop_tracking()
        await tracker.join()

        assert tracker.tonight.value is None
        assert not tracker.navigate_to_sleep_quality.pending
        assert not tracker.show_snackbar_event.pending
        assert [record.metadata for record in collection.records] == before
        await tracker.close()

    asyncio.run(scenario())


def test_initialize_ignores_finished_night(store: ChromaSleepStore, clock) -> None:
    store.insert(SleepNight.begin(1_000).finish(5_000))

    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)

        assert tracker.tonight.value is None
        assert tracker.start_control_enabled.value is True
        assert tracker.clear_control_enabled.value is True
        await tracker.close()

    asyncio.run(scenario())


def test_initialize_resumes_night_in_progress(store: ChromaSleepStore, clock) -> None:
    night = SleepNight.begin(1_000)
    store.insert(night)

    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)

        assert tracker.tonight.value == night
        assert tracker.stop_control_enabled.value is True
        await tracker.close()

    asyncio.run(scenario())


def test_clear_empties_history_and_signals_once(store: ChromaSleepStore, clock) -> None:
    store.insert(SleepNight.begin(1_000).finish(2_000))
    store.insert(SleepNight.begin(3_000).finish(4_000))

    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        assert tracker.clear_control_enabled.value is True
        fired: list[bool | None] = []
        tracker.show_snackbar_event.observe(fired.append)

        await tracker.on_clear()
        await tracker.join()

        assert store.get_all_nights() == []
        assert tracker.nights.value == []
        assert tracker.clear_control_enabled.value is False
        assert tracker.tonight.value is None
        assert tracker.show_snackbar_event.pending
        assert fired == [None, True]

        tracker.done_showing_snackbar()
        assert not tracker.show_snackbar_event.pending
        assert fired == [None, True, None]
        await tracker.close()

    asyncio.run(scenario())


def test_clear_while_tracking_stops_tracking(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        await tracker.on_start_tracking()

        await tracker.on_clear()
        await tracker.join()

        assert tracker.tonight.value is None
        assert tracker.start_control_enabled.value is True
        await tracker.close()

    asyncio.run(scenario())


def test_start_stop_sequences_track_latest_operation(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        for operation in ("start", "stop", "stop", "start", "stop", "start"):
            clock.advance(1_000)
            if operation == "start":
                await tracker.on_start_tracking()
                assert tracker.tonight.value is not None
                assert tracker.tonight.value.in_progress
            else:
                await tracker.on_stop_tracking()
                assert tracker.tonight.value is None
        await tracker.join()
        assert len(store.get_all_nights()) == 3
        await tracker.close()

    asyncio.run(scenario())


def test_start_twice_creates_second_night(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        await tracker.on_start_tracking()
        first = tracker.tonight.value

        clock.advance(10)
        await tracker.on_start_tracking()
        await tracker.join()

        second = tracker.tonight.value
        assert first is not None and second is not None
        assert second.night_id != first.night_id
        assert len(tracker.nights.value) == 2
        await tracker.close()

    asyncio.run(scenario())


def test_external_changes_refresh_history(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)

        await asyncio.get_running_loop().run_in_executor(
            None, store.insert, SleepNight.begin(1_000).finish(2_000)
        )
        await asyncio.sleep(0)
        await tracker.join()

        assert len(tracker.nights.value) == 1
        assert tracker.clear_control_enabled.value is True
        await tracker.close()

    asyncio.run(scenario())


def test_storage_failure_propagates(store: ChromaSleepStore, clock, collection, caplog) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        collection.fail_with = OSError("disk full")

        with pytest.raises(OSError):
            await tracker.on_start_tracking()

        assert tracker.tonight.value is None
        await tracker.close()

    asyncio.run(scenario())
    assert any("Background task failed" in record.getMessage() for record in caplog.records)


def test_close_cancels_work_and_rejects_new_operations(store: ChromaSleepStore, clock) -> None:
    async def scenario() -> None:
        tracker = await _ready_tracker(store, clock)
        pending = tracker.on_start_tracking()

        await tracker.close()

        assert pending.cancelled()
        assert tracker.closed
        assert tracker.outstanding == 0
        with pytest.raises(ScopeClosedError):
            tracker.on_stop_tracking()

        await asyncio.get_running_loop().run_in_executor(
            None, store.insert, SleepNight.begin(9_000)
        )
        await asyncio.sleep(0)
        assert tracker.outstanding == 0
        assert tracker.nights.value == []

    asyncio.run(scenario())
