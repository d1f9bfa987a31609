from sleeptracker.storage import NO_QUALITY, SleepNight


def test_begin_creates_in_progress_night() -> None:
    night = SleepNight.begin(42_000)

    assert night.start_time_milli == night.end_time_milli == 42_000
    assert night.in_progress
    assert night.sleep_quality == NO_QUALITY
    assert night.duration_millis == 0


def test_begin_assigns_unique_ids() -> None:
    assert SleepNight.begin(1).night_id != SleepNight.begin(1).night_id


def test_finish_sets_end_time() -> None:
    night = SleepNight.begin(1_000)
    finished = night.finish(61_000)

    assert finished.end_time_milli == 61_000
    assert not finished.in_progress
    assert finished.duration_millis == 60_000
    assert night.in_progress


def test_finish_without_clock_progress_still_ends_night() -> None:
    finished = SleepNight.begin(1_000).finish(1_000)

    assert finished.end_time_milli > finished.start_time_milli
    assert not finished.in_progress


def test_to_dict() -> None:
    night = SleepNight(night_id="abc", start_time_milli=1, end_time_milli=2, sleep_quality=3)

    assert night.to_dict() == {
        "night_id": "abc",
        "start_time_milli": 1,
        "end_time_milli": 2,
        "sleep_quality": 3,
    }
