"""SleepTracker diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from sleeptracker.config import SleepTrackerSettings
from sleeptracker.formatting import format_nights, quality_to_string
from sleeptracker.storage import ChromaSleepStore, ChromaUnavailableError


def load_store(settings: SleepTrackerSettings) -> ChromaSleepStore:
    try:
        store = ChromaSleepStore(settings.chroma_persist_path, collection_name=settings.collection_name)
        store.ping()
        return store
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)


def cmd_nights(args: argparse.Namespace) -> None:
    settings = SleepTrackerSettings()
    store = load_store(settings)
    nights = store.get_all_nights()
    if args.json:
        print(json.dumps([night.to_dict() for night in nights], indent=2))
    else:
        for night in nights:
            state = "in progress" if night.in_progress else quality_to_string(night.sleep_quality)
            print(f"{night.night_id} [{state}] {night.start_time_milli} -> {night.end_time_milli}")


def cmd_tonight(args: argparse.Namespace) -> None:
    settings = SleepTrackerSettings()
    store = load_store(settings)
    night = store.get_tonight()
    payload = None
    if night is not None:
        payload = {**night.to_dict(), "in_progress": night.in_progress}
    print(json.dumps(payload, indent=2))


def cmd_history(args: argparse.Namespace) -> None:
    settings = SleepTrackerSettings()
    store = load_store(settings)
    print(format_nights(store.get_all_nights(), tz=settings.display_zone()))


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = SleepTrackerSettings()
    store = load_store(settings)
    nights = store.get_all_nights()

    finished = [night for night in nights if not night.in_progress]
    rated = [night for night in finished if night.sleep_quality >= 0]

    quality_counts: dict[str, int] = {}
    for night in rated:
        label = quality_to_string(night.sleep_quality)
        quality_counts[label] = quality_counts.get(label, 0) + 1

    average_duration = (
        sum(night.duration_millis for night in finished) // len(finished) if finished else None
    )

    metrics = {
        "nights_total": len(nights),
        "in_progress": len(nights) - len(finished),
        "rated": len(rated),
        "average_duration_millis": average_duration,
        "quality_counts": quality_counts,
    }

    print(json.dumps(metrics, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SleepTracker diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_nights = sub.add_parser("nights", help="List stored sleep nights, newest first")
    p_nights.add_argument("--json", action="store_true", help="Output JSON")
    p_nights.set_defaults(func=cmd_nights)

    p_tonight = sub.add_parser("tonight", help="Show the most recently started night")
    p_tonight.set_defaults(func=cmd_tonight)

    p_history = sub.add_parser("history", help="Print the formatted sleep history")
    p_history.set_defaults(func=cmd_history)

    p_metrics = sub.add_parser("metrics", help="Show night counts, durations and ratings")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
