"""Tool registration for SleepTracker MCP."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..config import SleepTrackerSettings
from ..formatting import format_nights
from ..quality import SleepQualityRecorder
from ..storage import SleepDatabase
from ..tracker import SleepTracker


@dataclass(slots=True)
class ToolHandles:
    start_tracking: Any
    stop_tracking: Any
    clear_history: Any
    rate_sleep: Any
    tracker_status: Any
    acknowledge_navigation: Any
    acknowledge_snackbar: Any
    tracker_state: dict[str, SleepTracker | None]


def tracker_snapshot(tracker: SleepTracker) -> dict[str, Any]:
    """Serialize the tracker's observable state."""

    tonight = tracker.tonight.value
    navigation = tracker.navigate_to_sleep_quality.value
    return {
        "tonight": tonight.to_dict() if tonight is not None else None,
        "start_enabled": tracker.start_control_enabled.value,
        "stop_enabled": tracker.stop_control_enabled.value,
        "clear_enabled": tracker.clear_control_enabled.value,
        "night_count": len(tracker.nights.value),
        "history_text": tracker.history_text.value,
        "navigate_to_sleep_quality": navigation.to_dict() if navigation is not None else None,
        "show_snackbar": tracker.show_snackbar_event.pending,
    }


async def close_tracker(tracker_state: dict[str, SleepTracker | None]) -> None:
    """Tear down the tracker created by the tools, if any."""

    tracker = tracker_state.get("tracker")
    tracker_state["tracker"] = None
    if tracker is not None:
        await tracker.close()


def register_tools(
    server: FastMCP,
    *,
    database: SleepDatabase | None,
    settings: SleepTrackerSettings,
) -> ToolHandles:
    """Register SleepTracker's MCP tools on the server."""

    tracker_state: dict[str, SleepTracker | None] = {"tracker": None}
    formatter = functools.partial(format_nights, tz=settings.display_zone())

    def _require_database() -> SleepDatabase:
        if database is None:
            raise RuntimeError("Sleep storage is unavailable; enable persistence before using this tool")
        return database

    async def _tracker() -> SleepTracker:
        tracker = tracker_state["tracker"]
        if tracker is None:
            tracker = SleepTracker(_require_database(), formatter=formatter)
            tracker_state["tracker"] = tracker
            try:
                await tracker.initialization
            except BaseException:
                tracker_state["tracker"] = None
                await tracker.close()
                raise
        return tracker

    async def _start_tracking(context: Context | None = None) -> dict[str, Any]:
        """Begin tracking a new sleep night."""

        tracker = await _tracker()
        await tracker.on_start_tracking()
        await tracker.join()
        tonight = tracker.tonight.value
        _emit_log(
            context,
            "info",
            "Started tracking",
            extra={"night_id": tonight.night_id if tonight is not None else None},
        )
        return tracker_snapshot(tracker)

    async def _stop_tracking(context: Context | None = None) -> dict[str, Any]:
        """Finish the night in progress; the snapshot carries the night to rate."""

        tracker = await _tracker()
        tonight = tracker.tonight.value
        await tracker.on_stop_tracking()
        await tracker.join()
        if tonight is None:
            _emit_log(context, "debug", "No night in progress")
        else:
            _emit_log(context, "info", "Stopped tracking", extra={"night_id": tonight.night_id})
        return tracker_snapshot(tracker)

    async def _clear_history(context: Context | None = None) -> dict[str, Any]:
        """Delete every stored night."""

        tracker = await _tracker()
        await tracker.on_clear()
        await tracker.join()
        _emit_log(context, "info", "Cleared sleep history")
        return tracker_snapshot(tracker)

    async def _rate_sleep(
        night_id: str,
        quality: int,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Store a 0-5 quality rating for a finished night."""

        tracker = await _tracker()
        recorder = SleepQualityRecorder(_require_database(), night_id)
        try:
            await recorder.on_set_sleep_quality(quality)
            recorder.done_navigating()
        finally:
            await recorder.close()
        pending = tracker.navigate_to_sleep_quality.value
        if pending is not None and pending.night_id == night_id:
            tracker.done_navigating()
        await tracker.join()
        _emit_log(context, "info", "Rated night", extra={"night_id": night_id, "quality": quality})
        return tracker_snapshot(tracker)

    async def _tracker_status(context: Context | None = None) -> dict[str, Any]:
        """Report tonight's night, control flags, pending signals and history text."""

        tracker = await _tracker()
        await tracker.join()
        _emit_log(context, "debug", "Reporting tracker status")
        return tracker_snapshot(tracker)

    async def _acknowledge_navigation(context: Context | None = None) -> dict[str, Any]:
        tracker = await _tracker()
        tracker.done_navigating()
        return tracker_snapshot(tracker)

    async def _acknowledge_snackbar(context: Context | None = None) -> dict[str, Any]:
        tracker = await _tracker()
        tracker.done_showing_snackbar()
        return tracker_snapshot(tracker)

    tool_start = server.tool(
        name="start_tracking",
        description="Start tracking a new sleep night. Returns the tracker state.",
    )(_start_tracking)

    tool_stop = server.tool(
        name="stop_tracking",
        description=(
            "Stop the night in progress. The returned state carries the finished night "
            "under navigate_to_sleep_quality until acknowledged."
        ),
    )(_stop_tracking)

    tool_clear = server.tool(
        name="clear_history",
        description="Delete all recorded sleep nights.",
        annotations={
            "safety": {
                "level": "caution",
                "notes": "Removes the full sleep history; there is no undo",
            }
        },
    )(_clear_history)

    tool_rate = server.tool(
        name="rate_sleep",
        description="Rate a finished night from 0 (very bad) to 5 (excellent).",
    )(_rate_sleep)

    tool_status = server.tool(
        name="tracker_status",
        description="Return tonight's night, control flags, pending signals and formatted history.",
    )(_tracker_status)

    tool_ack_navigation = server.tool(
        name="acknowledge_navigation",
        description="Mark the navigate-to-rating signal as handled.",
    )(_acknowledge_navigation)

    tool_ack_snackbar = server.tool(
        name="acknowledge_snackbar",
        description="Mark the history-cleared notice as shown.",
    )(_acknowledge_snackbar)

    return ToolHandles(
        start_tracking=tool_start,
        stop_tracking=tool_stop,
        clear_history=tool_clear,
        rate_sleep=tool_rate,
        tracker_status=tool_status,
        acknowledge_navigation=tool_ack_navigation,
        acknowledge_snackbar=tool_ack_snackbar,
        tracker_state=tracker_state,
    )


__all__ = ["close_tracker", "register_tools", "tracker_snapshot", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
