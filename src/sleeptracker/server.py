"""FastMCP server bootstrap for SleepTracker."""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import SleepTrackerSettings, get_settings
from .storage import ChromaSleepStore, ChromaUnavailableError, SleepDatabase
from .tools import close_tracker, register_tools, tracker_snapshot


def configure_logging(level: str) -> None:
    """Configure root logging for the SleepTracker server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[SleepTrackerSettings] = None,
    database: SleepDatabase | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the tracker tools and status resource."""

    settings = settings or get_settings()

    storage_metadata = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collection": settings.collection_name,
        "error": None,
    }

    if database is None:
        try:
            store = ChromaSleepStore(
                settings.chroma_persist_path,
                collection_name=settings.collection_name,
            )
            store.ping()
            database = store
            storage_metadata["available"] = True
        except ChromaUnavailableError as exc:
            storage_metadata["error"] = str(exc)
            logging.getLogger(__name__).warning(
                "Sleep storage unavailable", extra={"error": str(exc)}
            )
    else:
        storage_metadata["available"] = True

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[dict]:
        try:
            yield {}
        finally:
            await close_tracker(handles.tracker_state)
            logging.getLogger(__name__).info("Closed sleep tracker on shutdown")

    server = FastMCP(
        name="SleepTracker MCP",
        version=__version__,
        instructions=(
            "SleepTracker records sleep nights. Start tracking at bedtime, stop it "
            "on waking, then rate the night. Acknowledge pending signals once handled."
        ),
        lifespan=lifespan,
    )

    handles = register_tools(server, database=database, settings=settings)
    tracker_state = handles.tracker_state

    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing storage and tracker state."""

        tracker = tracker_state.get("tracker")
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "display_timezone": settings.display_timezone,
            "storage": storage_metadata,
            "tracker": tracker_snapshot(tracker) if tracker is not None else None,
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    server.resource(
        "resource://sleeptracker/status",
        name="sleeptracker_status",
        title="SleepTracker Status",
        description="Provides storage availability and the current tracker state.",
        mime_type="application/json",
        tags={"status", "health"},
    )(status_resource)

    setattr(server, "database", database)
    setattr(server, "storage_metadata", storage_metadata)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_snapshot", status_resource)
    setattr(server, "tracker_lifespan", lifespan)
    return server


def main() -> None:
    """Entry point for running the SleepTracker MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching SleepTracker MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "storage_available": getattr(server, "storage_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
