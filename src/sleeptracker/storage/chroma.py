"""Chroma-based persistence layer for sleep nights."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .models import NO_QUALITY, SleepNight

logger = logging.getLogger(__name__)


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class SleepNightNotFoundError(KeyError):
    """Raised when updating a night that is not stored."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by SleepTracker."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def update(
        self,
        *,
        ids: Iterable[str],
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids: Iterable[str]) -> None:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by SleepTracker."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


class ChromaSleepStore:
    """Persist sleep nights in a Chroma collection.

    Every mutation notifies registered listeners from the calling thread,
    which makes ``get_all_nights`` observable for the tracker.
    """

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "sleep_nights",
        client_factory: Callable[[], ClientProtocol] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None
        self._listeners: set[Callable[[], None]] = set()
        self._listener_lock = threading.Lock()

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install sleeptracker with persistence extras"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""

        with self._listener_lock:
            self._listeners.add(listener)

        def unsubscribe() -> None:
            with self._listener_lock:
                self._listeners.discard(listener)

        return unsubscribe

    def _notify_listeners(self) -> None:
        with self._listener_lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Sleep store listener failed")

    @staticmethod
    def _to_record(night: SleepNight, sequence: int) -> tuple[str, dict[str, Any]]:
        document = json.dumps(night.to_dict())
        metadata = {
            "start_time_milli": night.start_time_milli,
            "end_time_milli": night.end_time_milli,
            "sleep_quality": night.sleep_quality,
            "sequence": sequence,
        }
        return document, metadata

    @staticmethod
    def _convert_result(result: dict[str, list[Any]]) -> list[SleepNight]:
        rows: list[tuple[int, SleepNight]] = []
        ids = result.get("ids", [])
        metadatas = result.get("metadatas", [])
        for night_id, metadata in zip(ids, metadatas):
            night = SleepNight(
                night_id=night_id,
                start_time_milli=int(metadata["start_time_milli"]),
                end_time_milli=int(metadata["end_time_milli"]),
                sleep_quality=int(metadata.get("sleep_quality", NO_QUALITY)),
            )
            rows.append((int(metadata.get("sequence", 0)), night))
        rows.sort(key=lambda row: (row[1].start_time_milli, row[0]), reverse=True)
        return [night for _, night in rows]

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def insert(self, night: SleepNight) -> None:
        collection = self._ensure_collection()
        existing = collection.get()
        sequence = max(
            (int(metadata.get("sequence", 0)) for metadata in existing.get("metadatas", [])),
            default=0,
        ) + 1
        document, metadata = self._to_record(night, sequence)
        collection.add(documents=[document], metadatas=[metadata], ids=[night.night_id])
        logger.debug("Inserted sleep night", extra={"night_id": night.night_id, "sequence": sequence})
        self._notify_listeners()

    def update(self, night: SleepNight) -> None:
        collection = self._ensure_collection()
        existing = collection.get(ids=[night.night_id])
        if not existing.get("ids"):
            raise SleepNightNotFoundError(night.night_id)
        sequence = int(existing["metadatas"][0].get("sequence", 0))
        document, metadata = self._to_record(night, sequence)
        collection.update(ids=[night.night_id], documents=[document], metadatas=[metadata])
        logger.debug("Updated sleep night", extra={"night_id": night.night_id})
        self._notify_listeners()

    def clear(self) -> None:
        collection = self._ensure_collection()
        ids = list(collection.get().get("ids", []))
        if ids:
            collection.delete(ids=ids)
        logger.debug("Cleared sleep nights", extra={"count": len(ids)})
        self._notify_listeners()

    def get(self, night_id: str) -> SleepNight | None:
        collection = self._ensure_collection()
        nights = self._convert_result(collection.get(ids=[night_id]))
        return nights[0] if nights else None

    def get_tonight(self) -> SleepNight | None:
        nights = self.get_all_nights()
        return nights[0] if nights else None

    def get_all_nights(self) -> list[SleepNight]:
        collection = self._ensure_collection()
        return self._convert_result(collection.get())


__all__ = ["ChromaSleepStore", "ChromaUnavailableError", "SleepNightNotFoundError"]
