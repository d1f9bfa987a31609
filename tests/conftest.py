from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from sleeptracker.storage import ChromaSleepStore


@dataclass
class _Record:
    document: str
    metadata: dict[str, Any]
    id: str


class StubCollection:
    def __init__(self) -> None:
        self.records: list[_Record] = []
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def add(self, *, documents, metadatas, ids) -> None:  # type: ignore[override]
        self._check()
        for document, metadata, record_id in zip(documents, metadatas, ids):
            self.records.append(_Record(document=document, metadata=dict(metadata), id=record_id))

    def update(self, *, ids, documents, metadatas) -> None:  # type: ignore[override]
        self._check()
        for record_id, document, metadata in zip(ids, documents, metadatas):
            for record in self.records:
                if record.id == record_id:
                    record.document = document
                    record.metadata = dict(metadata)

    def delete(self, *, ids) -> None:  # type: ignore[override]
        self._check()
        doomed = set(ids)
        self.records = [record for record in self.records if record.id not in doomed]

    def get(self, *, ids=None, where=None, limit=None):  # type: ignore[override]
        self._check()
        filtered = self.records
        if ids is not None:
            filtered = [record for record in filtered if record.id in set(ids)]
        if where:
            for key, value in where.items():
                filtered = [record for record in filtered if record.metadata.get(key) == value]
        if limit is not None:
            filtered = filtered[:limit]
        return {
            "ids": [record.id for record in filtered],
            "documents": [record.document for record in filtered],
            "metadatas": [dict(record.metadata) for record in filtered],
        }


class StubClient:
    def __init__(self) -> None:
        self.collections = defaultdict(StubCollection)

    def get_or_create_collection(self, name: str) -> StubCollection:
        return self.collections[name]


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> int:
        self.now += millis
        return self.now


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


@pytest.fixture
def store(tmp_path: Path, stub_client: StubClient) -> ChromaSleepStore:
    return ChromaSleepStore(tmp_path, client_factory=lambda: stub_client)


@pytest.fixture
def collection(store: ChromaSleepStore, stub_client: StubClient) -> StubCollection:
    return stub_client.get_or_create_collection(store.collection_name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
