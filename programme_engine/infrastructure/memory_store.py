"""Thread-safe in-process record store.

Used by the test-suite, the CLI's ``--memory`` mode and local development.
Applies the same uniqueness and version rules as the PostgreSQL store.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from programme_engine.domain.repositories import DuplicateKeyError, RecordStore, StoreConflictError


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get((collection, key))
            return copy.deepcopy(record) if record is not None else None

    def put(
        self,
        collection: str,
        key: str,
        value: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        with self._lock:
            current = self._records.get((collection, key))
            current_version = current.get("version") if current is not None else None
            if expected_version is not None and current_version != expected_version:
                raise StoreConflictError(collection, key, expected_version, current_version)
            stored = copy.deepcopy(dict(value))
            stored["version"] = (current_version or 0) + 1
            self._records[(collection, key)] = stored
            return copy.deepcopy(stored)

    def insert(self, collection: str, key: str, value: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if (collection, key) in self._records:
                raise DuplicateKeyError(collection, key)
            stored = copy.deepcopy(dict(value))
            stored["version"] = 1
            self._records[(collection, key)] = stored
            return copy.deepcopy(stored)

    def query(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        filters = filters or {}
        with self._lock:
            matches = [
                copy.deepcopy(record)
                for (record_collection, _key), record in sorted(self._records.items())
                if record_collection == collection
                and all(record.get(field) == value for field, value in filters.items())
            ]
        return matches

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
