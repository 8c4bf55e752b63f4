from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional


class RecordStoreError(Exception):
    """Base class for failures reported by a record store."""


class DuplicateKeyError(RecordStoreError):
    """An insert collided with an existing key (uniqueness constraint)."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} already exists")


class StoreConflictError(RecordStoreError):
    """A conditional write found a different version than expected."""

    def __init__(self, collection: str, key: str, expected: Optional[int], actual: Optional[int]) -> None:
        self.collection = collection
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{key} changed concurrently (expected version {expected}, found {actual})"
        )


class StoreUnavailableError(RecordStoreError):
    """Network, timeout or connection failure; the call may be retried."""


class RecordStore(ABC):
    """Abstract key-addressed record store.

    Records are plain mappings. Every stored record carries a ``version``
    integer maintained by the store and bumped on each write.
    """

    @abstractmethod
    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the record stored under ``key`` or ``None``."""

    @abstractmethod
    def put(
        self,
        collection: str,
        key: str,
        value: Mapping[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Upsert ``value``; with ``expected_version`` the write only succeeds
        when the stored version still matches, else :class:`StoreConflictError`."""

    @abstractmethod
    def insert(self, collection: str, key: str, value: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a record, raising :class:`DuplicateKeyError` if ``key`` exists."""

    @abstractmethod
    def query(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return records whose fields equal every value in ``filters``."""
