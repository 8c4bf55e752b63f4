import pytest

from programme_engine.domain.repositories import DuplicateKeyError, StoreConflictError
from programme_engine.infrastructure.memory_store import InMemoryRecordStore


def test_put_versions_records_and_checks_expected_version():
    store = InMemoryRecordStore()
    first = store.put("programmes", "p1", {"id": "p1"})
    assert first["version"] == 1
    second = store.put("programmes", "p1", {"id": "p1", "title": "T"}, expected_version=1)
    assert second["version"] == 2

    with pytest.raises(StoreConflictError) as excinfo:
        store.put("programmes", "p1", {"id": "p1"}, expected_version=1)
    assert excinfo.value.actual == 2


def test_insert_enforces_unique_keys():
    store = InMemoryRecordStore()
    store.insert("program_enrollments", "u1:p1", {"user_id": "u1"})
    with pytest.raises(DuplicateKeyError):
        store.insert("program_enrollments", "u1:p1", {"user_id": "u1"})


def test_query_filters_by_equality_and_returns_copies():
    store = InMemoryRecordStore()
    store.put("program_enrollments", "u1:a", {"user_id": "u1", "status": "active"})
    store.put("program_enrollments", "u1:b", {"user_id": "u1", "status": "paused"})
    store.put("program_enrollments", "u2:a", {"user_id": "u2", "status": "active"})
    store.put("programmes", "a", {"user_id": "u1"})

    rows = store.query("program_enrollments", {"user_id": "u1"})
    assert [row["status"] for row in rows] == ["active", "paused"]

    rows[0]["status"] = "mutated"
    assert store.get("program_enrollments", "u1:a")["status"] == "active"

    store.clear()
    assert store.query("program_enrollments") == []
