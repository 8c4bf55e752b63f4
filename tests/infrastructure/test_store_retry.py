from __future__ import annotations

from typing import Iterable, List

import pytest

from programme_engine.domain.repositories import DuplicateKeyError, StoreUnavailableError
from programme_engine.infrastructure.decorators import retry_on_transient_error


class DummyStore:
    def __init__(self, responses: Iterable[object], max_retries: int = 3, backoff_base: float = 0.5):
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._responses = iter(responses)
        self.calls = 0

    @retry_on_transient_error()
    def get(self, collection: str, key: str) -> object:
        self.calls += 1
        result = next(self._responses)
        if isinstance(result, Exception):
            raise result
        return result


def test_retries_transient_errors_with_exponential_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    sleeps: List[float] = []
    monkeypatch.setattr("programme_engine.infrastructure.decorators.time.sleep", lambda seconds: sleeps.append(seconds))

    store = DummyStore(
        [StoreUnavailableError("down"), StoreUnavailableError("still down"), {"ok": True}],
        backoff_base=0.75,
    )

    assert store.get("programmes", "p1") == {"ok": True}
    assert sleeps == [0.75, 1.5]


def test_gives_up_after_max_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("programme_engine.infrastructure.decorators.time.sleep", lambda _: None)

    store = DummyStore([StoreUnavailableError("down")] * 5, max_retries=2)

    with pytest.raises(StoreUnavailableError):
        store.get("programmes", "p1")
    assert store.calls == 2


def test_non_transient_errors_propagate_immediately(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("programme_engine.infrastructure.decorators.time.sleep", lambda _: None)

    store = DummyStore([DuplicateKeyError("program_enrollments", "u1:p1"), {"ok": True}])

    with pytest.raises(DuplicateKeyError):
        store.get("program_enrollments", "u1:p1")
    assert store.calls == 1
