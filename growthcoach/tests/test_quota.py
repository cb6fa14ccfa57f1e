from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path

import pytest

from growthcoach.services.quota import InMemoryQuotaStore, SQLiteQuotaStore, create_quota_store

_DAY = date(2024, 5, 1)


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        yield InMemoryQuotaStore(daily_limit=3)
        return
    sqlite_store = SQLiteQuotaStore(tmp_path / "quota.db", daily_limit=3)
    yield sqlite_store
    sqlite_store.close()


def test_consume_until_limit(store) -> None:
    decisions = [store.try_consume("user-1", _DAY) for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert decisions[-1].used == 3


def test_users_and_days_are_independent(store) -> None:
    for _ in range(3):
        store.try_consume("user-1", _DAY)

    assert store.try_consume("user-2", _DAY).allowed
    assert store.try_consume("user-1", date(2024, 5, 2)).allowed


def test_release_returns_a_slot(store) -> None:
    store.try_consume("user-1", _DAY)
    store.release("user-1", _DAY)
    store.release("user-1", _DAY)

    assert store.peek("user-1", _DAY).used == 0


def test_concurrent_consumers_never_exceed_limit(store) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: store.try_consume("user-1", _DAY), range(20)))

    assert sum(d.allowed for d in decisions) == 3
    assert store.peek("user-1", _DAY).used == 3


def test_sqlite_store_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "quota.db"
    first = SQLiteQuotaStore(path, daily_limit=2)
    first.try_consume("user-1", _DAY)
    first.close()

    second = SQLiteQuotaStore(path, daily_limit=2)
    try:
        assert second.peek("user-1", _DAY).used == 1
    finally:
        second.close()


def test_negative_limit_is_rejected() -> None:
    with pytest.raises(ValueError):
        InMemoryQuotaStore(daily_limit=-1)


def test_create_quota_store_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GROWTHCOACH_DAILY_LIMIT", "7")
    monkeypatch.delenv("GROWTHCOACH_QUOTA_DB_PATH", raising=False)
    memory_store = create_quota_store()

    monkeypatch.setenv("GROWTHCOACH_QUOTA_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("GROWTHCOACH_DAILY_LIMIT", "not-a-number")
    sqlite_store = create_quota_store()

    assert isinstance(memory_store, InMemoryQuotaStore)
    assert memory_store.daily_limit == 7
    assert isinstance(sqlite_store, SQLiteQuotaStore)
    assert sqlite_store.daily_limit == 5
    sqlite_store.close()


def test_memory_store_evicts_past_days() -> None:
    store = InMemoryQuotaStore(daily_limit=3)
    store.try_consume("user-1", _DAY)
    store.try_consume("user-2", _DAY)

    store.try_consume("user-1", date(2024, 5, 2))

    assert store.peek("user-1", _DAY).used == 0
    assert store.peek("user-2", _DAY).used == 0
    assert store.peek("user-1", date(2024, 5, 2)).used == 1
