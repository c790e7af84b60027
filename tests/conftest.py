"""Shared fixtures: DuckDB databases on tmp_path, a settable clock, seeded requirements."""

import uuid
from datetime import datetime, timedelta

import duckdb
import pytest

from app.models import CACHE_DDL, OFFLINE_DDL, STORE_DDL
from app.models.requirements import Requirement
from app.repositories.common import SharedCacheRepository
from app.repositories.db import init_tables
from app.repositories.offline import OfflineSnapshotRepository, PendingMutationRepository
from app.repositories.requirements import RequirementRepository

USER = "user-1"
OTHER_USER = "user-2"
SEED_BASE = datetime(2025, 6, 1, 9, 0)
OTHER_STATUSES = ["IN_PROGRESS", "SUBMITTED", "INTERVIEW"]


class FakeClock:
    """Callable clock returning a naive UTC datetime that tests move by hand."""

    def __init__(self, now: datetime = datetime(2026, 1, 1, 12, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Ticker:
    """Monotonic-style float clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SpyRequirementRepository(RequirementRepository):
    """Counts store round-trips; can be told to fail the next N page queries."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.select_calls = 0
        self.count_calls = 0
        self.fail_next: list[Exception] = []

    def select_page(self, query):
        self.select_calls += 1
        if self.fail_next:
            raise self.fail_next.pop(0)
        return super().select_page(query)

    def count(self, query):
        self.count_calls += 1
        return super().count(query)


def _connect(path, ddl):
    conn = duckdb.connect(str(path))
    init_tables(conn, ddl)
    return conn


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def store_conn(tmp_path):
    conn = _connect(tmp_path / "store.duckdb", STORE_DDL)
    yield conn
    conn.close()


@pytest.fixture
def cache_conn(tmp_path):
    conn = _connect(tmp_path / "cache.duckdb", CACHE_DDL)
    yield conn
    conn.close()


@pytest.fixture
def offline_conn(tmp_path):
    conn = _connect(tmp_path / "offline.duckdb", OFFLINE_DDL)
    yield conn
    conn.close()


@pytest.fixture
def make_requirement():
    """Factory for Requirement rows with sensible defaults."""

    def make(number: int, user_id: str = USER, **overrides) -> Requirement:
        created = overrides.pop("created_at", SEED_BASE + timedelta(hours=number))
        values = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "requirement_number": number,
            "title": f"Python Developer {number}",
            "status": "NEW",
            "created_at": created,
            "updated_at": created,
            "company": f"Company {number % 7}" if number % 5 else None,
            "rate": float(50 + number) if number % 4 else None,
            "primary_tech_stack": "Python, Django",
            "remote": ["REMOTE", "ONSITE", "HYBRID"][number % 3],
            "created_by": user_id,
            "updated_by": user_id,
        }
        values.update(overrides)
        return Requirement(**values)

    return make


@pytest.fixture
def seeded_records(make_requirement):
    """60 rows for USER (every other one NEW) and 5 rows for OTHER_USER."""
    records = [
        make_requirement(i, status="NEW" if i % 2 == 0 else OTHER_STATUSES[i % 3])
        for i in range(1, 61)
    ]
    records.append(
        make_requirement(
            61,
            title="Rust Engineer",
            vendor_email="Jane.Doe@acme.io",
            description="Discount 100% remote_first",
        )
    )
    records.extend(make_requirement(i, user_id=OTHER_USER) for i in range(1, 6))
    return records


@pytest.fixture
def repo(store_conn, clock):
    return RequirementRepository(store_conn, clock=clock)


@pytest.fixture
def seeded_repo(store_conn, clock, seeded_records):
    repo = SpyRequirementRepository(store_conn, clock=clock)
    repo.insert_many(seeded_records)
    repo.select_calls = 0
    return repo


@pytest.fixture
def shared_cache(cache_conn, clock):
    return SharedCacheRepository(cache_conn, clock=clock)


@pytest.fixture
def snapshots(offline_conn, clock):
    return OfflineSnapshotRepository(offline_conn, ttl=600, clock=clock)


@pytest.fixture
def mutations(offline_conn, clock):
    return PendingMutationRepository(offline_conn, clock=clock)
