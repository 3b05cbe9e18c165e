from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from microfeed.credentials import CredentialStore
from microfeed.database import Database
from microfeed.service import Microfeed

TEST_ROUNDS = 1_000
PASSWORD = "foobar"


class FakeClock:
    """Deterministic time source that advances one minute per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = timedelta(minutes=1)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def freeze(self) -> None:
        self.step = timedelta(0)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def database(tmp_path: Path, clock: FakeClock) -> Database:
    db = Database(tmp_path / "microfeed.sqlite3", clock=clock)
    db.initialize()
    return db


@pytest.fixture()
def service(database: Database) -> Microfeed:
    return Microfeed(database, credentials=CredentialStore(TEST_ROUNDS))


@pytest.fixture()
def make_user(service: Microfeed):
    counter = {"value": 0}

    def _make_user(name: str | None = None, email: str | None = None):
        counter["value"] += 1
        index = counter["value"]
        return service.create_user(
            name or f"Person {index}",
            email or f"person-{index}@example.com",
            PASSWORD,
            PASSWORD,
        )

    return _make_user
