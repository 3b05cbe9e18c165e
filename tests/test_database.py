from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from microfeed.database import Database, parse_datetime, resolve_database_path, serialize_datetime


def test_initialize_creates_tables(database: Database) -> None:
    with database.connection() as conn:
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        }
    assert {"users", "microposts", "relationships"} <= tables


def test_initialize_is_idempotent(database: Database) -> None:
    database.initialize()
    database.initialize()


def test_transaction_rolls_back_on_error(database: Database) -> None:
    with pytest.raises(RuntimeError):
        with database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (name, email, password_hash, salt, created_at, updated_at)
                VALUES ('Ghost', 'ghost@example.com', 'x', 'y', 'now', 'now')
                """
            )
            raise RuntimeError("abort")

    with database.connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0


def test_schema_enforces_graph_constraints(database: Database, make_user) -> None:
    a, b = make_user(), make_user()
    with database.transaction() as conn:
        conn.execute(
            "INSERT INTO relationships (follower_id, followed_id, created_at) VALUES (?, ?, 'now')",
            (a.id, b.id),
        )

    statements = [
        ("INSERT INTO relationships (follower_id, followed_id, created_at) VALUES (?, ?, 'now')", (a.id, b.id)),
        ("INSERT INTO relationships (follower_id, followed_id, created_at) VALUES (?, ?, 'now')", (a.id, a.id)),
        ("INSERT INTO relationships (follower_id, followed_id, created_at) VALUES (?, ?, 'now')", (a.id, 999)),
        ("INSERT INTO microposts (user_id, content, created_at) VALUES (?, 'x', 'now')", (999,)),
    ]
    for statement, params in statements:
        with pytest.raises(sqlite3.IntegrityError):
            with database.transaction() as conn:
                conn.execute(statement, params)


def test_email_uniqueness_ignores_case(database: Database, make_user) -> None:
    make_user(email="case@example.com")
    with pytest.raises(sqlite3.IntegrityError):
        with database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (name, email, password_hash, salt, created_at, updated_at)
                VALUES ('Dup', 'CASE@example.com', 'x', 'y', 'now', 'now')
                """
            )


def test_serialized_timestamps_sort_chronologically() -> None:
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    earlier = serialize_datetime(base)
    later = serialize_datetime(base + timedelta(microseconds=1))
    shifted = serialize_datetime(base.astimezone(timezone(timedelta(hours=2))) + timedelta(seconds=1))

    assert earlier < later < shifted
    assert parse_datetime(earlier) == base


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2024, 5, 1, 8, 30)
    assert parse_datetime(serialize_datetime(naive)) == naive.replace(tzinfo=timezone.utc)


def test_resolve_database_path(tmp_path: Path) -> None:
    assert resolve_database_path(str(tmp_path / "x.sqlite3")) == (tmp_path / "x.sqlite3").resolve()
    assert resolve_database_path(None).name == "microfeed.sqlite3"
