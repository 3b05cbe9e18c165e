"""SQLite-backed persistence for users, microposts and relationships."""
from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional

from .models import Micropost, Relationship, User

Clock = Callable[[], datetime]


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "microfeed.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def serialize_datetime(value: datetime) -> str:
    # Fixed-width UTC text so that lexical order in SQL matches chronological order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL COLLATE NOCASE UNIQUE,
    password_hash TEXT NOT NULL,
    salt TEXT NOT NULL,
    admin INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS microposts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS relationships (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    follower_id INTEGER NOT NULL REFERENCES users(id),
    followed_id INTEGER NOT NULL REFERENCES users(id),
    created_at TEXT NOT NULL,
    UNIQUE (follower_id, followed_id),
    CHECK (follower_id <> followed_id)
);

CREATE INDEX IF NOT EXISTS idx_microposts_user_created ON microposts(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_relationships_follower_id ON relationships(follower_id);
CREATE INDEX IF NOT EXISTS idx_relationships_followed_id ON relationships(followed_id);
"""


class Database:
    """Connection factory and row mapping shared by the core components."""

    def __init__(
        self,
        path: Path,
        *,
        busy_timeout: float = 5.0,
        clock: Optional[Clock] = None,
    ) -> None:
        _ensure_directory(path)
        self._path = path
        self._busy_timeout = busy_timeout
        self._clock: Clock = clock or _current_timestamp

    @property
    def path(self) -> Path:
        return self._path

    def now(self) -> datetime:
        return self._clock()

    def _connect(self) -> sqlite3.Connection:
        # Transactions are issued explicitly, so the driver runs in autocommit mode.
        conn = sqlite3.connect(
            self._path,
            timeout=self._busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(_SCHEMA)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for single-statement reads."""

        with closing(self._connect()) as conn:
            yield conn

    @contextmanager
    def transaction(self, *, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements as one atomic unit.

        Write transactions take the database write lock up front
        (``BEGIN IMMEDIATE``) so that check-then-insert sequences cannot
        interleave with another writer.
        """

        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.rollback()
                raise
            conn.commit()

    # ------------------------------------------------------------------
    # Shared lookups
    # ------------------------------------------------------------------
    @staticmethod
    def user_exists(conn: sqlite3.Connection, user_id: int) -> bool:
        row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------
    @staticmethod
    def row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            admin=bool(row["admin"]),
            created_at=parse_datetime(str(row["created_at"])),
            updated_at=parse_datetime(str(row["updated_at"])),
        )

    @staticmethod
    def row_to_micropost(row: sqlite3.Row) -> Micropost:
        return Micropost(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            content=str(row["content"]),
            created_at=parse_datetime(str(row["created_at"])),
        )

    @staticmethod
    def row_to_relationship(row: sqlite3.Row) -> Relationship:
        return Relationship(
            id=int(row["id"]),
            follower_id=int(row["follower_id"]),
            followed_id=int(row["followed_id"]),
            created_at=parse_datetime(str(row["created_at"])),
        )


__all__ = [
    "Clock",
    "Database",
    "parse_datetime",
    "resolve_database_path",
    "serialize_datetime",
]
