"""Directed follow graph between users."""
from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from .database import Database, serialize_datetime
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Relationship, User

logger = logging.getLogger("microfeed.relationships")


class RelationshipGraph:
    """Owns follow edges and answers membership and listing queries.

    Edges are unique per ordered (follower, followed) pair and never point
    from a user to themself.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def follow(self, follower_id: int, followed_id: int) -> Relationship:
        """Create the edge ``follower_id -> followed_id``.

        Following an already-followed user returns the existing edge.
        """

        if follower_id == followed_id:
            raise ValidationError.single("followed_id", "Users can't follow themselves")

        created = False
        try:
            with self._database.transaction() as conn:
                for user_id in (follower_id, followed_id):
                    if not self._database.user_exists(conn, user_id):
                        raise NotFoundError(f"User {user_id} not found")

                row = self._select_edge(conn, follower_id, followed_id)
                if row is None:
                    cursor = conn.execute(
                        """
                        INSERT INTO relationships (follower_id, followed_id, created_at)
                        VALUES (?, ?, ?)
                        """,
                        (follower_id, followed_id, serialize_datetime(self._database.now())),
                    )
                    row = conn.execute(
                        "SELECT * FROM relationships WHERE id = ?",
                        (cursor.lastrowid,),
                    ).fetchone()
                    created = True
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                f"User {follower_id} could not follow user {followed_id}"
            ) from exc

        if created:
            logger.info("User %s is now following user %s", follower_id, followed_id)
        return self._database.row_to_relationship(row)

    def unfollow(self, follower_id: int, followed_id: int) -> bool:
        """Remove the edge if present. Returns ``True`` when an edge was removed."""

        with self._database.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM relationships WHERE follower_id = ? AND followed_id = ?",
                (follower_id, followed_id),
            )
            removed = cursor.rowcount > 0

        if removed:
            logger.info("User %s stopped following user %s", follower_id, followed_id)
        return removed

    def get(self, follower_id: int, followed_id: int) -> Optional[Relationship]:
        with self._database.connection() as conn:
            row = self._select_edge(conn, follower_id, followed_id)
        if row is None:
            return None
        return self._database.row_to_relationship(row)

    def is_following(self, follower_id: int, followed_id: int) -> bool:
        return self.get(follower_id, followed_id) is not None

    def following(self, user_id: int) -> List[User]:
        """Users that ``user_id`` follows."""

        return self._list_users(
            user_id,
            """
            SELECT users.* FROM users
            INNER JOIN relationships ON relationships.followed_id = users.id
            WHERE relationships.follower_id = ?
            ORDER BY users.id
            """,
        )

    def followers(self, user_id: int) -> List[User]:
        """Users that follow ``user_id``."""

        return self._list_users(
            user_id,
            """
            SELECT users.* FROM users
            INNER JOIN relationships ON relationships.follower_id = users.id
            WHERE relationships.followed_id = ?
            ORDER BY users.id
            """,
        )

    def following_count(self, user_id: int) -> int:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM relationships WHERE follower_id = ?",
                (user_id,),
            ).fetchone()
        return int(row[0])

    def followers_count(self, user_id: int) -> int:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM relationships WHERE followed_id = ?",
                (user_id,),
            ).fetchone()
        return int(row[0])

    def remove_all_edges_for(
        self,
        user_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Delete every edge where ``user_id`` is follower or followed.

        When ``conn`` is given the delete joins the caller's transaction.
        """

        if conn is None:
            with self._database.transaction() as own_conn:
                return self._remove_edges(own_conn, user_id)
        return self._remove_edges(conn, user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _select_edge(
        conn: sqlite3.Connection, follower_id: int, followed_id: int
    ) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT * FROM relationships WHERE follower_id = ? AND followed_id = ?",
            (follower_id, followed_id),
        ).fetchone()

    @staticmethod
    def _remove_edges(conn: sqlite3.Connection, user_id: int) -> int:
        cursor = conn.execute(
            "DELETE FROM relationships WHERE follower_id = ? OR followed_id = ?",
            (user_id, user_id),
        )
        return cursor.rowcount

    def _list_users(self, user_id: int, query: str) -> List[User]:
        with self._database.transaction(immediate=False) as conn:
            if not self._database.user_exists(conn, user_id):
                raise NotFoundError(f"User {user_id} not found")
            rows = conn.execute(query, (user_id,)).fetchall()
        return [self._database.row_to_user(row) for row in rows]


__all__ = ["RelationshipGraph"]
