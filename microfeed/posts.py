"""Micropost storage."""
from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from .database import Database, serialize_datetime
from .errors import FieldError, NotFoundError, ValidationError
from .models import Micropost

logger = logging.getLogger("microfeed.posts")

MAX_CONTENT_LENGTH = 140

# Newest first; the id breaks ties between posts sharing a timestamp.
NEWEST_FIRST = "ORDER BY microposts.created_at DESC, microposts.id DESC"


def paginate(query: str, params: list, limit: Optional[int], offset: int) -> str:
    """Append LIMIT/OFFSET clauses to ``query`` and their values to ``params``."""

    if offset < 0:
        raise ValueError("offset must not be negative")
    if limit is None:
        if offset:
            params.extend([-1, offset])
            return f"{query} LIMIT ? OFFSET ?"
        return query
    if limit < 0:
        raise ValueError("limit must not be negative")
    params.extend([limit, offset])
    return f"{query} LIMIT ? OFFSET ?"


def validate_content(content: str) -> None:
    errors: List[FieldError] = []
    if not content or not content.strip():
        errors.append(FieldError("content", "Content can't be blank"))
    elif len(content) > MAX_CONTENT_LENGTH:
        errors.append(
            FieldError(
                "content",
                f"Content is too long (maximum is {MAX_CONTENT_LENGTH} characters)",
            )
        )
    if errors:
        raise ValidationError(errors)


class ContentStore:
    """Owns microposts and their link to the authoring user."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def create(self, user_id: int, content: str) -> Micropost:
        validate_content(content)
        with self._database.transaction() as conn:
            if not self._database.user_exists(conn, user_id):
                raise NotFoundError(f"User {user_id} not found")
            cursor = conn.execute(
                "INSERT INTO microposts (user_id, content, created_at) VALUES (?, ?, ?)",
                (user_id, content, serialize_datetime(self._database.now())),
            )
            row = conn.execute(
                "SELECT * FROM microposts WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()

        post = self._database.row_to_micropost(row)
        logger.info("User %s published micropost %s", user_id, post.id)
        return post

    def get(self, post_id: int) -> Optional[Micropost]:
        with self._database.connection() as conn:
            row = conn.execute("SELECT * FROM microposts WHERE id = ?", (post_id,)).fetchone()
        if row is None:
            return None
        return self._database.row_to_micropost(row)

    def destroy(self, post_id: int, owner_id: Optional[int] = None) -> None:
        """Delete a micropost.

        When ``owner_id`` is supplied the post is only removed if that user
        wrote it; a foreign post is reported exactly like a missing one.
        """

        query = "DELETE FROM microposts WHERE id = ?"
        params: list = [post_id]
        if owner_id is not None:
            query += " AND user_id = ?"
            params.append(owner_id)

        with self._database.transaction() as conn:
            cursor = conn.execute(query, params)
            if cursor.rowcount == 0:
                raise NotFoundError(f"Micropost {post_id} not found")

        logger.info("Micropost %s deleted", post_id)

    def destroy_all_by_user(
        self,
        user_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        if conn is None:
            with self._database.transaction() as own_conn:
                return self._delete_by_user(own_conn, user_id)
        return self._delete_by_user(conn, user_id)

    def list_by_user(
        self,
        user_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Micropost]:
        params: list = [user_id]
        query = paginate(
            f"SELECT * FROM microposts WHERE microposts.user_id = ? {NEWEST_FIRST}",
            params,
            limit,
            offset,
        )
        with self._database.transaction(immediate=False) as conn:
            if not self._database.user_exists(conn, user_id):
                raise NotFoundError(f"User {user_id} not found")
            rows = conn.execute(query, params).fetchall()
        return [self._database.row_to_micropost(row) for row in rows]

    def count_by_user(self, user_id: int) -> int:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM microposts WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row[0])

    @staticmethod
    def _delete_by_user(conn: sqlite3.Connection, user_id: int) -> int:
        cursor = conn.execute("DELETE FROM microposts WHERE user_id = ?", (user_id,))
        return cursor.rowcount


__all__ = ["ContentStore", "MAX_CONTENT_LENGTH", "validate_content"]
