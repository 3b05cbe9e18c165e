"""Reverse-chronological status feed."""
from __future__ import annotations

from typing import List, Optional

from .database import Database
from .errors import NotFoundError
from .models import Micropost
from .posts import NEWEST_FIRST, paginate

# The follow set is resolved inside the same statement as the post scan, so a
# feed always reflects one committed state of both tables.
_FEED_QUERY = f"""
SELECT microposts.* FROM microposts
WHERE microposts.user_id = ?
   OR microposts.user_id IN (
        SELECT followed_id FROM relationships WHERE follower_id = ?
   )
{NEWEST_FIRST}
"""


class FeedEngine:
    def __init__(self, database: Database) -> None:
        self._database = database

    def feed(
        self,
        user_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Micropost]:
        """Posts by ``user_id`` and by everyone they follow, newest first."""

        params: list = [user_id, user_id]
        query = paginate(_FEED_QUERY, params, limit, offset)
        with self._database.transaction(immediate=False) as conn:
            if not self._database.user_exists(conn, user_id):
                raise NotFoundError(f"User {user_id} not found")
            rows = conn.execute(query, params).fetchall()
        return [self._database.row_to_micropost(row) for row in rows]


__all__ = ["FeedEngine"]
