"""Boundary object exposing the microfeed operations to external callers."""
from __future__ import annotations

import logging
from typing import List, Optional

from .config import Settings
from .credentials import CredentialStore
from .database import Clock, Database
from .feed import FeedEngine
from .models import Micropost, Relationship, User, UserStats
from .posts import ContentStore
from .relationships import RelationshipGraph
from .users import UserDirectory

logger = logging.getLogger("microfeed.service")


class Microfeed:
    """Wires the credential store, directory, graph, content store and feed.

    Every method takes explicit user ids; there is no notion of a current
    user. Failures surface as :mod:`microfeed.errors` exceptions.
    """

    def __init__(self, database: Database, *, credentials: Optional[CredentialStore] = None) -> None:
        self._database = database
        self._credentials = credentials or CredentialStore()
        self._graph = RelationshipGraph(database)
        self._posts = ContentStore(database)
        self._users = UserDirectory(database, self._credentials, self._graph, self._posts)
        self._feed = FeedEngine(database)

    @property
    def database(self) -> Database:
        return self._database

    @property
    def users(self) -> UserDirectory:
        return self._users

    @property
    def graph(self) -> RelationshipGraph:
        return self._graph

    @property
    def posts(self) -> ContentStore:
        return self._posts

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        password_confirmation: str,
        *,
        admin: bool = False,
    ) -> User:
        return self._users.create(name, email, password, password_confirmation, admin=admin)

    def authenticate(self, email: str, password: str) -> Optional[User]:
        return self._users.authenticate(email, password)

    def authenticate_with_salt(self, user_id: int, salt: str) -> Optional[User]:
        return self._users.authenticate_with_salt(user_id, salt)

    def remember_token(self, user_id: int) -> str:
        return self._users.remember_token(user_id)

    def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._users.get_by_email(email)

    def list_users(self, limit: Optional[int] = None, offset: int = 0) -> List[User]:
        return self._users.list(limit=limit, offset=offset)

    def update_user(
        self,
        user_id: int,
        *,
        name: str,
        email: str,
        password: Optional[str] = None,
        password_confirmation: Optional[str] = None,
    ) -> User:
        return self._users.update(
            user_id,
            name=name,
            email=email,
            password=password,
            password_confirmation=password_confirmation,
        )

    def set_admin(self, user_id: int, admin: bool) -> User:
        return self._users.set_admin(user_id, admin)

    def toggle_admin(self, user_id: int) -> User:
        return self._users.toggle_admin(user_id)

    def destroy_user(self, user_id: int) -> None:
        self._users.destroy(user_id)

    # ------------------------------------------------------------------
    # Follow graph
    # ------------------------------------------------------------------
    def follow(self, follower_id: int, followed_id: int) -> Relationship:
        return self._graph.follow(follower_id, followed_id)

    def unfollow(self, follower_id: int, followed_id: int) -> bool:
        return self._graph.unfollow(follower_id, followed_id)

    def is_following(self, follower_id: int, followed_id: int) -> bool:
        return self._graph.is_following(follower_id, followed_id)

    def following(self, user_id: int) -> List[User]:
        return self._graph.following(user_id)

    def followers(self, user_id: int) -> List[User]:
        return self._graph.followers(user_id)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    def create_post(self, user_id: int, content: str) -> Micropost:
        return self._posts.create(user_id, content)

    def destroy_post(self, post_id: int, owner_id: Optional[int] = None) -> None:
        self._posts.destroy(post_id, owner_id=owner_id)

    def user_posts(self, user_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Micropost]:
        return self._posts.list_by_user(user_id, limit=limit, offset=offset)

    def feed(self, user_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Micropost]:
        return self._feed.feed(user_id, limit=limit, offset=offset)

    def stats(self, user_id: int) -> UserStats:
        self._users.require(user_id)
        return UserStats(
            user_id=user_id,
            microposts=self._posts.count_by_user(user_id),
            following=self._graph.following_count(user_id),
            followers=self._graph.followers_count(user_id),
        )


def create_service(settings: Settings, *, clock: Optional[Clock] = None) -> Microfeed:
    """Open (and if necessary create) the database described by ``settings``."""

    database = Database(settings.database_path, busy_timeout=settings.busy_timeout, clock=clock)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return Microfeed(database, credentials=CredentialStore(settings.password_rounds))


__all__ = ["Microfeed", "create_service"]
