"""Domain models returned by the microfeed core."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """A registered account. Credential material is never carried here."""

    id: int
    name: str
    email: str
    admin: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Micropost:
    """A short text post owned by a single user."""

    id: int
    user_id: int
    content: str
    created_at: datetime


@dataclass(frozen=True)
class Relationship:
    """A directed follow edge: ``follower_id`` subscribes to ``followed_id``."""

    id: int
    follower_id: int
    followed_id: int
    created_at: datetime


@dataclass(frozen=True)
class UserStats:
    user_id: int
    microposts: int
    following: int
    followers: int


__all__ = ["Micropost", "Relationship", "User", "UserStats"]
