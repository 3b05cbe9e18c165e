"""Core library for the microfeed social backend."""

from __future__ import annotations

from .config import Settings, load_settings
from .credentials import CredentialStore
from .database import Database, resolve_database_path
from .errors import ConflictError, FieldError, MicrofeedError, NotFoundError, ValidationError
from .models import Micropost, Relationship, User, UserStats
from .service import Microfeed, create_service

__all__ = [
    "ConflictError",
    "CredentialStore",
    "Database",
    "FieldError",
    "Micropost",
    "Microfeed",
    "MicrofeedError",
    "NotFoundError",
    "Relationship",
    "Settings",
    "User",
    "UserStats",
    "ValidationError",
    "create_service",
    "load_settings",
    "resolve_database_path",
]
