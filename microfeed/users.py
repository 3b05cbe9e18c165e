"""User accounts: validation, lookup, authentication and removal."""
from __future__ import annotations

import hmac
import logging
import re
import sqlite3
from typing import List, Optional

from .credentials import CredentialStore, decode_salt, encode_salt
from .database import Database, serialize_datetime
from .errors import ConflictError, FieldError, NotFoundError, ValidationError
from .models import User
from .posts import ContentStore, paginate
from .relationships import RelationshipGraph

logger = logging.getLogger("microfeed.users")

MAX_NAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 40

EMAIL_PATTERN = re.compile(
    r"^[\w+\-.]+@[a-z\d\-]+(\.[a-z\d\-]+)*\.[a-z]+$",
    re.IGNORECASE | re.ASCII,
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_name(name: str, errors: List[FieldError]) -> None:
    if not name or not name.strip():
        errors.append(FieldError("name", "Name can't be blank"))
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(
            FieldError("name", f"Name is too long (maximum is {MAX_NAME_LENGTH} characters)")
        )


def _validate_email(email: str, errors: List[FieldError]) -> bool:
    if not email or not email.strip():
        errors.append(FieldError("email", "Email can't be blank"))
        return False
    candidate = email.strip()
    local_part = candidate.split("@", 1)[0]
    if (
        not EMAIL_PATTERN.match(candidate)
        or ".." in candidate
        or local_part.startswith(".")
        or local_part.endswith(".")
    ):
        errors.append(FieldError("email", "Email is invalid"))
        return False
    return True


def _validate_password(password: str, confirmation: Optional[str], errors: List[FieldError]) -> None:
    if not password:
        errors.append(FieldError("password", "Password can't be blank"))
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(
            FieldError(
                "password",
                f"Password is too short (minimum is {MIN_PASSWORD_LENGTH} characters)",
            )
        )
    elif len(password) > MAX_PASSWORD_LENGTH:
        errors.append(
            FieldError(
                "password",
                f"Password is too long (maximum is {MAX_PASSWORD_LENGTH} characters)",
            )
        )
    if password != confirmation:
        errors.append(FieldError("password_confirmation", "Password doesn't match confirmation"))


class UserDirectory:
    """Owns user records and enforces identity invariants."""

    def __init__(
        self,
        database: Database,
        credentials: CredentialStore,
        graph: RelationshipGraph,
        posts: ContentStore,
    ) -> None:
        self._database = database
        self._credentials = credentials
        self._graph = graph
        self._posts = posts
        # Verified against when an email is unknown so both failure paths do the same work.
        self._dummy_salt = credentials.generate_salt()
        self._dummy_hash = credentials.hash("not-a-real-password", self._dummy_salt)

    # ------------------------------------------------------------------
    # Creation and updates
    # ------------------------------------------------------------------
    def create(
        self,
        name: str,
        email: str,
        password: str,
        password_confirmation: str,
        *,
        admin: bool = False,
    ) -> User:
        """Validate every field and persist a new user, or raise ``ValidationError``."""

        errors: List[FieldError] = []
        _validate_name(name, errors)
        email_ok = _validate_email(email, errors)
        _validate_password(password, password_confirmation, errors)

        normalized_email = normalize_email(email) if email_ok else ""
        if email_ok:
            with self._database.connection() as conn:
                if self._email_taken(conn, normalized_email):
                    errors.append(FieldError("email", "Email has already been taken"))
        if errors:
            raise ValidationError(errors)

        salt = self._credentials.generate_salt()
        password_hash = self._credentials.hash(password, salt)
        timestamp = serialize_datetime(self._database.now())

        try:
            with self._database.transaction() as conn:
                # Re-checked under the write lock.
                if self._email_taken(conn, normalized_email):
                    raise ValidationError.single("email", "Email has already been taken")
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, salt, admin, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        normalized_email,
                        password_hash,
                        encode_salt(salt),
                        int(bool(admin)),
                        timestamp,
                        timestamp,
                    ),
                )
                row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
        except sqlite3.IntegrityError as exc:
            raise ConflictError("A user with that email already exists") from exc

        user = self._database.row_to_user(row)
        logger.info("Created user %s", user.id)
        return user

    def update(
        self,
        user_id: int,
        *,
        name: str,
        email: str,
        password: Optional[str] = None,
        password_confirmation: Optional[str] = None,
    ) -> User:
        """Change a user's profile; a new password is re-salted and re-hashed."""

        errors: List[FieldError] = []
        _validate_name(name, errors)
        email_ok = _validate_email(email, errors)
        change_password = bool(password) or bool(password_confirmation)
        if change_password:
            _validate_password(password or "", password_confirmation, errors)

        normalized_email = normalize_email(email) if email_ok else ""
        assignments = ["name = ?", "email = ?", "updated_at = ?"]
        values: list = [name, normalized_email, serialize_datetime(self._database.now())]
        if change_password and password and not errors:
            salt = self._credentials.generate_salt()
            assignments.extend(["password_hash = ?", "salt = ?"])
            values.extend([self._credentials.hash(password, salt), encode_salt(salt)])

        try:
            with self._database.transaction() as conn:
                if not self._database.user_exists(conn, user_id):
                    raise NotFoundError(f"User {user_id} not found")
                if email_ok and self._email_taken(conn, normalized_email, exclude_id=user_id):
                    errors.append(FieldError("email", "Email has already been taken"))
                if errors:
                    raise ValidationError(errors)
                conn.execute(
                    f"UPDATE users SET {', '.join(assignments)} WHERE id = ?",
                    (*values, user_id),
                )
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        except sqlite3.IntegrityError as exc:
            raise ConflictError("A user with that email already exists") from exc

        logger.info("Updated user %s", user_id)
        return self._database.row_to_user(row)

    def set_admin(self, user_id: int, admin: bool) -> User:
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET admin = ?, updated_at = ? WHERE id = ?",
                (int(bool(admin)), serialize_datetime(self._database.now()), user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        logger.info("User %s admin flag set to %s", user_id, bool(admin))
        return self._database.row_to_user(row)

    def toggle_admin(self, user_id: int) -> User:
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET admin = NOT admin, updated_at = ? WHERE id = ?",
                (serialize_datetime(self._database.now()), user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        user = self._database.row_to_user(row)
        logger.info("User %s admin flag set to %s", user_id, user.admin)
        return user

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, user_id: int) -> Optional[User]:
        with self._database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._database.row_to_user(row)

    def require(self, user_id: int) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        row = self._credential_row(email)
        if row is None:
            return None
        return self._database.row_to_user(row)

    def list(self, limit: Optional[int] = None, offset: int = 0) -> List[User]:
        params: list = []
        query = paginate("SELECT * FROM users ORDER BY id", params, limit, offset)
        with self._database.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._database.row_to_user(row) for row in rows]

    def count(self) -> int:
        with self._database.connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user for a matching email/password pair, otherwise ``None``."""

        row = self._credential_row(email) if email else None
        if row is None:
            self._credentials.verify(password or "", self._dummy_salt, self._dummy_hash)
            return None
        if not self._credentials.verify(password, decode_salt(row["salt"]), row["password_hash"]):
            return None
        return self._database.row_to_user(row)

    def has_password(self, user_id: int, password: str) -> bool:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT salt, password_hash FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return False
        return self._credentials.verify(password, decode_salt(row["salt"]), row["password_hash"])

    def authenticate_with_salt(self, user_id: int, salt: str) -> Optional[User]:
        """Resolve a remember token (user id plus stored salt) to its user."""

        with self._database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None or not salt:
            return None
        if not hmac.compare_digest(str(row["salt"]).encode("utf-8"), salt.encode("utf-8")):
            return None
        return self._database.row_to_user(row)

    def remember_token(self, user_id: int) -> str:
        """Return the encoded salt that ``authenticate_with_salt`` accepts."""

        with self._database.connection() as conn:
            row = conn.execute("SELECT salt FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"User {user_id} not found")
        return str(row["salt"])

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------
    def destroy(self, user_id: int) -> None:
        """Delete the user together with their posts and every edge touching them."""

        with self._database.transaction() as conn:
            if not self._database.user_exists(conn, user_id):
                raise NotFoundError(f"User {user_id} not found")
            posts = self._posts.destroy_all_by_user(user_id, conn)
            edges = self._graph.remove_all_edges_for(user_id, conn)
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

        logger.info(
            "Destroyed user %s along with %s microposts and %s relationships",
            user_id,
            posts,
            edges,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _credential_row(self, email: str) -> Optional[sqlite3.Row]:
        with self._database.connection() as conn:
            return conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()

    @staticmethod
    def _email_taken(
        conn: sqlite3.Connection,
        email: str,
        exclude_id: Optional[int] = None,
    ) -> bool:
        if exclude_id is None:
            row = conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone()
        else:
            row = conn.execute(
                "SELECT 1 FROM users WHERE email = ? AND id <> ?",
                (email, exclude_id),
            ).fetchone()
        return row is not None


__all__ = [
    "MAX_NAME_LENGTH",
    "MAX_PASSWORD_LENGTH",
    "MIN_PASSWORD_LENGTH",
    "UserDirectory",
    "normalize_email",
]
