"""Password hashing and verification."""
from __future__ import annotations

import base64
import binascii
import hmac
import secrets

from passlib.hash import pbkdf2_sha256

from .errors import ValidationError

DEFAULT_ROUNDS = 29_000
SALT_BYTES = 16


def encode_salt(salt: bytes) -> str:
    return base64.b64encode(salt).decode("ascii")


def decode_salt(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"))


class CredentialStore:
    """Salted PBKDF2-SHA256 hashing with constant-time verification.

    The store is pure computation: it performs no I/O and keeps no state
    other than the configured round count.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if rounds < 1:
            raise ValueError("PBKDF2 rounds must be a positive integer")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    @staticmethod
    def generate_salt() -> bytes:
        return secrets.token_bytes(SALT_BYTES)

    def hash(self, password: str, salt: bytes) -> str:
        """Return the encoded hash of ``password`` under ``salt``.

        The result is deterministic for a given (password, salt, rounds)
        triple and embeds the round count so that later verification does
        not depend on the current configuration.
        """

        if not password:
            raise ValidationError.single("password", "Password can't be blank")
        return self._hash(password, salt, self._rounds)

    def verify(self, candidate: str, salt: bytes, stored_hash: str) -> bool:
        if not candidate or not stored_hash:
            return False
        try:
            rounds = pbkdf2_sha256.from_string(stored_hash).rounds
            calculated = self._hash(candidate, salt, rounds)
        except (ValueError, TypeError, binascii.Error):
            return False
        return hmac.compare_digest(calculated.encode("utf-8"), stored_hash.encode("utf-8"))

    @staticmethod
    def _hash(password: str, salt: bytes, rounds: int) -> str:
        return pbkdf2_sha256.using(salt=salt, rounds=rounds).hash(password)


__all__ = ["CredentialStore", "DEFAULT_ROUNDS", "decode_salt", "encode_salt"]
