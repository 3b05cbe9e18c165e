"""Exception types raised by the microfeed core."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


class MicrofeedError(Exception):
    """Base class for every error raised by the core."""


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ValidationError(MicrofeedError, ValueError):
    """One or more field constraints were violated."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors: List[FieldError] = list(errors)
        if not self.errors:
            raise ValueError("ValidationError requires at least one field error")
        super().__init__("; ".join(self.messages))

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([FieldError(field, message)])

    @property
    def messages(self) -> List[str]:
        return [error.message for error in self.errors]

    def for_field(self, field: str) -> List[str]:
        return [error.message for error in self.errors if error.field == field]


class NotFoundError(MicrofeedError, LookupError):
    """A lookup by id found no matching record."""


class ConflictError(MicrofeedError):
    """A uniqueness constraint was violated by a concurrent writer."""


__all__ = [
    "ConflictError",
    "FieldError",
    "MicrofeedError",
    "NotFoundError",
    "ValidationError",
]
