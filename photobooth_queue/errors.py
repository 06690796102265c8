"""Shared error types.

Only invalid local input is raised to callers. Sync and persistence problems
are logged and absorbed where they happen.
"""

from __future__ import annotations

from dataclasses import dataclass


class QueueError(Exception):
    """Base class for errors raised by the queue core."""


class ValidationError(QueueError):
    """Rejected local input (e.g. an empty name on registration)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: ValidationError) -> "ErrorResponse":
        return cls(code=exc.code, message=exc.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"
