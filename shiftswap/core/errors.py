"""Canonical error types for the schedule and trade engine.

Every failure surfaced by shiftswap is one of these classes. Each carries a
``kind`` that the request layer maps to a response category:

- validation: malformed or rule-violating input
- not_found: referenced schedule, user, group or trade is absent
- unauthorized: caller lacks the required relationship to the resource
- conflict: uniqueness violation
- server: persistence failure, timeout, lost optimistic race, or a broken
  internal invariant
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    CONFLICT = "conflict"
    SERVER = "server"


class ShiftSwapError(RuntimeError):
    """Base class for all engine errors.

    Attributes:
        kind: Error category used by the request layer
        message: Human-readable description
    """

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequestError(ShiftSwapError):
    """Raised when input is malformed or violates a trade/schedule rule."""

    kind = ErrorKind.VALIDATION


class NotFoundError(ShiftSwapError):
    """Raised when a referenced schedule, user, group or trade does not exist."""

    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(ShiftSwapError):
    """Raised when the caller is not allowed to act on the resource."""

    kind = ErrorKind.UNAUTHORIZED


class ConflictError(ShiftSwapError):
    """Raised on uniqueness violations."""

    kind = ErrorKind.CONFLICT


class ServerError(ShiftSwapError):
    """Raised when persistence fails. The transaction has been rolled back."""

    kind = ErrorKind.SERVER


class PersistenceTimeoutError(ServerError):
    """Raised when a lock or database call exceeds its timeout."""


class ConcurrentModificationError(ServerError):
    """Raised when a version-conditioned write lost against a concurrent writer.

    Retried by the trade service; surfaces only once attempts are exhausted.
    """


class ConsistencyError(ServerError):
    """Raised when an internal invariant is broken (e.g. corrupt index coordinates).

    Non-recoverable for the affected operation. Nothing is patched.
    """


class CorruptScheduleError(ConsistencyError):
    """Raised when a generated schedule contains duplicate unit ids."""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"corrupt schedule: duplicate unit id {unit_id}")
