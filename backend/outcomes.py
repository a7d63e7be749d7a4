"""
Tagged results returned by every customer-facing operation
"""
from dataclasses import dataclass
from typing import Any, Optional
import enum


class Status(enum.Enum):
    """Outcome status enumeration"""
    SUCCESS = "success"
    EMPTY = "empty"
    ALREADY_LOGGED_IN = "already_logged_in"
    LOGIN_FAILED = "login_failed"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_PASSWORD = "invalid_password"
    DUPLICATE_USER = "duplicate_user"
    NOT_LOGGED_IN = "not_logged_in"
    NO_SUCH_ITINERARY = "no_such_itinerary"
    SAME_DAY_CONFLICT = "same_day_conflict"
    NO_CAPACITY = "no_capacity"
    NOT_FOUND_OR_PAID = "not_found_or_paid"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NOT_FOUND_OR_CANCELLED = "not_found_or_cancelled"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class Outcome:
    """
    Result of one operation

    Attributes:
        status: What happened
        message: Human-readable status line(s)
        value: Payload on success (username, itineraries, reservation ID,
            remaining balance or reservations, depending on the operation)
        error: The ReservationError that caused a failure, if any
    """
    status: Status
    message: str
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    @classmethod
    def success(cls, message: str, value: Any = None) -> 'Outcome':
        return cls(Status.SUCCESS, message, value)

    @classmethod
    def failure(cls, error, message: str) -> 'Outcome':
        """Build a failed outcome whose status comes from ``error``"""
        return cls(error.status, message, error=error)

    def __str__(self):
        return self.message
