"""
Failure taxonomy for reservation operations

Engines raise these inside a transaction scope so the scope rolls back;
each public operation catches them at its boundary and returns an Outcome.
"""
from contextlib import contextmanager

import psycopg2
from psycopg2 import errorcodes

from .outcomes import Status

# SQLSTATEs PostgreSQL uses when it aborts one side of a conflict
_CONFLICT_CODES = {
    errorcodes.SERIALIZATION_FAILURE,
    errorcodes.DEADLOCK_DETECTED,
}


class ReservationError(Exception):
    """Base class for every business or store failure"""

    def __init__(self, status: Status, message: str = ""):
        super().__init__(message or status.value)
        self.status = status


class PreconditionError(ReservationError):
    """Not logged in, already logged in, or an argument out of range"""


class NotFoundError(ReservationError):
    """Itinerary index or reservation not resolvable for this session"""


class ConflictError(ReservationError):
    """Same-day double booking, no seats left, or duplicate account"""


class InsufficientFundsError(ReservationError):
    """Balance does not cover the reservation cost"""

    def __init__(self, balance: int, cost: int):
        super().__init__(
            Status.INSUFFICIENT_FUNDS,
            f"balance {balance} does not cover cost {cost}"
        )
        self.balance = balance
        self.cost = cost


class StoreError(ReservationError):
    """Connectivity or unexpected failure reported by the backing store"""

    retryable = False

    def __init__(self, message: str):
        super().__init__(Status.STORE_ERROR, message)


class SerializationConflictError(StoreError):
    """The store aborted this transaction in favour of a concurrent one"""

    retryable = True


@contextmanager
def translate_store_errors(operation: str):
    """
    Re-raise any psycopg2 error as a StoreError

    psycopg2 refuses to adapt some parameters (a string holding a NUL byte)
    with a plain ValueError before anything reaches the server; that is
    reported as a StoreError too.

    Usage:
        with translate_store_errors("book"):
            with db_manager.serializable_transaction() as conn:
                ...
    """
    try:
        yield
    except psycopg2.Error as e:
        if isinstance(e, psycopg2.extensions.TransactionRollbackError) or e.pgcode in _CONFLICT_CODES:
            raise SerializationConflictError(f"{operation}: concurrent update, resubmit") from e
        raise StoreError(f"{operation}: {e}".strip()) from e
    except ValueError as e:
        raise StoreError(f"{operation}: cannot send parameters: {e}") from e
