"""
Payment and cancellation service
Debits and refunds the customer's on-file balance inside SERIALIZABLE transactions
"""
import logging

from database import get_db_manager

from .booking_service import BookingService
from .errors import (
    InsufficientFundsError, NotFoundError, ReservationError, StoreError, translate_store_errors
)
from .outcomes import Outcome, Status
from .session import SessionState

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for paying for and cancelling reservations"""

    @staticmethod
    def _locked_balance(cursor, username: str) -> int:
        cursor.execute("""
            SELECT balance
            FROM users
            WHERE username = %s
            FOR UPDATE
        """, (username,))
        return cursor.fetchone()['balance']

    @staticmethod
    def _adjust_balance(cursor, username: str, delta: int) -> int:
        cursor.execute("""
            UPDATE users
            SET balance = balance + %s
            WHERE username = %s
            RETURNING balance
        """, (delta, username))
        return cursor.fetchone()['balance']

    @staticmethod
    def _pay_transaction(db_manager, username: str, rid: int) -> int:
        """Check, debit and flag as one unit; returns the remaining balance"""
        with db_manager.serializable_transaction() as conn:
            with db_manager.cursor(conn) as cursor:
                reservation = BookingService.fetch_reservation(cursor, rid, username)

                # Paid, cancelled and missing are deliberately indistinguishable
                if reservation is None or reservation.paid or reservation.cancelled:
                    raise NotFoundError(Status.NOT_FOUND_OR_PAID, f"no unpaid reservation {rid} for {username}")

                balance = PaymentService._locked_balance(cursor, username)
                if balance < reservation.cost:
                    raise InsufficientFundsError(balance, reservation.cost)

                remaining = PaymentService._adjust_balance(cursor, username, -reservation.cost)

                cursor.execute("""
                    UPDATE reservations
                    SET paid = TRUE
                    WHERE rid = %s AND username = %s
                """, (rid, username))

                return remaining

    @staticmethod
    def pay(session: SessionState, reservation_id: int) -> Outcome:
        """
        Pay for a reservation from the user's balance

        Args:
            session: Logged-in session
            reservation_id: Reservation to pay for

        Returns:
            Outcome with the remaining balance; NOT_LOGGED_IN,
            NOT_FOUND_OR_PAID, INSUFFICIENT_FUNDS or STORE_ERROR otherwise
        """
        try:
            username = session.require_user()
        except ReservationError as e:
            return Outcome.failure(e, "Cannot pay, not logged in\n")

        db_manager = get_db_manager()

        try:
            with translate_store_errors("pay"):
                remaining = PaymentService._pay_transaction(db_manager, username, reservation_id)
        except StoreError as e:
            logger.warning("Payment of reservation %s failed: %s", reservation_id, e)
            return Outcome.failure(e, f"Failed to pay for reservation {reservation_id}\n")
        except InsufficientFundsError as e:
            logger.debug("Payment of reservation %s rejected: %s", reservation_id, e)
            return Outcome.failure(
                e, f"User has only {e.balance} in account but itinerary costs {e.cost}\n"
            )
        except NotFoundError as e:
            logger.debug("Payment of reservation %s rejected: %s", reservation_id, e)
            return Outcome.failure(
                e, f"Cannot find unpaid reservation {reservation_id} under user: {username}\n"
            )

        logger.info("Reservation %s paid by %s", reservation_id, username)
        return Outcome.success(
            f"Paid reservation: {reservation_id} remaining balance: {remaining}\n", remaining
        )

    @staticmethod
    def _cancel_transaction(db_manager, username: str, rid: int) -> int:
        """Refund (when paid) and flag as one unit; returns the amount refunded"""
        with db_manager.serializable_transaction() as conn:
            with db_manager.cursor(conn) as cursor:
                reservation = BookingService.fetch_reservation(cursor, rid, username)

                if reservation is None or reservation.cancelled:
                    raise NotFoundError(
                        Status.NOT_FOUND_OR_CANCELLED, f"no active reservation {rid} for {username}"
                    )

                refund = reservation.cost if reservation.paid else 0
                if refund:
                    PaymentService._adjust_balance(cursor, username, refund)

                # Seats stay consumed; the flight counters are not decremented
                cursor.execute("""
                    UPDATE reservations
                    SET cancelled = TRUE
                    WHERE rid = %s AND username = %s
                """, (rid, username))

                return refund

    @staticmethod
    def cancel(session: SessionState, reservation_id: int) -> Outcome:
        """
        Cancel a reservation, refunding its cost if it was paid

        The reservation ID stays retired in the store.

        Returns:
            Outcome with the refunded amount; NOT_LOGGED_IN,
            NOT_FOUND_OR_CANCELLED or STORE_ERROR otherwise
        """
        try:
            username = session.require_user()
        except ReservationError as e:
            return Outcome.failure(e, "Cannot cancel reservations, not logged in\n")

        db_manager = get_db_manager()
        failed = f"Failed to cancel reservation {reservation_id}\n"

        try:
            with translate_store_errors("cancel"):
                refund = PaymentService._cancel_transaction(db_manager, username, reservation_id)
        except StoreError as e:
            logger.warning("Cancelling reservation %s failed: %s", reservation_id, e)
            return Outcome.failure(e, failed)
        except NotFoundError as e:
            logger.debug("Cancelling reservation %s rejected: %s", reservation_id, e)
            return Outcome.failure(e, failed)

        session.reserved.pop(reservation_id, None)
        logger.info("Reservation %s cancelled by %s, refunded %s", reservation_id, username, refund)
        return Outcome.success(f"Canceled reservation {reservation_id}\n", refund)
