"""
Booking service with concurrent seat reservation handling
Implements SERIALIZABLE transactions to prevent race conditions
"""
import logging
from typing import List, Optional

from database import Itinerary, Reservation, row_to_flight, row_to_reservation, get_db_manager

from .errors import (
    ConflictError, ReservationError, SerializationConflictError, StoreError, translate_store_errors
)
from .flight_service import FlightService, flight_columns
from .outcomes import Outcome, Status
from .session import SessionState

logger = logging.getLogger(__name__)

BOOKING_FAILED = "Booking failed\n"

_RESERVATION_COLUMNS = "r.rid, r.username, r.trip_date, r.fid1, r.fid2, r.cost, r.paid, r.cancelled"


class BookingService:
    """Service for booking operations with transaction safety"""

    @staticmethod
    def _allocate_reservation_id(cursor) -> int:
        """
        Take the next reservation ID from the store-owned allocator

        The allocator row stays locked until commit, so IDs follow commit
        order and a rolled-back booking gives its ID back.
        """
        cursor.execute("""
            UPDATE reservation_ids
            SET next_rid = next_rid + 1
            RETURNING next_rid - 1 AS rid
        """)
        return cursor.fetchone()['rid']

    @staticmethod
    def fetch_reservation(cursor, rid: int, username: str) -> Optional[Reservation]:
        """Load one of ``username``'s reservations, locking it for the transaction"""
        cursor.execute(f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM reservations r
            WHERE r.rid = %s AND r.username = %s
            FOR UPDATE
        """, (rid, username))
        return row_to_reservation(cursor.fetchone())

    @staticmethod
    def _book_transaction(db_manager, username: str, itinerary: Itinerary) -> int:
        """Same-day check, capacity check, seat increments and insert as one unit"""
        with db_manager.serializable_transaction() as conn:
            with db_manager.cursor(conn) as cursor:
                # Cancelled reservations still count
                cursor.execute("""
                    SELECT count(*) AS cnt
                    FROM reservations
                    WHERE username = %s AND trip_date = %s
                """, (username, itinerary.trip_date))
                if cursor.fetchone()['cnt'] != 0:
                    raise ConflictError(
                        Status.SAME_DAY_CONFLICT,
                        f"{username} already has a reservation on day {itinerary.trip_date}"
                    )

                # Lock legs in fid order so two connecting bookings cannot deadlock
                fids = sorted(leg.fid for leg in itinerary.legs)
                for fid in fids:
                    if FlightService.seats_left(cursor, fid) <= 0:
                        raise ConflictError(Status.NO_CAPACITY, f"flight {fid} is full")

                for fid in fids:
                    if not FlightService.take_seat(cursor, fid):
                        raise ConflictError(Status.NO_CAPACITY, f"flight {fid} is full")

                rid = BookingService._allocate_reservation_id(cursor)

                cursor.execute("""
                    INSERT INTO reservations (rid, username, trip_date, fid1, fid2, cost)
                    VALUES (%s, %s, %s, %s, %s, %s)
                """, (rid, username, itinerary.trip_date, itinerary.first.fid,
                      itinerary.second.fid if itinerary.second else None, itinerary.cost))

                return rid

    @staticmethod
    def _full_leg(db_manager, itinerary: Itinerary) -> Optional[int]:
        """First leg that has no seats left as of now, read without locking"""
        fids = [leg.fid for leg in itinerary.legs]
        with db_manager.get_cursor() as cursor:
            cursor.execute("""
                SELECT fid
                FROM flights
                WHERE fid = ANY(%s) AND num_booked >= capacity
                ORDER BY fid
                LIMIT 1
            """, (fids,))
            row = cursor.fetchone()
            return row['fid'] if row else None

    @staticmethod
    def book(session: SessionState, itinerary_index: int) -> Outcome:
        """
        Book an itinerary from the session's latest search

        Args:
            session: Logged-in session
            itinerary_index: Index into the latest search results

        Returns:
            Outcome with the new reservation ID; NOT_LOGGED_IN,
            NO_SUCH_ITINERARY, SAME_DAY_CONFLICT, NO_CAPACITY or STORE_ERROR
            otherwise. Nothing is retried: when the store aborts this booking in
            favour of a concurrent one, the failure is reported as NO_CAPACITY
            if a leg has filled up meanwhile and as STORE_ERROR otherwise.

            Every booking also advances the single reservation_ids row, so two
            bookings committing at the same time conflict even on unrelated
            flights and one of them fails with STORE_ERROR. That row is what
            keeps reservation IDs contiguous and in commit order.
        """
        try:
            username = session.require_user()
        except ReservationError as e:
            return Outcome.failure(e, "Cannot book reservations, not logged in\n")

        try:
            itinerary = session.itinerary(itinerary_index)
        except ReservationError as e:
            return Outcome.failure(e, f"No such itinerary {itinerary_index}\n")

        db_manager = get_db_manager()

        try:
            with translate_store_errors("book"):
                rid = BookingService._book_transaction(db_manager, username, itinerary)
        except SerializationConflictError as e:
            return BookingService._conflict_outcome(db_manager, username, itinerary, e)
        except StoreError as e:
            logger.warning("Booking for %s failed: %s", username, e)
            return Outcome.failure(e, BOOKING_FAILED)
        except ConflictError as e:
            logger.debug("Booking for %s rejected: %s", username, e)
            if e.status is Status.SAME_DAY_CONFLICT:
                return Outcome.failure(e, "You cannot book two flights in the same day\n")
            return Outcome.failure(e, BOOKING_FAILED)

        session.reserved[rid] = itinerary
        logger.info("Reservation %s booked by %s", rid, username)
        return Outcome.success(f"Booked flight(s), reservation ID: {rid}\n", rid)

    @staticmethod
    def _conflict_outcome(db_manager, username: str, itinerary: Itinerary,
                          error: SerializationConflictError) -> Outcome:
        """Report a booking the store aborted, as NO_CAPACITY when a leg is now full"""
        try:
            with translate_store_errors("book"):
                fid = BookingService._full_leg(db_manager, itinerary)
        except StoreError as e:
            logger.warning("Classifying aborted booking for %s failed: %s", username, e)
            fid = None

        if fid is None:
            logger.warning("Booking for %s failed: %s", username, error)
            return Outcome.failure(error, BOOKING_FAILED)

        logger.debug("Booking for %s lost flight %s to a concurrent booking", username, fid)
        return Outcome.failure(ConflictError(Status.NO_CAPACITY, f"flight {fid} is full"), BOOKING_FAILED)

    @staticmethod
    def get_active_reservations(username: str) -> List[Reservation]:
        """Uncancelled reservations of a user with both legs joined, by rid"""
        db_manager = get_db_manager()

        with db_manager.get_cursor() as cursor:
            cursor.execute(f"""
                SELECT {_RESERVATION_COLUMNS},
                       {flight_columns('f1', 'f1_')},
                       {flight_columns('f2', 'f2_')}
                FROM reservations r
                JOIN flights f1 ON r.fid1 = f1.fid
                LEFT JOIN flights f2 ON r.fid2 = f2.fid
                WHERE r.username = %s AND NOT r.cancelled
                ORDER BY r.rid ASC
            """, (username,))

            reservations = []
            for row in cursor.fetchall():
                reservation = row_to_reservation(row)
                reservation.itinerary = Itinerary(row_to_flight(row, 'f1_'), row_to_flight(row, 'f2_'))
                reservations.append(reservation)
            return reservations

    @staticmethod
    def list_reservations(session: SessionState) -> Outcome:
        """
        List the session user's uncancelled reservations

        The session's rid-to-itinerary view is rebuilt from the store.
        """
        try:
            username = session.require_user()
        except ReservationError as e:
            return Outcome.failure(e, "Cannot view reservations, not logged in\n")

        try:
            with translate_store_errors("list reservations"):
                reservations = BookingService.get_active_reservations(username)
        except StoreError as e:
            logger.warning("Listing reservations for %s failed: %s", username, e)
            return Outcome.failure(e, "Failed to retrieve reservations\n")

        session.reserved = {r.rid: r.itinerary for r in reservations}

        if not reservations:
            return Outcome(Status.EMPTY, "No reservations found\n", [])

        return Outcome.success("".join(r.describe() for r in reservations), reservations)
