"""
Flight inventory access
The catalog is read-only here apart from the booked-seat counter
"""
from typing import Optional

from database import Flight, row_to_flight, get_db_manager

# Columns rendered for a flight leg; prefixed variants are used for self-joins
FLIGHT_COLUMNS = ("fid", "day_of_month", "carrier_id", "flight_num", "origin_city",
                  "dest_city", "actual_time", "capacity", "price")


def flight_columns(alias: str, prefix: str = '') -> str:
    """Build ``alias.col AS prefixcol`` select-list entries"""
    return ", ".join(f"{alias}.{col} AS {prefix}{col}" for col in FLIGHT_COLUMNS)


class FlightService:
    """Service for flight lookups and seat counters"""

    @staticmethod
    def get_flight(fid: int) -> Optional[Flight]:
        """Get flight by ID, including its booked-seat count"""
        db_manager = get_db_manager()

        with db_manager.get_cursor() as cursor:
            cursor.execute(f"""
                SELECT {flight_columns('f')}, f.num_booked, f.cancelled
                FROM flights f
                WHERE f.fid = %s
            """, (fid,))

            return row_to_flight(cursor.fetchone())

    @staticmethod
    def seats_left(cursor, fid: int) -> int:
        """
        Remaining seats on a flight, locking its row for the rest of the transaction

        A missing flight counts as having no seats.
        """
        cursor.execute("""
            SELECT capacity, num_booked
            FROM flights
            WHERE fid = %s
            FOR UPDATE
        """, (fid,))
        row = cursor.fetchone()
        if not row:
            return 0
        return row['capacity'] - row['num_booked']

    @staticmethod
    def take_seat(cursor, fid: int) -> bool:
        """Increment the booked-seat counter unless the flight is full"""
        cursor.execute("""
            UPDATE flights
            SET num_booked = num_booked + 1
            WHERE fid = %s AND num_booked < capacity
            RETURNING fid
        """, (fid,))
        return cursor.fetchone() is not None
