"""
Itinerary search
Direct flights first, topped up with one-stop connections, then ordered by total time
"""
import logging
from typing import Iterable, List

from database import Itinerary, row_to_flight, get_db_manager

from .errors import StoreError, translate_store_errors
from .flight_service import flight_columns
from .outcomes import Outcome, Status
from .session import SessionState

logger = logging.getLogger(__name__)

_DIRECT_QUERY = f"""
    SELECT {flight_columns('f')}
    FROM flights f
    WHERE f.origin_city = %s
      AND f.dest_city = %s
      AND f.day_of_month = %s
      AND NOT f.cancelled
    ORDER BY f.actual_time ASC, f.fid ASC
    LIMIT %s
"""

_CONNECTING_QUERY = f"""
    SELECT {flight_columns('f1', 'f1_')}, {flight_columns('f2', 'f2_')},
           f1.actual_time + f2.actual_time AS total_time
    FROM flights f1
    JOIN flights f2
      ON f1.dest_city = f2.origin_city
     AND f1.day_of_month = f2.day_of_month
    WHERE f1.origin_city = %s
      AND f2.dest_city = %s
      AND f1.day_of_month = %s
      AND NOT f1.cancelled
      AND NOT f2.cancelled
    ORDER BY total_time ASC, f1.fid ASC, f2.fid ASC
    LIMIT %s
"""

NO_MATCH = "No flights match your selection\n"
SEARCH_FAILED = "Failed to search\n"


def merge_itineraries(direct: Iterable[Itinerary], connecting: Iterable[Itinerary]) -> List[Itinerary]:
    """
    Order direct and connecting results by total time

    The sort is stable: equal total times keep the order the two queries
    produced them in, direct results ahead of connecting ones.
    """
    return sorted([*direct, *connecting], key=lambda itinerary: itinerary.total_time)


def render_itineraries(itineraries: Iterable[Itinerary]) -> str:
    return "".join(itinerary.describe(index) for index, itinerary in enumerate(itineraries))


class SearchService:
    """Service for itinerary search"""

    @staticmethod
    def find_direct(cursor, origin_city: str, dest_city: str, day_of_month: int, limit: int) -> List[Itinerary]:
        cursor.execute(_DIRECT_QUERY, (origin_city, dest_city, day_of_month, limit))
        return [Itinerary(row_to_flight(row)) for row in cursor.fetchall()]

    @staticmethod
    def find_connecting(cursor, origin_city: str, dest_city: str, day_of_month: int,
                        limit: int) -> List[Itinerary]:
        cursor.execute(_CONNECTING_QUERY, (origin_city, dest_city, day_of_month, limit))
        return [
            Itinerary(row_to_flight(row, 'f1_'), row_to_flight(row, 'f2_'))
            for row in cursor.fetchall()
        ]

    @staticmethod
    def find_itineraries(origin_city: str, dest_city: str, direct_only: bool,
                         day_of_month: int, limit: int) -> List[Itinerary]:
        """
        Query the store for up to ``limit`` itineraries

        Connecting itineraries only fill the slots direct flights leave free.
        """
        if limit <= 0:
            return []

        db_manager = get_db_manager()

        with db_manager.get_cursor() as cursor:
            direct = SearchService.find_direct(cursor, origin_city, dest_city, day_of_month, limit)
            connecting = []
            if not direct_only and len(direct) < limit:
                connecting = SearchService.find_connecting(
                    cursor, origin_city, dest_city, day_of_month, limit - len(direct)
                )

        return merge_itineraries(direct, connecting)

    @staticmethod
    def search(session: SessionState, origin_city: str, dest_city: str, direct_only: bool,
               day_of_month: int, limit: int) -> Outcome:
        """
        Search itineraries and make them the session's bookable results

        Args:
            session: Session whose results are replaced
            origin_city: Departure city
            dest_city: Arrival city
            direct_only: Skip one-stop itineraries
            day_of_month: Travel day
            limit: Maximum number of itineraries

        Returns:
            Outcome with the ordered itineraries, EMPTY or STORE_ERROR
        """
        session.forget_search()

        try:
            with translate_store_errors("search"):
                itineraries = SearchService.find_itineraries(
                    origin_city, dest_city, direct_only, day_of_month, limit
                )
        except StoreError as e:
            logger.warning("Search %s -> %s on day %s failed: %s", origin_city, dest_city, day_of_month, e)
            return Outcome.failure(e, SEARCH_FAILED)

        if not itineraries:
            return Outcome(Status.EMPTY, NO_MATCH, [])

        session.remember_search(itineraries)
        return Outcome.success(render_itineraries(itineraries), list(itineraries))
