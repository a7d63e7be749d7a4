"""
Per-session entry point exposing every customer operation
"""
from .auth_service import AuthService
from .booking_service import BookingService
from .outcomes import Outcome
from .payment_service import PaymentService
from .search_service import SearchService
from .session import SessionState


class FlightClient:
    """
    One user's session against the shared store

    Create one client per session/thread; the store gateway returned by
    ``database.get_db_manager`` is shared between them. Every method returns
    an Outcome and none of them raises.
    """

    def __init__(self):
        self.session = SessionState()

    @property
    def username(self):
        return self.session.username

    def create_customer(self, username: str, password: str, initial_balance: int) -> Outcome:
        return AuthService.create_customer(username, password, initial_balance)

    def login(self, username: str, password: str) -> Outcome:
        return AuthService.login(self.session, username, password)

    def logout(self) -> Outcome:
        return AuthService.logout(self.session)

    def search(self, origin_city: str, dest_city: str, direct_only: bool,
               day_of_month: int, limit: int) -> Outcome:
        return SearchService.search(self.session, origin_city, dest_city, direct_only, day_of_month, limit)

    def book(self, itinerary_index: int) -> Outcome:
        return BookingService.book(self.session, itinerary_index)

    def pay(self, reservation_id: int) -> Outcome:
        return PaymentService.pay(self.session, reservation_id)

    def reservations(self) -> Outcome:
        return BookingService.list_reservations(self.session)

    def cancel(self, reservation_id: int) -> Outcome:
        return PaymentService.cancel(self.session, reservation_id)
