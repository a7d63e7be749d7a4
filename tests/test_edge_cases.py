"""
Edge case tests for the reservation state machine
Tests uniform failures, double payment, double cancellation and refunds
"""
from __future__ import annotations

import pytest

from backend.auth_service import AuthService
from backend.client import FlightClient
from backend.outcomes import Status
from tests.conftest import create_flight_directly, fetch_one

pytestmark = pytest.mark.database


class TestPaymentEdgeCases:
    """Test payment edge cases"""

    def test_paid_and_missing_look_alike(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        rid = alice.book(0).value
        assert alice.pay(rid).ok

        paid_again = alice.pay(rid)
        missing = alice.pay(999)

        assert paid_again.status == missing.status == Status.NOT_FOUND_OR_PAID
        assert type(paid_again.error) is type(missing.error)
        assert AuthService.get_user('alice').balance == 250

    def test_cannot_pay_cancelled_reservation(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        rid = alice.book(0).value
        alice.cancel(rid)

        outcome = alice.pay(rid)

        assert outcome.status == Status.NOT_FOUND_OR_PAID
        assert AuthService.get_user('alice').balance == 500

    def test_exact_balance(self, client, db_manager):
        create_flight_directly(db_manager, 40, 9, 'A', 'B', 60, 5, 75)
        client.create_customer('exact', 'pw', 75)
        client.login('exact', 'pw')
        client.search('A', 'B', True, 9, 1)
        rid = client.book(0).value

        outcome = client.pay(rid)

        assert outcome.ok
        assert outcome.value == 0


class TestCancellationEdgeCases:
    """Test cancellation edge cases"""

    def test_cancel_twice(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        rid = alice.book(0).value

        assert alice.cancel(rid).ok
        second = alice.cancel(rid)

        assert second.status == Status.NOT_FOUND_OR_CANCELLED
        assert second.message == f"Failed to cancel reservation {rid}\n"

    def test_pay_then_cancel_refunds_once(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        rid = alice.book(1).value  # flight 1 costs 300

        assert alice.pay(rid).value == 200
        cancelled = alice.cancel(rid)
        assert cancelled.ok
        assert cancelled.value == 300
        assert AuthService.get_user('alice').balance == 500

        assert not alice.cancel(rid).ok
        assert AuthService.get_user('alice').balance == 500

    def test_walkthrough(self, alice, seattle_flights):
        """Balance 500, book a 300 itinerary, pay, pay again, cancel."""
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        booked = alice.book(1)
        assert booked.value == 1

        assert alice.pay(1).message == "Paid reservation: 1 remaining balance: 200\n"
        assert alice.pay(1).status == Status.NOT_FOUND_OR_PAID

        assert alice.cancel(1).ok
        assert AuthService.get_user('alice').balance == 500
        assert alice.reservations().status == Status.EMPTY

    def test_cancelled_id_is_never_reused(self, alice, seattle_flights, db_manager):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        first = alice.book(0).value
        alice.cancel(first)

        alice.search('Seattle WA', 'Boston MA', True, 2, 10)
        second = alice.book(0).value

        assert second == first + 1
        row = fetch_one(db_manager, "SELECT cancelled FROM reservations WHERE rid = %s", (first,))
        assert row['cancelled']

    def test_cancelled_reservation_still_blocks_its_day(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        rid = alice.book(0).value
        alice.cancel(rid)

        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        outcome = alice.book(1)

        assert outcome.status == Status.SAME_DAY_CONFLICT


class TestBookingEdgeCases:
    """Test booking edge cases"""

    def test_same_day_conflict_any_flight(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', False, 1, 10)
        assert alice.book(0).ok

        for index in (0, 1, 2):
            outcome = alice.book(index)
            assert outcome.status == Status.SAME_DAY_CONFLICT
            assert outcome.message == "You cannot book two flights in the same day\n"

    def test_other_day_allowed(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        assert alice.book(0).ok
        alice.search('Seattle WA', 'Boston MA', True, 2, 10)
        assert alice.book(0).ok

    def test_negative_index(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        outcome = alice.book(-1)
        assert outcome.status == Status.NO_SUCH_ITINERARY
        assert outcome.message == "No such itinerary -1\n"

    def test_empty_search_invalidates_old_indices(self, alice, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        alice.search('Nowhere', 'Elsewhere', True, 1, 10)
        assert alice.book(0).status == Status.NO_SUCH_ITINERARY

    def test_sessions_do_not_share_search_results(self, alice, client, seattle_flights):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        client.create_customer('bob', 'pw', 100)
        client.login('bob', 'pw')

        assert client.book(0).status == Status.NO_SUCH_ITINERARY

    def test_booked_count_never_exceeds_capacity(self, db_manager):
        create_flight_directly(db_manager, 50, 11, 'A', 'B', 60, 2, 10)

        outcomes = []
        for name in ('u1', 'u2', 'u3'):
            client = FlightClient()
            client.create_customer(name, 'pw', 100)
            client.login(name, 'pw')
            client.search('A', 'B', True, 11, 1)
            outcomes.append(client.book(0))

        assert [o.status for o in outcomes] == [Status.SUCCESS, Status.SUCCESS, Status.NO_CAPACITY]
        row = fetch_one(db_manager, "SELECT capacity, num_booked FROM flights WHERE fid = 50")
        assert row['num_booked'] == row['capacity'] == 2


class TestClearTables:
    """Test the bulk reset"""

    def test_clear_tables(self, alice, seattle_flights, db_manager):
        alice.search('Seattle WA', 'Boston MA', True, 1, 10)
        alice.book(0)

        db_manager.clear_tables()

        assert fetch_one(db_manager, "SELECT count(*) AS cnt FROM users")['cnt'] == 0
        assert fetch_one(db_manager, "SELECT count(*) AS cnt FROM reservations")['cnt'] == 0
        assert fetch_one(db_manager, "SELECT max(num_booked) AS m FROM flights")['m'] == 0
        assert fetch_one(db_manager, "SELECT count(*) AS cnt FROM flights")['cnt'] == len(seattle_flights)

        client = FlightClient()
        client.create_customer('bob', 'pw', 500)
        client.login('bob', 'pw')
        client.search('Seattle WA', 'Boston MA', True, 1, 10)
        assert client.book(0).value == 1
