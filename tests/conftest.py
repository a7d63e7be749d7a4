"""Pytest configuration and fixtures."""
import os
import sys
from contextlib import contextmanager

import psycopg2
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.database import DatabaseManager, set_db_manager
from database import row_to_flight
from backend.client import FlightClient


def create_flight_directly(db, fid: int, day_of_month: int, origin_city: str, dest_city: str,
                           actual_time: int, capacity: int, price: int, carrier_id: str = 'AS',
                           flight_num: str = None, cancelled: bool = False, num_booked: int = 0):
    """Insert a catalog row; the flight inventory is owned outside the engines."""
    with db.get_cursor() as cursor:
        cursor.execute("""
            INSERT INTO flights (fid, month_id, day_of_month, carrier_id, flight_num,
                                 origin_city, dest_city, actual_time, capacity, price,
                                 num_booked, cancelled)
            VALUES (%s, 7, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        """, (fid, day_of_month, carrier_id, flight_num or str(100 + fid), origin_city,
              dest_city, actual_time, capacity, price, num_booked, cancelled))
        return row_to_flight(cursor.fetchone())


def fetch_one(db, query, params=()):
    """Read a single row straight from the store."""
    with db.get_cursor() as cursor:
        cursor.execute(query, params)
        return cursor.fetchone()


@pytest.fixture(scope='function')
def db_manager():
    """Create a test database manager with PostgreSQL test database."""
    test_db_url = os.getenv('TEST_DATABASE_URL', 'postgresql://localhost/flight_reservation_test')
    try:
        db = DatabaseManager(database_url=test_db_url, echo=False, min_connections=1, max_connections=30)
    except RuntimeError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")
    db.drop_tables()  # Clean slate for each test
    db.create_tables()
    set_db_manager(db)
    yield db
    set_db_manager(None)
    db.drop_tables()
    db.close_all_connections()


@pytest.fixture(scope='function')
def seattle_flights(db_manager):
    """
    Day 1 inventory from Seattle to Boston

    Direct 1 (300 min), direct 2 (280 min), Seattle->Chicago 3 (200 min)
    connecting to Chicago->Boston 4 (150 min), a cancelled direct 5 and a
    day 2 direct 6 (310 min).
    """
    return {
        1: create_flight_directly(db_manager, 1, 1, 'Seattle WA', 'Boston MA', 300, 10, 300),
        2: create_flight_directly(db_manager, 2, 1, 'Seattle WA', 'Boston MA', 280, 10, 250),
        3: create_flight_directly(db_manager, 3, 1, 'Seattle WA', 'Chicago IL', 200, 10, 120),
        4: create_flight_directly(db_manager, 4, 1, 'Chicago IL', 'Boston MA', 150, 10, 130),
        5: create_flight_directly(db_manager, 5, 1, 'Seattle WA', 'Boston MA', 100, 10, 90, cancelled=True),
        6: create_flight_directly(db_manager, 6, 2, 'Seattle WA', 'Boston MA', 310, 10, 200),
    }


@pytest.fixture(scope='function')
def client(db_manager):
    """A fresh, logged-out session"""
    return FlightClient()


@pytest.fixture(scope='function')
def alice(db_manager):
    """A logged-in session for a customer holding 500"""
    client = FlightClient()
    assert client.create_customer('alice', 'secret', 500).ok
    assert client.login('alice', 'secret').ok
    return client


class FailingDatabaseManager:
    """Stand-in gateway whose every scope fails the way psycopg2 does."""

    def __init__(self, error_factory):
        self.error_factory = error_factory
        self.scopes = []

    @property
    def calls(self):
        return len(self.scopes)

    def _fail(self, scope):
        self.scopes.append(scope)
        raise self.error_factory()

    @contextmanager
    def get_cursor(self, isolation_level=None, cursor_factory=None):
        self._fail('get_cursor')
        yield

    @contextmanager
    def transaction(self, isolation_level=None):
        self._fail('transaction')
        yield

    @contextmanager
    def serializable_transaction(self):
        self._fail('serializable_transaction')
        yield

    def cursor(self, conn):
        raise AssertionError("no connection is ever handed out")


@pytest.fixture(scope='function')
def broken_store():
    """Install a gateway that raises OperationalError on every access"""
    db = FailingDatabaseManager(lambda: psycopg2.OperationalError("server closed the connection"))
    set_db_manager(db)
    yield db
    set_db_manager(None)


@pytest.fixture(scope='function')
def conflicting_store():
    """Install a gateway that reports a serialization failure on every access"""
    db = FailingDatabaseManager(
        lambda: psycopg2.extensions.TransactionRollbackError("could not serialize access")
    )
    set_db_manager(db)
    yield db
    set_db_manager(None)
