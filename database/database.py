"""
Database connection and transaction management using raw PostgreSQL
Implements SERIALIZABLE isolation level for booking, payment and cancellation
"""
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import unquote, urlsplit

import psycopg2
from psycopg2 import extras, pool, sql
from psycopg2.extensions import ISOLATION_LEVEL_READ_COMMITTED, ISOLATION_LEVEL_SERIALIZABLE
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = 'postgresql://localhost/flight_reservation'
DEFAULT_DATABASE_NAME = 'flight_reservation'


class EchoingCursor(extras.RealDictCursor):
    """RealDictCursor that logs every statement before executing it"""

    def execute(self, query, vars=None):
        logger.info("%s", self.mogrify(query, vars).decode('utf-8'))
        return super().execute(query, vars)


class DatabaseManager:
    """
    Database manager with transaction support and connection pooling
    """

    def __init__(self, database_url=None, echo=False, min_connections=None, max_connections=None):
        """
        Initialize database manager

        Args:
            database_url: Database connection URL (defaults to env variable)
            echo: Whether to log every SQL statement
            min_connections: Connections opened eagerly (defaults to DB_POOL_MIN)
            max_connections: Upper bound of the pool (defaults to DB_POOL_MAX)
        """
        self.database_url = database_url or os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL)
        self.echo = echo or os.getenv('DB_ECHO', 'False').lower() == 'true'

        self.db_config = self._parse_database_url(self.database_url)
        self.cursor_factory = EchoingCursor if self.echo else extras.RealDictCursor

        minconn = min_connections if min_connections is not None else int(os.getenv('DB_POOL_MIN', '1'))
        maxconn = max_connections if max_connections is not None else int(os.getenv('DB_POOL_MAX', '20'))

        try:
            self.connection_pool = pool.ThreadedConnectionPool(
                minconn=minconn,
                maxconn=maxconn,
                **self.db_config
            )
        except psycopg2.Error as e:
            raise RuntimeError(f"Failed to create database connection pool: {e}") from e

    @staticmethod
    def _parse_database_url(url):
        """Parse database URL into connection parameters"""
        parts = urlsplit(url)
        if parts.scheme not in ('postgresql', 'postgres'):
            return {
                'database': DEFAULT_DATABASE_NAME,
                'host': 'localhost',
                'port': 5432,
            }

        config = {
            'database': unquote(parts.path.lstrip('/')) or DEFAULT_DATABASE_NAME,
            'host': parts.hostname or 'localhost',
            'port': parts.port or 5432,
        }
        if parts.username:
            config['user'] = unquote(parts.username)
        if parts.password:
            config['password'] = unquote(parts.password)
        return config

    def get_connection(self):
        """Get a connection from the pool"""
        return self.connection_pool.getconn()

    def return_connection(self, conn):
        """Return a connection to the pool, discarding it if the server closed it"""
        self.connection_pool.putconn(conn, close=bool(conn.closed))

    def close_all_connections(self):
        """Close all connections in the pool"""
        if self.connection_pool:
            self.connection_pool.closeall()

    def create_tables(self):
        """Create all database tables from schema"""
        schema_file = Path(__file__).parent / 'schema.sql'

        if not schema_file.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_file}")

        schema_sql = schema_file.read_text()

        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(schema_sql)
            conn.commit()
        finally:
            self.return_connection(conn)

    def drop_tables(self):
        """Drop all database tables (use with caution!)"""
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute("""
                    SELECT tablename FROM pg_tables
                    WHERE schemaname = 'public'
                """)
                tables = [row[0] for row in cursor.fetchall()]

                for table in tables:
                    cursor.execute(sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(
                        sql.Identifier(table)
                    ))
            conn.commit()
        finally:
            self.return_connection(conn)

    def clear_tables(self):
        """
        Remove customers and reservations and reset seat counters

        The flight inventory itself is left in place.
        """
        with self.transaction() as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM reservations")
                cursor.execute("DELETE FROM users")
                cursor.execute("UPDATE flights SET num_booked = 0 WHERE num_booked > 0")
                cursor.execute("UPDATE reservation_ids SET next_rid = 1")

    @contextmanager
    def get_cursor(self, isolation_level=None, cursor_factory=None):
        """
        Get a cursor with automatic connection management

        Args:
            isolation_level: Transaction isolation level
            cursor_factory: Cursor factory (defaults to RealDictCursor)

        Usage:
            with db.get_cursor() as cursor:
                cursor.execute("SELECT * FROM users")
                results = cursor.fetchall()
        """
        conn = self.get_connection()
        conn.set_isolation_level(isolation_level or ISOLATION_LEVEL_READ_COMMITTED)

        cursor = conn.cursor(cursor_factory=cursor_factory or self.cursor_factory)

        try:
            yield cursor
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            cursor.close()
            self.return_connection(conn)

    @contextmanager
    def transaction(self, isolation_level=None):
        """
        Provide a transactional scope with a connection

        Args:
            isolation_level: Transaction isolation level

        Usage:
            with db.transaction() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("INSERT INTO users ...")
        """
        conn = self.get_connection()
        conn.set_isolation_level(isolation_level or ISOLATION_LEVEL_READ_COMMITTED)

        try:
            yield conn
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self.return_connection(conn)

    def cursor(self, conn):
        """Open a dict cursor on a connection obtained from ``transaction``"""
        return conn.cursor(cursor_factory=self.cursor_factory)

    @contextmanager
    def serializable_transaction(self):
        """
        Provide a SERIALIZABLE transaction scope

        Every read-check-then-write sequence on seat counters, balances and
        reservation flags runs inside one of these. A conflicting concurrent
        transaction surfaces as ``psycopg2.extensions.TransactionRollbackError``.
        """
        with self.transaction(isolation_level=ISOLATION_LEVEL_SERIALIZABLE) as conn:
            yield conn


# Global database manager instance
_db_manager = None


def get_db_manager() -> DatabaseManager:
    """Get or create global database manager instance"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def set_db_manager(db_manager: DatabaseManager | None) -> None:
    """Override the global database manager instance.

    Test fixtures use this so that every engine operates on the test
    database. Passing ``None`` resets the singleton so the next
    ``get_db_manager`` call recreates it from the environment.
    """
    global _db_manager
    _db_manager = db_manager


def init_db():
    """Initialize database with tables"""
    db_manager = get_db_manager()
    db_manager.create_tables()
    print("Database initialized successfully!")


if __name__ == "__main__":
    init_db()
