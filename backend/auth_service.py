"""
Authentication and account service
Implements password hashing, customer creation, login and logout
"""
import logging

import bcrypt
import psycopg2

from database import User, row_to_user, get_db_manager

from .errors import ConflictError, PreconditionError, ReservationError, StoreError, translate_store_errors
from .outcomes import Outcome, Status
from .session import SessionState

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Login failed\n"
CREATE_FAILED = "Failed to create user\n"

# bcrypt only looks at the first 72 bytes; newer releases reject anything longer
MAX_PASSWORD_BYTES = 72


class AuthService:
    """Service for customer accounts and session authentication"""

    @staticmethod
    def hash_password(password: str) -> str:
        """
        Hash a password using bcrypt

        Args:
            password: Plain text password

        Returns:
            Hashed password
        """
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """
        Verify a password against its hash

        Args:
            password: Plain text password
            password_hash: Hashed password

        Returns:
            True if password matches, False otherwise (including a malformed hash)
        """
        try:
            return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
        except ValueError:
            return False

    @staticmethod
    def get_user(username: str):
        """Get user by username"""
        db_manager = get_db_manager()

        with db_manager.get_cursor() as cursor:
            cursor.execute("""
                SELECT username, password_hash, balance
                FROM users
                WHERE username = %s
            """, (username,))

            return row_to_user(cursor.fetchone())

    @staticmethod
    def _insert_customer(username: str, password: str, initial_balance: int) -> User:
        if initial_balance < 0:
            raise PreconditionError(Status.INVALID_AMOUNT, f"negative initial balance {initial_balance}")
        if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
            raise PreconditionError(Status.INVALID_PASSWORD, f"password longer than {MAX_PASSWORD_BYTES} bytes")

        db_manager = get_db_manager()
        try:
            with db_manager.get_cursor() as cursor:
                cursor.execute("""
                    INSERT INTO users (username, password_hash, balance)
                    VALUES (%s, %s, %s)
                    RETURNING username, password_hash, balance
                """, (username, AuthService.hash_password(password), initial_balance))
                return row_to_user(cursor.fetchone())
        except psycopg2.IntegrityError as e:
            raise ConflictError(Status.DUPLICATE_USER, f"user {username} already exists") from e

    @staticmethod
    def create_customer(username: str, password: str, initial_balance: int) -> Outcome:
        """
        Create a customer account

        Args:
            username: Unique username
            password: Plain text password
            initial_balance: Opening balance, must be >= 0

        Returns:
            Outcome with the username on success; INVALID_AMOUNT,
            INVALID_PASSWORD, DUPLICATE_USER or STORE_ERROR otherwise.
            Does not log in.
        """
        try:
            with translate_store_errors("create customer"):
                user = AuthService._insert_customer(username, password, initial_balance)
        except StoreError as e:
            logger.warning("Creating user %s failed: %s", username, e)
            return Outcome.failure(e, CREATE_FAILED)
        except ReservationError as e:
            logger.debug("Creating user %s rejected: %s", username, e)
            return Outcome.failure(e, CREATE_FAILED)

        logger.info("Created user %s", user.username)
        return Outcome.success(f"Created user {user.username}\n", user.username)

    @staticmethod
    def login(session: SessionState, username: str, password: str) -> Outcome:
        """
        Log a user into ``session``

        Unknown user, wrong password and store errors are reported
        identically as LOGIN_FAILED.
        """
        if session.logged_in:
            error = PreconditionError(Status.ALREADY_LOGGED_IN, f"{session.username} is logged in")
            return Outcome.failure(error, "User already logged in\n")

        try:
            with translate_store_errors("login"):
                user = AuthService.get_user(username)
        except StoreError as e:
            logger.warning("Login lookup failed: %s", e)
            user = None

        if user is None or not AuthService.verify_password(password, user.password_hash):
            return Outcome(Status.LOGIN_FAILED, LOGIN_FAILED)

        session.bind(user.username)
        logger.info("User %s logged in", user.username)
        return Outcome.success(f"Logged in as {user.username}\n", user.username)

    @staticmethod
    def logout(session: SessionState) -> Outcome:
        """End the session; the next login must search again"""
        if not session.logged_in:
            error = PreconditionError(Status.NOT_LOGGED_IN, "not logged in")
            return Outcome.failure(error, "Cannot log out, not logged in\n")

        username = session.username
        session.clear()
        logger.info("User %s logged out", username)
        return Outcome.success("Logged out\n", username)
