"""Database package initialization"""
from .models import (
    User, Flight, Itinerary, Reservation, ItineraryKind,
    row_to_user, row_to_flight, row_to_reservation
)
from .database import DatabaseManager, get_db_manager, set_db_manager

__all__ = [
    'User', 'Flight', 'Itinerary', 'Reservation', 'ItineraryKind',
    'row_to_user', 'row_to_flight', 'row_to_reservation',
    'DatabaseManager', 'get_db_manager', 'set_db_manager'
]
