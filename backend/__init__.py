"""Reservation engines and the per-session client"""
from .outcomes import Outcome, Status
from .client import FlightClient

__all__ = ['Outcome', 'Status', 'FlightClient']
