"""
Database models for the flight reservation system
Plain Python classes and enums (no ORM)
"""
from dataclasses import dataclass
from typing import List, Optional
import enum


class ItineraryKind(enum.Enum):
    """Itinerary shape enumeration"""
    DIRECT = "direct"
    CONNECTING = "connecting"


@dataclass
class User:
    """Customer account with its on-file balance"""
    username: Optional[str] = None
    password_hash: Optional[str] = None
    balance: Optional[int] = None

    def __repr__(self):
        return f"<User(username='{self.username}', balance={self.balance})>"


@dataclass
class Flight:
    """Flight inventory row"""
    fid: Optional[int] = None
    day_of_month: Optional[int] = None
    carrier_id: Optional[str] = None
    flight_num: Optional[str] = None
    origin_city: Optional[str] = None
    dest_city: Optional[str] = None
    actual_time: Optional[int] = None
    capacity: Optional[int] = None
    price: Optional[int] = None
    num_booked: Optional[int] = None
    cancelled: Optional[bool] = None

    def __str__(self):
        return (f"ID: {self.fid} Day: {self.day_of_month} Carrier: {self.carrier_id} "
                f"Number: {self.flight_num} Origin: {self.origin_city} Dest: {self.dest_city} "
                f"Duration: {self.actual_time} Capacity: {self.capacity} Price: {self.price}")

    def __repr__(self):
        return f"<Flight(fid={self.fid}, route='{self.origin_city}->{self.dest_city}', day={self.day_of_month})>"


@dataclass
class Itinerary:
    """
    A bookable search result

    Either one flight (direct) or two flights on the same day that meet in a
    connecting city. ``second`` is ``None`` for a direct itinerary.
    """
    first: Flight
    second: Optional[Flight] = None

    @property
    def kind(self) -> ItineraryKind:
        return ItineraryKind.DIRECT if self.second is None else ItineraryKind.CONNECTING

    @property
    def is_direct(self) -> bool:
        return self.second is None

    @property
    def legs(self) -> List[Flight]:
        return [self.first] if self.second is None else [self.first, self.second]

    @property
    def total_time(self) -> int:
        return sum(leg.actual_time for leg in self.legs)

    @property
    def cost(self) -> int:
        return sum(leg.price for leg in self.legs)

    @property
    def trip_date(self) -> int:
        return self.first.day_of_month

    def describe(self, index: int) -> str:
        """Render as ``Itinerary <index>: ...`` followed by one line per leg"""
        lines = [f"Itinerary {index}: {len(self.legs)} flight(s), {self.total_time} minutes"]
        lines.extend(str(leg) for leg in self.legs)
        return "\n".join(lines) + "\n"

    def __repr__(self):
        fids = ", ".join(str(leg.fid) for leg in self.legs)
        return f"<Itinerary(kind={self.kind.value}, fids=[{fids}], total_time={self.total_time})>"


@dataclass
class Reservation:
    """Reservation row; the store is the system of record for its flags"""
    rid: Optional[int] = None
    username: Optional[str] = None
    trip_date: Optional[int] = None
    fid1: Optional[int] = None
    fid2: Optional[int] = None
    cost: Optional[int] = None
    paid: Optional[bool] = None
    cancelled: Optional[bool] = None

    # For joined queries
    itinerary: Optional[Itinerary] = None

    def describe(self) -> str:
        """Render as ``Reservation <rid> paid: <flag>:`` followed by its legs"""
        lines = [f"Reservation {self.rid} paid: {'true' if self.paid else 'false'}:"]
        if self.itinerary:
            lines.extend(str(leg) for leg in self.itinerary.legs)
        return "\n".join(lines) + "\n"

    def __repr__(self):
        return (f"<Reservation(rid={self.rid}, username='{self.username}', "
                f"paid={self.paid}, cancelled={self.cancelled})>")


def row_to_user(row) -> User:
    """Convert database row to User object"""
    if not row:
        return None
    return User(
        username=row['username'],
        password_hash=row['password_hash'],
        balance=row['balance']
    )


def row_to_flight(row, prefix: str = '') -> Flight:
    """
    Convert database row to Flight object

    ``prefix`` selects one side of a self-join, e.g. ``f1_`` or ``f2_``.
    """
    if not row or row.get(f'{prefix}fid') is None:
        return None
    return Flight(
        fid=row[f'{prefix}fid'],
        day_of_month=row[f'{prefix}day_of_month'],
        carrier_id=row[f'{prefix}carrier_id'],
        flight_num=row[f'{prefix}flight_num'],
        origin_city=row[f'{prefix}origin_city'],
        dest_city=row[f'{prefix}dest_city'],
        actual_time=row[f'{prefix}actual_time'],
        capacity=row[f'{prefix}capacity'],
        price=row[f'{prefix}price'],
        num_booked=row.get(f'{prefix}num_booked'),
        cancelled=row.get(f'{prefix}cancelled')
    )


def row_to_reservation(row) -> Reservation:
    """Convert database row to Reservation object"""
    if not row:
        return None
    return Reservation(
        rid=row['rid'],
        username=row['username'],
        trip_date=row['trip_date'],
        fid1=row['fid1'],
        fid2=row.get('fid2'),
        cost=row['cost'],
        paid=row['paid'],
        cancelled=row['cancelled']
    )
