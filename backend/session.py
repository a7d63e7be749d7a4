"""
Per-session state: the logged-in user, the last search and a display view
of the user's reservations
"""
from typing import Dict, List, Optional, Sequence

from database import Itinerary

from .errors import NotFoundError, PreconditionError
from .outcomes import Status


class SessionState:
    """
    State owned by exactly one session (one thread)

    Nothing here is shared between sessions, so nothing here is locked.
    """

    def __init__(self):
        self.username: Optional[str] = None
        self._itineraries: List[Itinerary] = []
        # rid -> itinerary, for display only; the store holds the real status
        self.reserved: Dict[int, Itinerary] = {}

    @property
    def logged_in(self) -> bool:
        return self.username is not None

    def bind(self, username: str) -> None:
        """Attach a freshly authenticated user and drop anything stale"""
        self.username = username
        self.forget_search()
        self.reserved.clear()

    def clear(self) -> None:
        self.username = None
        self.forget_search()
        self.reserved.clear()

    def require_user(self) -> str:
        if self.username is None:
            raise PreconditionError(Status.NOT_LOGGED_IN, "not logged in")
        return self.username

    @property
    def itineraries(self) -> Sequence[Itinerary]:
        return tuple(self._itineraries)

    def remember_search(self, itineraries: Sequence[Itinerary]) -> None:
        """Replace the previous results; indices restart at 0"""
        self._itineraries = list(itineraries)

    def forget_search(self) -> None:
        self._itineraries = []

    def itinerary(self, index: int) -> Itinerary:
        """Resolve an index from the latest search"""
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._itineraries):
            raise NotFoundError(Status.NO_SUCH_ITINERARY, f"no such itinerary {index}")
        return self._itineraries[index]
