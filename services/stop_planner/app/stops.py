"""Canonical ordered list of stops."""

from __future__ import annotations

from typing import Callable, Iterator, Sequence

from .errors import DuplicateStopError
from .models import Stop

Listener = Callable[[], None]


class StopListManager:
    """Owns the stop list; every mutation notifies the listeners.

    Listeners are how derived route state gets invalidated, so nothing else
    may mutate the list behind the manager's back.
    """

    def __init__(self) -> None:
        self._stops: list[Stop] = []
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def stops(self) -> tuple[Stop, ...]:
        return tuple(self._stops)

    def __len__(self) -> int:
        return len(self._stops)

    def __iter__(self) -> Iterator[Stop]:
        return iter(tuple(self._stops))

    def get(self, stop_id: str) -> Stop | None:
        for stop in self._stops:
            if stop.id == stop_id:
                return stop
        return None

    def append(self, stop: Stop) -> None:
        if self.get(stop.id) is not None:
            raise DuplicateStopError(stop.id)
        self._stops.append(stop)
        self._changed()

    def remove(self, stop_id: str) -> bool:
        """Remove the stop with ``stop_id``; ``False`` if it was not there."""

        for i, stop in enumerate(self._stops):
            if stop.id == stop_id:
                del self._stops[i]
                self._changed()
                return True
        return False

    def reorder(self, new_order: Sequence[Stop]) -> None:
        # The engine hands over a permutation of the current stops.
        self._stops = list(new_order)
        self._changed()

    def clear(self) -> None:
        self._stops.clear()
        self._changed()

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()
